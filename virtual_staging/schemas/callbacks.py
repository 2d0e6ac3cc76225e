"""Inbound provider webhook bodies, parsed into a tagged variant.

Provider payloads are loosely shaped: Black Forest sends ``task_id`` or ``id``
with ``result.sample`` as a string or ``{"url": ...}``, InstantDeco sends
``request_id`` with ``output`` as a URL or a list of URLs. They are normalized
here so the workflow only ever sees one of the three variants below.
"""
from __future__ import annotations
from typing import Annotated, Any, Callable, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter
from virtual_staging.providers.base import JobFailed, JobStatus, JobSucceeded
from virtual_staging.providers.black_forest import map_status
from virtual_staging.providers.instant_deco import read_webhook


class CallbackSucceeded(BaseModel):
    kind: Literal["succeeded"] = "succeeded"
    job_handle: str = Field(..., min_length=1)
    result_ref: str = Field(..., min_length=1)


class CallbackFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    job_handle: str = Field(..., min_length=1)
    reason: str = "Provider reported a failure"


class CallbackPending(BaseModel):
    kind: Literal["pending"] = "pending"
    job_handle: str = Field(..., min_length=1)
    progress: Optional[float] = None


ProviderCallback = Annotated[
    Union[CallbackSucceeded, CallbackFailed, CallbackPending],
    Field(discriminator="kind"),
]
_adapter: TypeAdapter = TypeAdapter(ProviderCallback)


def read_black_forest(body: dict[str, Any]) -> tuple[str | None, JobStatus]:
    handle = body.get("task_id") or body.get("id")
    return handle, map_status(body.get("status"), body.get("result"), body.get("progress"))


READERS: dict[str, Callable[[dict[str, Any]], tuple[str | None, JobStatus]]] = {
    "black-forest": read_black_forest,
    "instant-deco": read_webhook,
}


def parse_provider_callback(
    body: dict[str, Any], provider: str = "black-forest",
) -> CallbackSucceeded | CallbackFailed | CallbackPending:
    """Normalize a raw webhook body; raises ``pydantic.ValidationError`` when it has no job id.

    Providers without a reader of their own are read in the Black Forest shape.
    """
    handle, status = READERS.get(provider, read_black_forest)(body)
    data: dict[str, Any] = {"job_handle": str(handle) if handle else ""}
    if isinstance(status, JobSucceeded):
        data.update(kind="succeeded", result_ref=status.result_ref)
    elif isinstance(status, JobFailed):
        data.update(kind="failed", reason=status.reason)
    else:
        data.update(kind="pending", progress=status.progress)
    return _adapter.validate_python(data)
