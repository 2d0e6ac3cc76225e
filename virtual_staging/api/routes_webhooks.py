import hmac
import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from pydantic import ValidationError
from virtual_staging.core.config import settings
from virtual_staging.core.engine import WorkflowDriver
from virtual_staging.core.errors import UnknownProviderError
from virtual_staging.core.factory import get_driver
from virtual_staging.schemas.callbacks import CallbackFailed, CallbackSucceeded, parse_provider_callback
from virtual_staging.schemas.runs import CallbackAccepted
from virtual_staging.tasks.runs import process_provider_callback

log = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

def _check_secret(body: Dict[str, Any], header_secret: Optional[str], query_secret: Optional[str]) -> None:
    expected = settings.provider_webhook_secret
    if not expected:
        return
    # Providers that cannot send headers get the secret inside the callback URL.
    given = header_secret or query_secret or body.get("webhook_secret") or ""
    if not hmac.compare_digest(str(given), expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

@router.post("/{provider}", response_model=CallbackAccepted, status_code=202)
def receive_callback(
    provider: str,
    body: Dict[str, Any] = Body(...),
    x_webhook_secret: Optional[str] = Header(None),
    secret: Optional[str] = Query(None),
    driver: WorkflowDriver = Depends(get_driver),
):
    try:
        driver.providers.get(provider)
    except UnknownProviderError:
        raise HTTPException(status_code=404, detail="Unknown provider")
    _check_secret(body, x_webhook_secret, secret)

    try:
        callback = parse_provider_callback(body, provider)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    if isinstance(callback, CallbackSucceeded):
        process_provider_callback.delay(callback.job_handle, "succeeded", result_ref=callback.result_ref)
    elif isinstance(callback, CallbackFailed):
        process_provider_callback.delay(callback.job_handle, "failed", reason=callback.reason)
    else:
        log.debug("Progress update for job %s", callback.job_handle)

    return CallbackAccepted(job_handle=callback.job_handle, kind=callback.kind)
