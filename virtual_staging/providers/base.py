from __future__ import annotations
from dataclasses import dataclass
from typing import Union
from virtual_staging.core.workflow import ImageRef, StageConfig, StagingPlan


@dataclass(frozen=True)
class JobHandle:
    handle: str
    polling_url: str | None = None


@dataclass(frozen=True)
class ImmediateResult:
    result_ref: str


@dataclass(frozen=True)
class JobPending:
    progress: float | None = None


@dataclass(frozen=True)
class JobSucceeded:
    result_ref: str


@dataclass(frozen=True)
class JobFailed:
    reason: str


DispatchOutcome = Union[JobHandle, ImmediateResult]
JobStatus = Union[JobPending, JobSucceeded, JobFailed]


class StageExecutor:
    """Adapter around one image-generation provider.

    ``dispatch`` submits exactly one job; ``poll_status`` reads its state.
    Transport failures raise ``ProviderError`` and are never retried here.
    ``plan`` carries the run's room and style for providers that take them
    as parameters instead of reading them from the instruction.
    """
    name: str = "base"
    supports_webhooks: bool = False
    # Set when results arrive only by webhook; such providers cannot drive blocking runs.
    requires_webhooks: bool = False

    def dispatch(
        self,
        image: ImageRef,
        stage: StageConfig,
        instruction: str | None = None,
        callback_url: str | None = None,
        plan: StagingPlan | None = None,
    ) -> DispatchOutcome:
        raise NotImplementedError

    def poll_status(self, handle: str) -> JobStatus:
        raise NotImplementedError
