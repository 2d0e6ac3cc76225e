from __future__ import annotations
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable
from sqlalchemy.orm import Session
from virtual_staging.core.errors import (
    ImageDecodeError,
    ImageStoreError,
    InputError,
    ProviderError,
    RunNotFoundError,
)
from virtual_staging.core.workflow import (
    MAX_STAGE_ATTEMPTS,
    DrivingMode,
    ImageRef,
    RoomCategory,
    RunSnapshot,
    RunStatus,
    StageConfig,
    StageResult,
    StageSelection,
    StagingPlan,
    StyleProfile,
    ViolationTag,
)
from virtual_staging.db.models import StagingRun
from virtual_staging.db.repository import RunRepository
from virtual_staging.planning.builder import build_corrective_instruction, build_plan, parse_room, parse_style
from virtual_staging.providers.base import (
    ImmediateResult,
    JobFailed,
    JobPending,
    JobStatus,
    JobSucceeded,
)
from virtual_staging.providers.registry import ProviderRegistry
from virtual_staging.storage.images import ImageStore
from virtual_staging.validation.validator import StageValidator

log = logging.getLogger(__name__)

# An outcome that is already known at dispatch time, with the handle it belongs to.
Settled = tuple[JobStatus, str | None]


@dataclass
class SweepResult:
    """Runs nothing was moving forward, found by ``WorkflowDriver.sweep``."""
    unstarted: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)


class WorkflowDriver:
    """Owns the staging run state machine.

    Every state change goes through ``_apply`` while the run row is locked,
    and everything it needs is read from the row. The blocking poll loop and
    the webhook path are thin wrappers around it.
    """

    def __init__(
        self,
        runs: RunRepository,
        providers: ProviderRegistry,
        validator: StageValidator,
        images: ImageStore,
        *,
        plan_builder: Callable[..., StagingPlan] = build_plan,
        rng: random.Random | None = None,
        callback_url: str | None = None,
        poll_interval: float = 10.0,
        poll_max_attempts: int = 30,
        stall_grace: float = 120.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.runs = runs
        self.providers = providers
        self.validator = validator
        self.images = images
        self.plan_builder = plan_builder
        self.rng = rng
        self.callback_url = callback_url
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.stall_grace = stall_grace
        self.sleep = sleep
        self.clock = clock

    # -- entry points -------------------------------------------------------

    def create_run(
        self,
        image_source: str,
        room_category: RoomCategory | str,
        style_profile: StyleProfile | str,
        stage_selection: StageSelection | None = None,
    ) -> RunSnapshot:
        """Validate the request and persist a pending run. Nothing is dispatched yet."""
        if not image_source:
            raise InputError("An input image is required")
        room = parse_room(room_category)
        style = parse_style(style_profile)
        provider_name = self.providers.resolve(room, style)
        provider = self.providers.get(provider_name)
        if provider.requires_webhooks and not self.callback_url:
            raise InputError(f"Provider {provider_name} only reports results by webhook and no callback URL is set")
        plan = self.plan_builder(room, style, stage_selection, rng=self.rng)

        run_id = str(uuid.uuid4())
        try:
            original = self.images.ingest(run_id, image_source, "original")
        except (ImageStoreError, ImageDecodeError) as e:
            raise InputError(f"Input image is not usable: {e.message}") from e

        mode = DrivingMode.CALLBACK if provider.supports_webhooks and self.callback_url else DrivingMode.BLOCKING
        run = StagingRun(
            id=run_id,
            room_category=room.value,
            style_profile=style.value,
            stage_selection=stage_selection.to_dict() if stage_selection else None,
            provider=provider_name,
            driving_mode=mode.value,
            plan=plan.to_dict(),
            current_stage_index=-1,
            current_attempt=0,
            stage_job_handles=[],
            stage_results=[],
            original_image=original.to_dict(),
            latest_image=original.to_dict(),
            status=RunStatus.PENDING.value,
        )
        try:
            self.runs.add(run)
        except Exception:
            self.images.discard(run_id)
            raise
        log.info("Run created: %d stages via %s (%s)", len(plan), provider_name, mode.value,
                 extra={"run_id": run_id, "stage": "-"})
        return self._snapshot(run)

    def start_run(self, run_id: str) -> RunSnapshot:
        """Dispatch stage 0 of a pending run. A no-op for runs already started."""
        with self.runs.locked(run_id) as (db, run):
            if run.status != RunStatus.PENDING.value:
                log.info("Run already started (%s)", run.status, extra={"run_id": run_id, "stage": "-"})
                return self._snapshot(run)
            plan = StagingPlan.from_dict(run.plan)
            run.status = RunStatus.RUNNING.value
            run.current_stage_index = 0
            run.current_attempt = 0
            settled = self._dispatch(db, run, plan.stages[0].instruction)
            self._settle(db, run, settled)
            return self._snapshot(run)

    def on_job_outcome(self, job_handle: str, status: JobStatus) -> bool:
        """Apply one external job outcome. Returns False when it changed nothing.

        Safe to call repeatedly for the same job: only the handle currently
        stored for the active stage can move the run.
        """
        run_id = self.runs.find_run_id_for_job(job_handle)
        if run_id is None:
            log.warning("Outcome for unknown job %s", job_handle)
            return False
        with self.runs.locked(run_id) as (db, run):
            stage = self._stage_label(run)
            if not self._is_current(run, job_handle):
                log.info("Ignoring stale or duplicate outcome for job %s", job_handle,
                         extra={"run_id": run_id, "stage": stage})
                return False
            if isinstance(status, JobPending):
                return False
            self._settle(db, run, (status, job_handle))
            return True

    def on_provider_callback(
        self,
        job_handle: str,
        status: str,
        result_ref: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Webhook entry point; ``status`` is one of succeeded, failed or pending."""
        if status == "succeeded" and result_ref:
            outcome: JobStatus = JobSucceeded(result_ref=result_ref)
        elif status in ("succeeded", "failed"):
            outcome = JobFailed(reason=reason or "Provider reported a failure without a result")
        else:
            outcome = JobPending()
        return self.on_job_outcome(job_handle, outcome)

    def run_until_done(self, run_id: str) -> RunSnapshot:
        """Blocking mode: start the run if needed, then poll until it is terminal.

        Also used to resume a run after a restart, since the active job handle
        is read back from the store on every iteration.
        """
        self.start_run(run_id)
        polled_handle, polls = None, 0
        while True:
            run = self.runs.get(run_id)
            if run is None:
                raise RunNotFoundError(run_id)
            if RunStatus(run.status).terminal:
                return self._snapshot(run)
            handle = self._current_handle(run)
            if handle is None:
                log.error("Running run has no active job", extra={"run_id": run_id, "stage": self._stage_label(run)})
                return self._snapshot(run)
            if handle != polled_handle:
                polled_handle, polls = handle, 0

            if polls >= self.poll_max_attempts:
                status: JobStatus = JobFailed(reason=f"Timed out after {polls} status checks")
            else:
                self.sleep(self.poll_interval)
                polls += 1
                try:
                    status = self.providers.get(run.provider).poll_status(handle)
                except ProviderError as e:
                    status = JobFailed(reason=e.message)
                self.runs.mark_polled(run_id, self.clock())
            self.on_job_outcome(handle, status)

    def get_run_status(self, run_id: str) -> RunSnapshot:
        run = self.runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return self._snapshot(run)

    def sweep(self) -> SweepResult:
        """Find runs that no worker or webhook is moving forward.

        Pending runs older than the stall grace were never started. Blocking
        runs whose poll loop has been silent for one poll interval plus the
        grace lost their worker. Callback runs whose current job is older than
        the wait budget are checked with the provider once and, if still
        unfinished, failed as timed out, which applies the retry policy.
        """
        now = self.clock()
        grace = timedelta(seconds=self.stall_grace)
        result = SweepResult(
            unstarted=self.runs.list_unstarted_ids(created_before=now - grace),
            orphaned=self.runs.list_active_ids(
                driving_mode=DrivingMode.BLOCKING.value,
                idle_before=now - grace - timedelta(seconds=self.poll_interval),
            ),
        )
        budget = self.poll_interval * self.poll_max_attempts
        overdue = self.runs.list_overdue_jobs(
            dispatched_before=now - timedelta(seconds=budget),
            driving_mode=DrivingMode.CALLBACK.value,
        )
        for handle, provider_name in overdue:
            try:
                status = self.providers.get(provider_name).poll_status(handle)
            except ProviderError as e:
                log.warning("Status check for overdue job %s failed: %s", handle, e.message)
                status = JobPending()
            if isinstance(status, JobPending):
                status = JobFailed(reason=f"Timed out waiting {budget:.0f}s for a provider callback")
            if self.on_job_outcome(handle, status):
                result.expired.append(handle)
        return result

    # -- transitions --------------------------------------------------------

    def _settle(self, db: Session, run: StagingRun, settled: Settled | None) -> None:
        # Immediate results and dispatch failures chain without waiting for an event.
        while settled is not None:
            status, handle = settled
            settled = self._apply(db, run, status, handle)

    def _apply(self, db: Session, run: StagingRun, status: JobStatus, job_handle: str | None) -> Settled | None:
        if isinstance(status, JobPending):
            return None
        plan = StagingPlan.from_dict(run.plan)
        index, attempt = run.current_stage_index, run.current_attempt
        stage = plan.stages[index]
        extra = {"run_id": run.id, "stage": self._stage_label(run)}

        if isinstance(status, JobFailed):
            log.warning("Attempt %d failed: %s", attempt + 1, status.reason, extra=extra)
            return self._fail_attempt(db, run, plan, stage, job_handle, reason=status.reason)

        before = ImageRef.from_dict(run.latest_image)
        try:
            after = self.images.ingest(run.id, status.result_ref, f"stage-{index}-attempt-{attempt}")
            verdict = self.validator.validate(before, after, stage)
        except (ImageStoreError, ImageDecodeError) as e:
            log.warning("Result image unusable: %s", e.message, extra=extra)
            return self._fail_attempt(db, run, plan, stage, job_handle, reason=e.message)

        if not verdict.passed:
            log.warning("Validation failed: %s", ", ".join(t.value for t in verdict.tags), extra=extra)
            return self._fail_attempt(
                db, run, plan, stage, job_handle,
                violations=tuple(verdict.tags),
                items_added=verdict.item_count_estimate,
            )

        self._append_result(run, StageResult(
            stage_index=index,
            stage_kind=stage.kind,
            succeeded=True,
            items_added=verdict.item_count_estimate,
            validation_passed=True,
            retry_count=attempt,
            result_image=after,
            job_handle=job_handle,
        ))
        run.latest_image = after.to_dict()
        log.info("Stage passed validation (%d items)", verdict.item_count_estimate, extra=extra)

        if index + 1 < len(plan):
            run.current_stage_index = index + 1
            run.current_attempt = 0
            return self._dispatch(db, run, plan.stages[index + 1].instruction)

        run.status = RunStatus.COMPLETED.value
        run.final_image = after.to_dict()
        log.info("Run completed", extra=extra)
        return None

    def _fail_attempt(
        self,
        db: Session,
        run: StagingRun,
        plan: StagingPlan,
        stage: StageConfig,
        job_handle: str | None,
        *,
        violations: tuple[ViolationTag, ...] = (),
        items_added: int = 0,
        reason: str | None = None,
    ) -> Settled | None:
        index, attempt = run.current_stage_index, run.current_attempt
        self._append_result(run, StageResult(
            stage_index=index,
            stage_kind=stage.kind,
            succeeded=False,
            items_added=items_added,
            validation_passed=False,
            validation_violations=violations,
            retry_count=attempt,
            job_handle=job_handle,
            error=reason,
        ))
        if attempt + 1 < MAX_STAGE_ATTEMPTS:
            run.current_attempt = attempt + 1
            log.info("Retrying with corrections", extra={"run_id": run.id, "stage": self._stage_label(run)})
            return self._dispatch(db, run, build_corrective_instruction(stage, violations))

        detail = ", ".join(t.value for t in violations) or reason or "unknown error"
        run.status = RunStatus.FAILED.value
        run.error_message = (
            f"Stage {index + 1} of {len(plan)} ({stage.kind.value}) failed after "
            f"{attempt + 1} attempts: {detail}"
        )
        log.error(run.error_message, extra={"run_id": run.id, "stage": self._stage_label(run)})
        return None

    def _dispatch(self, db: Session, run: StagingRun, instruction: str) -> Settled | None:
        """Submit the current stage attempt. Returns an outcome when one is already known."""
        plan = StagingPlan.from_dict(run.plan)
        stage = plan.stages[run.current_stage_index]
        extra = {"run_id": run.id, "stage": self._stage_label(run)}
        callback_url = None
        if run.driving_mode == DrivingMode.CALLBACK.value and self.callback_url:
            callback_url = self.callback_url.replace("{provider}", run.provider)
        try:
            outcome = self.providers.get(run.provider).dispatch(
                ImageRef.from_dict(run.latest_image), stage,
                instruction=instruction, callback_url=callback_url, plan=plan,
            )
        except (ProviderError, ImageStoreError, ImageDecodeError) as e:
            log.warning("Dispatch failed: %s", e.message, extra=extra)
            return JobFailed(reason=e.message), None

        if isinstance(outcome, ImmediateResult):
            handle = f"immediate-{uuid.uuid4()}"
            self.runs.record_job(db, run, handle, run.current_attempt, instruction, self.clock())
            return JobSucceeded(result_ref=outcome.result_ref), handle

        self.runs.record_job(db, run, outcome.handle, run.current_attempt, instruction, self.clock())
        log.info("Dispatched attempt %d as job %s", run.current_attempt + 1, outcome.handle, extra=extra)
        return None

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _append_result(run: StagingRun, result: StageResult) -> None:
        run.stage_results = [*(run.stage_results or []), result.to_dict()]

    @staticmethod
    def _current_handle(run: StagingRun) -> str | None:
        handles = run.stage_job_handles or []
        index = run.current_stage_index
        return handles[index] if 0 <= index < len(handles) else None

    def _is_current(self, run: StagingRun, job_handle: str) -> bool:
        return run.status == RunStatus.RUNNING.value and self._current_handle(run) == job_handle

    @staticmethod
    def _stage_label(run: StagingRun) -> str:
        index = run.current_stage_index
        stages = (run.plan or {}).get("stages") or []
        if 0 <= index < len(stages):
            return f"{index}:{stages[index]['kind']}"
        return "-"

    @staticmethod
    def _snapshot(run: StagingRun) -> RunSnapshot:
        plan = StagingPlan.from_dict(run.plan)
        index = run.current_stage_index
        return RunSnapshot(
            id=run.id,
            status=RunStatus(run.status),
            room_category=RoomCategory(run.room_category),
            style_profile=StyleProfile(run.style_profile),
            current_stage_index=index,
            current_stage_kind=plan.stages[index].kind if 0 <= index < len(plan) else None,
            stage_count=len(plan),
            stage_results=[StageResult.from_dict(r) for r in run.stage_results or []],
            final_image=ImageRef.from_dict(run.final_image),
            error_message=run.error_message,
        )
