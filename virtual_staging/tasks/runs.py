from __future__ import annotations
import logging
from celery.signals import worker_ready
from virtual_staging.core.errors import RunNotFoundError
from virtual_staging.core.factory import get_driver
from virtual_staging.core.workflow import DrivingMode
from virtual_staging.tasks.celery_app import celery_app

log = logging.getLogger(__name__)


@celery_app.task(name="start_staging_run")
def start_staging_run(run_id: str) -> None:
    driver = get_driver()
    try:
        snap = driver.start_run(run_id)
    except RunNotFoundError:
        log.error("Run not found", extra={"run_id": run_id, "stage": "-"})
        return
    run = driver.runs.get(run_id)
    if run is not None and run.driving_mode == DrivingMode.BLOCKING.value and not snap.status.terminal:
        drive_staging_run.delay(run_id)


@celery_app.task(name="drive_staging_run")
def drive_staging_run(run_id: str) -> None:
    try:
        snap = get_driver().run_until_done(run_id)
    except RunNotFoundError:
        log.error("Run not found", extra={"run_id": run_id, "stage": "-"})
        return
    log.info("Run finished with status %s", snap.status.value, extra={"run_id": run_id, "stage": "-"})


@celery_app.task(name="process_provider_callback", bind=True, max_retries=5, default_retry_delay=2)
def process_provider_callback(self, job_handle: str, status: str, result_ref: str | None = None,
                              reason: str | None = None) -> bool:
    driver = get_driver()
    # The job row commits with the dispatching transaction; a very fast callback can arrive first.
    if driver.runs.find_run_id_for_job(job_handle) is None:
        if self.request.retries >= self.max_retries:
            log.warning("Dropping callback for unknown job %s", job_handle)
            return False
        raise self.retry()
    return driver.on_provider_callback(job_handle, status, result_ref=result_ref, reason=reason)


@celery_app.task(name="sweep_staging_runs")
def sweep_staging_runs() -> dict:
    """Pick up runs nothing is moving: unstarted, without a live poll loop, or waiting too long for a webhook."""
    result = get_driver().sweep()
    for run_id in result.unstarted:
        log.info("Starting run that was never started", extra={"run_id": run_id, "stage": "-"})
        start_staging_run.delay(run_id)
    for run_id in result.orphaned:
        log.info("Resuming run with no active poll loop", extra={"run_id": run_id, "stage": "-"})
        drive_staging_run.delay(run_id)
    if result.expired:
        log.warning("Timed out %d job(s) waiting for a callback", len(result.expired))
    return {"unstarted": len(result.unstarted), "orphaned": len(result.orphaned), "expired": len(result.expired)}


@worker_ready.connect
def _sweep_on_start(sender=None, **kwargs):
    sweep_staging_runs.delay()
