from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator
from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import Session
from virtual_staging.core.errors import RunNotFoundError
from virtual_staging.db.models import StageJob, StagingRun


def select_run_for_update(run_id: str) -> Select:
    return select(StagingRun).where(StagingRun.id == run_id).with_for_update()


class RunRepository:
    """Load/save staging runs.

    ``locked`` is the per-run mutual exclusion: the row is read with
    SELECT ... FOR UPDATE and every change made inside the block is committed
    in the same transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def add(self, run: StagingRun) -> StagingRun:
        db = self.session_factory()
        try:
            db.add(run)
            db.commit()
            db.refresh(run)
            return run
        finally:
            db.close()

    def get(self, run_id: str) -> StagingRun | None:
        db = self.session_factory()
        try:
            return db.get(StagingRun, run_id)
        finally:
            db.close()

    @contextmanager
    def locked(self, run_id: str) -> Iterator[tuple[Session, StagingRun]]:
        db = self.session_factory()
        try:
            run = db.execute(select_run_for_update(run_id)).scalar_one_or_none()
            if run is None:
                raise RunNotFoundError(run_id)
            yield db, run
            db.commit()
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    def record_job(
        self,
        db: Session,
        run: StagingRun,
        job_handle: str,
        attempt: int,
        instruction: str,
        dispatched_at: datetime | None = None,
    ) -> None:
        handles = list(run.stage_job_handles or [])
        while len(handles) <= run.current_stage_index:
            handles.append(None)
        handles[run.current_stage_index] = job_handle
        run.stage_job_handles = handles
        db.merge(StageJob(
            job_handle=job_handle,
            run_id=run.id,
            stage_index=run.current_stage_index,
            attempt=attempt,
            instruction=instruction,
            dispatched_at=dispatched_at or datetime.utcnow(),
        ))

    def find_run_id_for_job(self, job_handle: str) -> str | None:
        db = self.session_factory()
        try:
            job = db.get(StageJob, job_handle)
            return job.run_id if job else None
        finally:
            db.close()

    def mark_polled(self, run_id: str, at: datetime) -> None:
        db = self.session_factory()
        try:
            db.execute(update(StagingRun).where(StagingRun.id == run_id).values(polled_at=at))
            db.commit()
        finally:
            db.close()

    def list_active_ids(self, driving_mode: str | None = None, idle_before: datetime | None = None) -> list[str]:
        """Running runs, oldest first.

        With ``idle_before``, only runs whose poll loop has not reported since
        then (falling back to the last row update before the first poll).
        """
        db = self.session_factory()
        try:
            stmt = select(StagingRun.id).where(StagingRun.status == "running")
            if driving_mode is not None:
                stmt = stmt.where(StagingRun.driving_mode == driving_mode)
            if idle_before is not None:
                stmt = stmt.where(func.coalesce(StagingRun.polled_at, StagingRun.updated_at) < idle_before)
            return list(db.execute(stmt.order_by(StagingRun.created_at)).scalars())
        finally:
            db.close()

    def list_unstarted_ids(self, created_before: datetime) -> list[str]:
        db = self.session_factory()
        try:
            stmt = (
                select(StagingRun.id)
                .where(StagingRun.status == "pending", StagingRun.created_at < created_before)
                .order_by(StagingRun.created_at)
            )
            return list(db.execute(stmt).scalars())
        finally:
            db.close()

    def list_overdue_jobs(self, dispatched_before: datetime, driving_mode: str) -> list[tuple[str, str]]:
        """``(job_handle, provider)`` for the current attempt of running runs dispatched before the cutoff."""
        db = self.session_factory()
        try:
            stmt = (
                select(StageJob.job_handle, StagingRun.provider)
                .join(StagingRun, StagingRun.id == StageJob.run_id)
                .where(
                    StagingRun.status == "running",
                    StagingRun.driving_mode == driving_mode,
                    StageJob.stage_index == StagingRun.current_stage_index,
                    StageJob.attempt == StagingRun.current_attempt,
                    StageJob.dispatched_at < dispatched_before,
                )
                .order_by(StageJob.dispatched_at)
            )
            return [(handle, provider) for handle, provider in db.execute(stmt)]
        finally:
            db.close()
