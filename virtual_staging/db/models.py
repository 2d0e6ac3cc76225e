from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Integer, JSON, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from virtual_staging.db.session import Base


class StagingRun(Base):
    __tablename__ = "staging_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    room_category: Mapped[str] = mapped_column(String(32), nullable=False)
    style_profile: Mapped[str] = mapped_column(String(32), nullable=False)
    stage_selection: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    driving_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="blocking")

    plan: Mapped[dict] = mapped_column(JSON, nullable=False)
    current_stage_index: Mapped[int] = mapped_column(Integer, default=-1, nullable=False)
    current_attempt: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stage_job_handles: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    stage_results: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    original_image: Mapped[dict] = mapped_column(JSON, nullable=False)
    latest_image: Mapped[dict] = mapped_column(JSON, nullable=False)
    final_image: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Heartbeat of the blocking poll loop; a stale value means no worker is driving the run.
    polled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class StageJob(Base):
    """One dispatched provider job; routes inbound callbacks to their run."""
    __tablename__ = "stage_jobs"

    job_handle: Mapped[str] = mapped_column(String(255), primary_key=True)
    run_id: Mapped[str] = mapped_column(String(36), ForeignKey("staging_runs.id"), index=True, nullable=False)
    stage_index: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False)
    instruction: Mapped[str] = mapped_column(Text, nullable=False)
    dispatched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
