"""create staging_runs and stage_jobs tables

Revision ID: 0001
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "staging_runs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("room_category", sa.String(length=32), nullable=False),
        sa.Column("style_profile", sa.String(length=32), nullable=False),
        sa.Column("stage_selection", sa.JSON(), nullable=True),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("driving_mode", sa.String(length=20), nullable=False),
        sa.Column("plan", sa.JSON(), nullable=False),
        sa.Column("current_stage_index", sa.Integer(), nullable=False),
        sa.Column("current_attempt", sa.Integer(), nullable=False),
        sa.Column("stage_job_handles", sa.JSON(), nullable=False),
        sa.Column("stage_results", sa.JSON(), nullable=False),
        sa.Column("original_image", sa.JSON(), nullable=False),
        sa.Column("latest_image", sa.JSON(), nullable=False),
        sa.Column("final_image", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("polled_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_staging_runs_status", "staging_runs", ["status"])
    op.create_table(
        "stage_jobs",
        sa.Column("job_handle", sa.String(length=255), primary_key=True),
        sa.Column("run_id", sa.String(length=36), sa.ForeignKey("staging_runs.id"), nullable=False),
        sa.Column("stage_index", sa.Integer(), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("instruction", sa.Text(), nullable=False),
        sa.Column("dispatched_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stage_jobs_run_id", "stage_jobs", ["run_id"])

def downgrade():
    op.drop_index("ix_stage_jobs_run_id", table_name="stage_jobs")
    op.drop_table("stage_jobs")
    op.drop_index("ix_staging_runs_status", table_name="staging_runs")
    op.drop_table("staging_runs")
