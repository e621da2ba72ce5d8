"""Create jobs table.

Revision ID: a9c41e7d2b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "a9c41e7d2b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "jobs",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("progress", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("created_at", sa.BigInteger(), nullable=False),
    sa.Column("updated_at", sa.BigInteger(), nullable=False),
    sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("last_attempt_at", sa.BigInteger(), nullable=True),
    sa.Column("input_url", sa.Text(), nullable=False),
    sa.Column("input_topic", sa.Text(), nullable=False),
    sa.Column("input_keywords", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("input_length", sa.Integer(), nullable=False),
    sa.Column("input_additional_notes", sa.Text(), nullable=True),
    sa.Column("result_meta_title", sa.Text(), nullable=True),
    sa.Column("result_meta_description", sa.Text(), nullable=True),
    sa.Column("result_content_markdown", sa.Text(), nullable=True),
    sa.Column("result_faq_raw", sa.Text(), nullable=True),
    sa.Column("result_schema_json_string", sa.Text(), nullable=True),
    sa.Column("result_pages", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.PrimaryKeyConstraint("id"),
    sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_jobs_progress_range"),
    sa.CheckConstraint("status IN ('pending', 'crawling', 'generating', 'parsing', 'completed', 'failed')", name="ck_jobs_status"),
  )
  op.create_index("idx_jobs_status_created", "jobs", ["status", "created_at"], unique=False, postgresql_where=sa.text("status = 'pending'"))
  op.create_index("idx_jobs_status_updated", "jobs", ["status", "updated_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("idx_jobs_status_updated", table_name="jobs")
  op.drop_index("idx_jobs_status_created", table_name="jobs")
  op.drop_table("jobs")
