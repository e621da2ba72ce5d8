from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from seowriter.core.database import Base

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (
    Index("idx_jobs_status_created", "status", "created_at", postgresql_where=text("status = 'pending'")),
    Index("idx_jobs_status_updated", "status", "updated_at"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True)
  status: Mapped[str] = mapped_column(String, nullable=False)
  progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
  updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
  attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  last_attempt_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

  input_url: Mapped[str] = mapped_column(Text, nullable=False)
  input_topic: Mapped[str] = mapped_column(Text, nullable=False)
  input_keywords: Mapped[list] = mapped_column(JsonType, nullable=False)
  input_length: Mapped[int] = mapped_column(Integer, nullable=False)
  input_additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

  result_meta_title: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_content_markdown: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_faq_raw: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_schema_json_string: Mapped[str | None] = mapped_column(Text, nullable=True)
  result_pages: Mapped[list | None] = mapped_column(JsonType, nullable=True)

  error: Mapped[str | None] = mapped_column(Text, nullable=True)
