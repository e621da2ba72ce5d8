"""Render a completed job's article as a Word document."""

from __future__ import annotations

import io
import re

from docx import Document
from docx.shared import Inches
from fastapi import HTTPException, status

from seowriter.jobs.models import JobRecord, JobResult, JobStatus
from seowriter.storage.jobs_repo import JobsRepository

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_NUMBERED = re.compile(r"^\d+\.\s")
_BOLD = re.compile(r"(\*\*[^*]+\*\*)")
_HEADING_PREFIXES = (("### ", 3), ("## ", 2), ("# ", 1))


def _add_inline_runs(paragraph, line: str) -> None:
  for part in _BOLD.split(line):
    if not part:
      continue
    if part.startswith("**") and part.endswith("**"):
      paragraph.add_run(part[2:-2]).bold = True
    else:
      paragraph.add_run(part)


def _add_markdown(document, markdown: str) -> None:
  for line in markdown.splitlines():
    if not line.strip():
      document.add_paragraph("")
      continue
    heading = next(((line[len(prefix) :], level) for prefix, level in _HEADING_PREFIXES if line.startswith(prefix)), None)
    if heading is not None:
      document.add_heading(heading[0], level=heading[1])
    elif line.startswith(("- ", "* ")):
      document.add_paragraph(line[2:], style="List Bullet")
    elif _NUMBERED.match(line):
      document.add_paragraph(_NUMBERED.sub("", line, count=1), style="List Number")
    else:
      _add_inline_runs(document.add_paragraph(), line)


def _add_faq(document, faq_raw: str) -> None:
  document.add_heading("Frequently Asked Questions", level=1)
  for line in faq_raw.splitlines():
    line = line.strip()
    if line.startswith("Q:"):
      paragraph = document.add_paragraph()
      paragraph.add_run("Q: ").bold = True
      paragraph.add_run(line[2:].strip())
    elif line.startswith("A:"):
      document.add_paragraph(line[2:].strip())


def build_word_document(result: JobResult) -> bytes:
  """Return ``.docx`` bytes with the meta fields, article body and FAQ."""
  document = Document()
  for section in document.sections:
    section.top_margin = section.bottom_margin = Inches(1)
    section.left_margin = section.right_margin = Inches(1)

  document.add_heading("Meta Title", level=2)
  document.add_paragraph(result.meta_title)
  document.add_heading("Meta Description", level=2)
  document.add_paragraph(result.meta_description)
  document.add_heading("SEO Content", level=1)
  _add_markdown(document, result.content_markdown)
  if result.faq_raw.strip():
    _add_faq(document, result.faq_raw)

  buffer = io.BytesIO()
  document.save(buffer)
  return buffer.getvalue()


async def export_job_word(job_id: str, jobs_repo: JobsRepository) -> tuple[str, bytes]:
  """Return ``(filename, payload)`` for a completed job, or raise 404/400."""
  record: JobRecord | None = await jobs_repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.", headers={"Cache-Control": "no-store"})
  if record.status != JobStatus.COMPLETED or record.result is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job not completed yet.", headers={"Cache-Control": "no-store"})
  return f"seo-content-{job_id}.docx", build_word_document(record.result)
