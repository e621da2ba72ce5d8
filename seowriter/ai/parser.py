"""Split delimited model output into article sections."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_META_TITLE = re.compile(r"META TITLE:[ \t]*(.*?)(?:\n|$)", re.IGNORECASE)
_META_DESCRIPTION = re.compile(r"META DESCRIPTION:[ \t]*(.*?)(?:\n|$)", re.IGNORECASE)
_CONTENT = re.compile(r"===CONTENT START===\s*([\s\S]*?)\s*===CONTENT END===")
_FAQ = re.compile(r"===FAQ START===\s*([\s\S]*?)\s*===FAQ END===")
_SCHEMA = re.compile(r"===SCHEMA START===\s*([\s\S]*?)\s*===SCHEMA END===")
_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")


class OutputParseError(ValueError):
  """Raised when a required section is missing, empty or malformed."""

  def __init__(self, section: str, detail: str) -> None:
    super().__init__(f"{section}: {detail}")
    self.section = section


@dataclass(frozen=True)
class ParsedSections:
  meta_title: str
  meta_description: str
  content_markdown: str
  faq_raw: str
  schema_json_string: str
  schema_json: Any


def _extract(pattern: re.Pattern[str], text: str, section: str) -> str:
  match = pattern.search(text)
  if match is None:
    raise OutputParseError(section, "not found in output")
  value = match.group(1).strip()
  if not value:
    raise OutputParseError(section, "section is empty")
  return value


def parse_sections(raw: str) -> ParsedSections:
  """Parse generator output; every section is required."""
  meta_title = _extract(_META_TITLE, raw, "META TITLE")
  meta_description = _extract(_META_DESCRIPTION, raw, "META DESCRIPTION")
  content = _extract(_CONTENT, raw, "CONTENT")
  faq = _extract(_FAQ, raw, "FAQ")
  schema_block = _extract(_SCHEMA, raw, "SCHEMA")

  fence = _JSON_FENCE.search(schema_block)
  if fence is None:
    raise OutputParseError("SCHEMA", "JSON code fence not found")
  schema_string = fence.group(1).strip()
  try:
    schema_json = json.loads(schema_string)
  except json.JSONDecodeError as exc:
    raise OutputParseError("SCHEMA", f"invalid JSON: {exc}") from exc

  return ParsedSections(
    meta_title=meta_title,
    meta_description=meta_description,
    content_markdown=content,
    faq_raw=faq,
    schema_json_string=schema_string,
    schema_json=schema_json,
  )
