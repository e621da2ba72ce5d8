"""Normalization helpers for URLs, keywords and word counting."""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]*`")
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]+\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_BOLD = re.compile(r"(\*\*|__)(.*?)\1")
_ITALIC = re.compile(r"(\*|_)(.*?)\1")
_HTML_TAG = re.compile(r"<[^>]+>")
_SPECIAL = re.compile(r"[^\w\s'-]")
_ALNUM = re.compile(r"[A-Za-z0-9]")


def normalize_url(url: str) -> str:
  """Force https, add a missing scheme and drop the trailing slash of the path."""
  normalized = url.strip()
  if not _SCHEME.match(normalized):
    normalized = "https://" + normalized
  normalized = re.sub(r"^http://", "https://", normalized, flags=re.IGNORECASE)
  parts = urlsplit(normalized)
  if not parts.netloc:
    return normalized
  return urlunsplit(("https", parts.netloc.lower(), parts.path.rstrip("/"), parts.query, parts.fragment))


def split_keywords(keywords: str | list[str] | None) -> list[str]:
  """Split comma-separated keywords, trimming and de-duplicating case-insensitively."""
  if keywords is None:
    return []
  parts = keywords.split(",") if isinstance(keywords, str) else [str(item) for item in keywords]
  seen: set[str] = set()
  result: list[str] = []
  for part in parts:
    value = part.strip()
    if not value or value.lower() in seen:
      continue
    seen.add(value.lower())
    result.append(value)
  return result


def word_count(markdown: str) -> int:
  """Count meaningful words in markdown, ignoring formatting and code."""
  if not markdown or not markdown.strip():
    return 0
  text = _CODE_BLOCK.sub("", markdown)
  text = _INLINE_CODE.sub("", text)
  text = _IMAGE.sub("", text)
  text = _LINK.sub(r"\1", text)
  text = _HEADING.sub("", text)
  text = _BOLD.sub(r"\2", text)
  text = _ITALIC.sub(r"\2", text)
  text = _HTML_TAG.sub("", text)
  text = _SPECIAL.sub(" ", text)
  return len([word for word in text.split() if _ALNUM.search(word)])
