"""Load a local ``.env`` file before settings are read."""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILE_VAR = "SEO_ENV_FILE"


def env_file_path() -> Path:
  """Return ``$SEO_ENV_FILE`` when set, else ``.env`` beside the ``seowriter`` package."""
  configured = os.getenv(ENV_FILE_VAR, "").strip()
  if configured:
    return Path(configured).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def _parse_line(raw_line: str) -> tuple[str, str] | None:
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None
  line = line.removeprefix("export ").lstrip()
  key, sep, value = line.partition("=")
  key = key.strip()
  if not sep or not key:
    return None
  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
    value = value[1:-1]
  return key, value


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Copy ``KEY=value`` pairs into ``os.environ`` and return the keys applied.

  Existing variables are kept unless ``override`` is set.
  """
  if not path.is_file():
    return []

  applied: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    parsed = _parse_line(raw_line)
    if parsed is None:
      continue
    key, value = parsed
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)
  return applied
