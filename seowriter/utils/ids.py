"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import time


def now_ms() -> int:
  """Return the current wall-clock time in epoch milliseconds."""
  return int(time.time() * 1000)


def generate_job_id() -> str:
  """Return a new job identifier."""
  alphabet = string.ascii_lowercase + string.digits
  suffix = "".join(secrets.choice(alphabet) for _ in range(7))
  return f"job_{now_ms()}_{suffix}"
