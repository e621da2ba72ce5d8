"""Run one worker invocation; meant for cron or scheduler triggers."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from sqlalchemy.exc import SQLAlchemyError

from seowriter.config import get_settings
from seowriter.core.logging import initialize_logging
from seowriter.services.jobs import run_worker_once

logger = logging.getLogger("scripts.run_worker")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Process at most one pending SEO article job.")
  parser.add_argument("--no-file-log", action="store_true", help="Log to stdout only.")
  return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
  args = _parse_args(argv)
  settings = get_settings()
  if args.no_file_log:
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO, stream=sys.stdout)
  else:
    initialize_logging(settings)

  try:
    result = asyncio.run(run_worker_once(settings))
  except (SQLAlchemyError, OSError, RuntimeError, ValueError) as exc:
    logger.error("Worker invocation failed: %s", exc, exc_info=True)
    print(json.dumps({"error": str(exc)}))
    return 1

  payload = asdict(result)
  payload["outcome"] = result.outcome.value
  print(json.dumps(payload))
  return 0


if __name__ == "__main__":
  sys.exit(main())
