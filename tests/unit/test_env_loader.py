from __future__ import annotations

import os
from pathlib import Path

import pytest

from seowriter.utils.env import ENV_FILE_VAR, env_file_path, load_env_file


def test_env_file_path_honours_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
  monkeypatch.setenv(ENV_FILE_VAR, str(tmp_path / "local.env"))
  assert env_file_path() == tmp_path / "local.env"

  monkeypatch.delenv(ENV_FILE_VAR)
  assert env_file_path().name == ".env"


def test_load_env_file_keeps_real_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text(
    "# local settings\n"
    "export SEO_TEST_MODEL='gpt-4o-mini'\n"
    'SEO_TEST_DSN="postgresql://localhost/seo"\n'
    "SEO_TEST_KEEP=from-file\n"
    "not a pair\n",
    encoding="utf-8",
  )
  monkeypatch.setenv("SEO_TEST_KEEP", "from-env")
  monkeypatch.delenv("SEO_TEST_MODEL", raising=False)
  monkeypatch.delenv("SEO_TEST_DSN", raising=False)

  applied = load_env_file(env_file)

  assert applied == ["SEO_TEST_MODEL", "SEO_TEST_DSN"]
  assert os.environ["SEO_TEST_MODEL"] == "gpt-4o-mini"
  assert os.environ["SEO_TEST_DSN"] == "postgresql://localhost/seo"
  assert os.environ["SEO_TEST_KEEP"] == "from-env"


def test_missing_env_file_is_ignored(tmp_path: Path) -> None:
  assert load_env_file(tmp_path / "absent.env") == []
