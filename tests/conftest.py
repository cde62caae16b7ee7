"""Pytest configuration shared by unit and end-to-end suites.

What:
  Put the in-repo source tree and the sample schema module on ``sys.path`` and
  isolate every test from settings files and ``ENVGATE_*`` variables found on
  the host.

Why:
  Tests must exercise ``envgate/src`` rather than an installed wheel, and the
  settings loader looks at the working directory and the environment, both of
  which would otherwise leak between tests.

How:
  Insert the source and tests directories once at import time, then use an
  autouse fixture that clears ``ENVGATE_CONFIG_PATH`` and moves into a fresh
  temporary directory for each test.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "envgate" / "src"
TESTS_DIR = Path(__file__).resolve().parent
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

import io

import pytest

from envgate.utils.logging import JsonLogger


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run each test from an empty directory with no settings override."""

    monkeypatch.delenv("ENVGATE_CONFIG_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    """Structured logger writing into an in-memory buffer."""

    return JsonLogger(stream=log_stream, component="envgate.test")
