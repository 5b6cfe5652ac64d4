"""Shared test fixtures for httpservice.

Provides reusable fixtures for isolating configuration, managing the global
logger, and recording log output. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Optional

import pytest

from httpservice.log import reset_logger
from httpservice.models import LogLevel


# ---------------------------------------------------------------------------
# Auto-reset global logger state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logger_between_tests() -> None:
    """Forget the process-wide logger after every test.

    A ConsoleLogger caches its stderr stream at creation time; pytest swaps
    that stream per test, so a stale logger would write to a closed file.
    """
    yield
    reset_logger()


# ---------------------------------------------------------------------------
# Log recording
# ---------------------------------------------------------------------------


class RecordingLogger:
    """Logger that keeps every record for later assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[LogLevel, str, Optional[dict[str, str]]]] = []

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.records.append((level, message, dict(metadata) if metadata is not None else None))

    def messages(self, level: Optional[LogLevel] = None) -> list[str]:
        return [m for lvl, m, _ in self.records if level is None or lvl == level]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_CACHE_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all HTTPSERVICE_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))

    for var in [
        "HTTPSERVICE_BASE_URL",
        "HTTPSERVICE_TIMEOUT",
        "HTTPSERVICE_LOG_LEVEL",
        "HTTPSERVICE_CONFIG",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path
