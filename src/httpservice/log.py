"""Log sinks for request tracing.

The request pipeline only ever calls ``logger.log(level, message, metadata)``;
anything with that method satisfies :class:`Logger`. Two sinks ship with
the package:

* :class:`ConsoleLogger` -- writes to **stderr** through a Rich
  :class:`~rich.console.Console`, dropping records below a minimum level.
  Respects ``NO_COLOR`` and ``TERM=dumb``.
* :class:`NullLogger` -- discards everything.

A process-wide default sink is managed with :func:`get_logger`,
:func:`set_logger` and :func:`reset_logger`; an
:class:`~httpservice.client.HTTPService` constructed without an explicit
logger uses it.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape

from httpservice.models import LogLevel

_LEVEL_STYLES: dict[LogLevel, str] = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "cyan",
    LogLevel.NOTICE: "blue",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
    LogLevel.CRITICAL: "bold white on red",
}


@runtime_checkable
class Logger(Protocol):
    """Sink for log records emitted by the request pipeline."""

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None: ...


class ConsoleLogger:
    """Rich-formatted logger writing to stderr.

    Args:
        min_level: Records below this level are dropped.
        no_color: Disable colour and Rich markup. Also forced on by
            ``NO_COLOR`` or ``TERM=dumb``.
        console: Console to write to; defaults to a stderr console.

    Example::

        set_logger(ConsoleLogger(min_level=LogLevel.DEBUG))
    """

    def __init__(
        self,
        min_level: LogLevel = LogLevel.INFO,
        no_color: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        self.min_level = LogLevel(min_level)
        self._no_color = no_color or _should_disable_color()
        self._console = console or Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    def is_enabled(self, level: LogLevel) -> bool:
        return level.severity >= self.min_level.severity

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not self.is_enabled(level):
            return
        timestamp = datetime.now().strftime("%H:%M:%S")
        label = level.value.upper()
        details = "".join(f" {key}={value}" for key, value in (metadata or {}).items())

        if self._no_color:
            print(f"{timestamp} {label} {message}{details}", file=sys.stderr, flush=True)
            return

        style = _LEVEL_STYLES[level]
        line = f"[dim]{timestamp}[/dim] [{style}]{label:<8}[/{style}] {escape(message)}"
        if details:
            line += f"[dim]{escape(details)}[/dim]"
        self._console.print(line, highlight=False, soft_wrap=True)


class NullLogger:
    """Logger that discards every record."""

    def log(
        self,
        level: LogLevel,
        message: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        pass


def _should_disable_color() -> bool:
    """``True`` when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide default logger
# ------------------------------------------------------------------ #

_logger: Optional[Logger] = None


def get_logger(default_level: LogLevel = LogLevel.INFO) -> Logger:
    """Return the process-wide logger.

    If none has been installed via :func:`set_logger`, a
    :class:`ConsoleLogger` at *default_level* is created and installed.
    """
    global _logger
    if _logger is None:
        _logger = ConsoleLogger(min_level=default_level)
    return _logger


def set_logger(logger: Logger) -> None:
    """Install *logger* as the process-wide logger."""
    global _logger
    _logger = logger


def reset_logger() -> None:
    """Forget the process-wide logger. Mainly for test isolation."""
    global _logger
    _logger = None
