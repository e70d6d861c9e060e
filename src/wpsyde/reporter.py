"""
User-facing progress reporting.

A Reporter is passed explicitly into packaging, install and CLI operations
instead of module-level print helpers. Every message is mirrored to the
reporter's logger at DEBUG, so --verbose runs keep a complete log trail.

Usage:
    reporter = Reporter()                 # stdout
    reporter = Reporter(io.StringIO())    # capture in tests
    reporter = Reporter.quiet()           # library use
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

_COLORS = {
    "reset": "\x1b[0m",
    "bold": "\x1b[1m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "cyan": "\x1b[36m",
}


class Reporter:
    """Writes human-readable status lines to a stream."""

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        color: bool | None = None,
        logger: logging.Logger | None = None,
        enabled: bool = True,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        if color is None:
            color = bool(getattr(self._stream, "isatty", lambda: False)())
        self._color = color
        self._logger = logger or logging.getLogger("wpsyde.reporter")
        self._enabled = enabled
        self._progress_open = False
        self.warnings: list[str] = []
        self.errors: list[str] = []

    @classmethod
    def quiet(cls) -> Reporter:
        """Reporter that only mirrors to the log."""
        return cls(enabled=False)

    def _paint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{_COLORS[color]}{text}{_COLORS['reset']}"

    def _emit(self, text: str, color: str | None = None) -> None:
        self._logger.debug(text)
        if not self._enabled:
            return
        if self._progress_open:
            self._stream.write("\n")
            self._progress_open = False
        self._stream.write((self._paint(text, color) if color else text) + "\n")
        self._stream.flush()

    def heading(self, message: str) -> None:
        self._emit(message, "bold")

    def step(self, message: str) -> None:
        self._emit(message, "blue")

    def info(self, message: str, *args: Any) -> None:
        self._emit(message % args if args else message)

    def success(self, message: str) -> None:
        self._emit(f"OK {message}", "green")

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        self._emit(f"WARNING {message}", "yellow")

    def error(self, message: str) -> None:
        self.errors.append(message)
        self._emit(f"ERROR {message}", "red")

    def progress(self, received: int, total: int | None) -> None:
        """Render download progress in place; total may be unknown."""
        if not self._enabled or not total:
            return
        percent = round(received * 100 / total)
        self._stream.write(f"\rDownloading... {percent}% ({received}/{total} bytes)")
        self._progress_open = received < total
        if received >= total:
            self._stream.write("\n")
        self._stream.flush()
