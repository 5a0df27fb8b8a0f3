"""Stderr logging for markdown-threads.

The CLI configures the process logger from ``--verbose``/``--no-color``;
library code calls ``get_logger()`` and gets a quiet default when nothing
was configured.
"""

import sys
import traceback
from enum import Enum
from typing import Any, TextIO


class LogLevel(Enum):
    """Log levels for console output."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


_PREFIXES = {
    LogLevel.DEBUG: ("DEBUG: ", "36"),  # Cyan
    LogLevel.INFO: ("", "37"),  # White
    LogLevel.WARNING: ("Warning: ", "33"),  # Yellow
    LogLevel.ERROR: ("Error: ", "31"),  # Red
}


class Logger:
    """Leveled logger writing to stderr.

    Attributes:
        verbose: If True, DEBUG messages are printed
        use_colors: If True, ANSI color codes are used
    """

    def __init__(
        self, verbose: bool = False, use_colors: bool = True, stream: TextIO | None = None
    ) -> None:
        self.verbose = verbose
        self._stream = stream
        self.use_colors = use_colors and self.stream.isatty()

    @property
    def stream(self) -> TextIO:
        # Resolved on each write so redirected stderr is honoured
        return self._stream if self._stream is not None else sys.stderr

    def _colorize(self, text: str, color_code: str) -> str:
        if not self.use_colors:
            return text
        return f"\033[{color_code}m{text}\033[0m"

    def _emit(self, level: LogLevel, message: str, details: dict[str, Any] | None = None) -> None:
        prefix, color = _PREFIXES[level]
        formatted = self._colorize(f"{prefix}{message}", color)
        if details:
            formatted += " (" + " ".join(f"{k}={v!r}" for k, v in details.items()) + ")"
        print(formatted, file=self.stream)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message with optional key=value details (verbose only)."""
        if self.verbose:
            self._emit(LogLevel.DEBUG, message, kwargs)

    def info(self, message: str) -> None:
        """Log info message."""
        self._emit(LogLevel.INFO, message)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with optional key=value details."""
        self._emit(LogLevel.WARNING, message, kwargs)

    def error(self, message: str, suggestion: str | None = None) -> None:
        """Log error message with an optional hint on how to fix it."""
        self._emit(LogLevel.ERROR, message)
        if suggestion:
            print(self._colorize(f"  -> {suggestion}", "33"), file=self.stream)

    def exception(self, message: str, exc: BaseException) -> None:
        """Log an exception; the traceback is only printed in verbose mode."""
        self.error(f"{message}: {exc}")

        if self.verbose:
            tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            print(self._colorize(tb, "90"), file=self.stream)  # Gray


_logger: Logger | None = None


def init_logger(verbose: bool = False, use_colors: bool = True) -> Logger:
    """Configure the process logger.

    Args:
        verbose: Enable debug output
        use_colors: Enable ANSI color codes

    Returns:
        Logger instance
    """
    global _logger
    _logger = Logger(verbose=verbose, use_colors=use_colors)
    return _logger


def get_logger() -> Logger:
    """Return the process logger, creating a non-verbose one if needed."""
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger
