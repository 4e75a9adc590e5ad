"""Leveled logging for the raft core, with a replaceable process-wide logger."""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, TextIO


class PanicError(RuntimeError):
    """Raised when an internal invariant of the raft core is violated."""


def _header(level: str, message: str) -> str:
    return f"{level}: {message}"


def _format(msg: Any, args: tuple[Any, ...]) -> str:
    text = str(msg)
    return text % args if args else text


class DefaultLogger:
    """Writes leveled, optionally timestamped lines to a text stream.

    When ``stream`` is None the current ``sys.stderr`` is used at write time.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        prefix: str = "raft",
        timestamps: bool = True,
        debug: bool = False,
    ) -> None:
        self.stream = stream
        self.prefix = prefix
        self.timestamps = timestamps
        self.debug_enabled = debug
        self._lock = threading.Lock()

    def enable_timestamps(self) -> None:
        self.timestamps = True

    def enable_debug(self) -> None:
        self.debug_enabled = True

    def _output(self, line: str) -> None:
        stream = self.stream if self.stream is not None else sys.stderr
        stamp = time.strftime("%Y/%m/%d %H:%M:%S ") if self.timestamps else ""
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            stream.write(f"{self.prefix}{stamp}{line}")
            stream.flush()

    def debug(self, msg: Any, *args: Any) -> None:
        if self.debug_enabled:
            self._output(_header("DEBUG", _format(msg, args)))

    def info(self, msg: Any, *args: Any) -> None:
        self._output(_header("INFO", _format(msg, args)))

    def warning(self, msg: Any, *args: Any) -> None:
        self._output(_header("WARN", _format(msg, args)))

    def error(self, msg: Any, *args: Any) -> None:
        self._output(_header("ERROR", _format(msg, args)))

    def fatal(self, msg: Any, *args: Any) -> None:
        """Log the message and terminate with exit status 1."""
        self._output(_header("FATAL", _format(msg, args)))
        raise SystemExit(1)

    def panic(self, msg: Any, *args: Any) -> None:
        """Log the message and raise :class:`PanicError` carrying it."""
        text = _format(msg, args)
        self._output(text)
        raise PanicError(text)


_default_logger = DefaultLogger()
_logger_lock = threading.Lock()
_raft_logger: Any = _default_logger


def set_logger(logger: Any) -> None:
    """Replace the process-wide logger."""
    global _raft_logger
    with _logger_lock:
        _raft_logger = logger


def reset_default_logger() -> None:
    """Restore the built-in logger as the process-wide logger."""
    set_logger(_default_logger)


def get_logger() -> Any:
    """Return the process-wide logger."""
    with _logger_lock:
        return _raft_logger