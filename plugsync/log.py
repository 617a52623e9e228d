"""
Logging setup for plugsync.

Every module logs through ``logging.getLogger(__name__)``. This module wires
the ``plugsync`` logger to stderr, an optional log file, and an in-memory
buffer whose contents back the ``log()`` operation.
"""

import logging
from collections import deque
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
BUFFER_SIZE = 500


class MessageBuffer(logging.Handler):
    """
    Logging handler keeping the most recent formatted records in memory.

    Attributes:
        messages: Bounded deque of formatted log lines (oldest first)
    """

    def __init__(self, capacity: int = BUFFER_SIZE):
        super().__init__()
        self.messages: deque[str] = deque(maxlen=capacity)
        self.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.messages.append(self.format(record))
        except Exception:
            self.handleError(record)


_buffer = MessageBuffer()
_root = logging.getLogger("plugsync")
_root.addHandler(_buffer)
_root.setLevel(logging.DEBUG)


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """
    Configure the plugsync logger.

    Args:
        level: Minimum level for stderr and file output
        log_file: Optional file receiving the same records

    Calling this again replaces previously installed stream/file handlers.
    """
    for handler in list(_root.handlers):
        if handler is not _buffer:
            _root.removeHandler(handler)
            handler.close()

    stream = logging.StreamHandler()
    stream.setLevel(level)
    stream.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    _root.addHandler(stream)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _root.addHandler(file_handler)

    _root.setLevel(logging.DEBUG)
    _root.propagate = False


def get_messages() -> list[str]:
    """Return buffered log messages, oldest first."""
    return list(_buffer.messages)


def clear_messages() -> None:
    """Drop all buffered log messages."""
    _buffer.messages.clear()
