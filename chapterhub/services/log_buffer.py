"""
chapterhub.services.log_buffer — In-Memory Log Tail for Executives
===================================================================

A bounded, thread-safe buffer attached to the ``logging`` tree so the
executive dashboard can read recent service activity (grants, denials,
reconciliation corrections) through ``GET /api/admin/logs`` without shell
access to the server.  The capture level is adjustable at runtime.

Nothing is persisted: the buffer is per process and empties on restart.
The audit trail of record is the ``admin_log`` table.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str

    @property
    def levelno(self) -> int:
        return logging.getLevelName(self.level) if self.level in VALID_LEVELS else 0


class LogBuffer:
    """Ring buffer of :class:`LogEntry` backed by a bounded deque."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_entries(
        self,
        tail: int = 200,
        level: str | None = None,
        logger_filter: str | None = None,
    ) -> list[dict[str, str]]:
        """Newest *tail* entries at or above *level* whose logger name
        starts with *logger_filter*, oldest first."""
        min_level = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(min_level, int):
            raise ValueError(f"Invalid level: {level}. Must be one of {VALID_LEVELS}")

        with self._lock:
            snapshot = list(self._entries)

        matched = [
            e for e in snapshot
            if e.levelno >= min_level
            and (not logger_filter or e.logger.startswith(logger_filter))
        ]
        if tail:
            matched = matched[-tail:]
        return [asdict(e) for e in matched]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    """Logging handler feeding a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            ))
        except Exception:
            self.handleError(record)


# ---------------------------------------------------------------------------
# Process-wide buffer
# ---------------------------------------------------------------------------
def get_buffer() -> LogBuffer:
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def _installed_handler() -> RingBufferHandler | None:
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RingBufferHandler):
            return handler
    return None


def install_handler(level: int = logging.INFO) -> RingBufferHandler:
    """Attach the buffer handler to the root logger (once per process).

    Uvicorn's loggers are switched to propagate so request logs reach the
    root handler as well.
    """
    handler = _installed_handler()
    if handler is not None:
        handler.setLevel(level)
        return handler

    handler = RingBufferHandler(get_buffer(), level=level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.addHandler(handler)
    if root.level > level or root.level == logging.NOTSET:
        root.setLevel(level)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).propagate = True
    return handler


def get_logs(
    tail: int = 200,
    level: str | None = None,
    logger_filter: str | None = None,
) -> list[dict[str, str]]:
    return get_buffer().get_entries(tail=tail, level=level, logger_filter=logger_filter)


def get_capture_level() -> str:
    handler = _installed_handler()
    if handler is None:
        return logging.getLevelName(logging.getLogger().getEffectiveLevel())
    return logging.getLevelName(handler.level)


def set_capture_level(level_name: str) -> str:
    """Change the minimum level captured into the buffer; returns it."""
    level_name = level_name.upper()
    if level_name not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {level_name}. Must be one of {VALID_LEVELS}")
    numeric = getattr(logging, level_name)
    install_handler(level=numeric)
    root = logging.getLogger()
    if root.level > numeric:
        root.setLevel(numeric)
    return level_name
