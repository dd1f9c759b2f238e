"""Kernel log buffer.

Every subsystem of Aurora writes to one append-only log owned by the
kernel context.  It is the simulated equivalent of ``dmesg``: boot
messages, process lifecycle events, service registration, and the audit
trail of application loads all end up here.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single immutable record (level, message, source, pid).
- **Logger** — the buffer itself, with filtering, tailing, and clearing.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries.

    IntEnum so that levels compare with ``<`` / ``>`` and minimum-level
    filtering is a plain comparison.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "process").
        pid: The process the event concerns, if any.

    """

    level: LogLevel
    message: str
    source: str
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message`` (with the pid when known)."""
        origin = self.source if self.pid is None else f"{self.source}[{self.pid}]"
        return f"[{self.level.name}] {origin}: {self.message}"


class Logger:
    """The kernel's in-memory log: appended to, filtered, tailed, never edited."""

    def __init__(self, *, min_level: LogLevel = LogLevel.DEBUG) -> None:
        """Create an empty logger.

        Args:
            min_level: Entries below this level are dropped on arrival.

        """
        self._entries: list[LogEntry] = []
        self._min_level = min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Return a copy of every kept entry, oldest first."""
        return list(self._entries)

    @property
    def min_level(self) -> LogLevel:
        """Return the level below which entries are discarded."""
        return self._min_level

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int | None = None,
    ) -> None:
        """Record one event, unless it is below ``min_level``.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            pid: Process associated with the event.

        """
        if level < self._min_level:
            return
        self._entries.append(LogEntry(level=level, message=message, source=source, pid=pid))

    def debug(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Log at DEBUG level."""
        self.log(LogLevel.DEBUG, message, source=source, pid=pid)

    def info(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Log at INFO level."""
        self.log(LogLevel.INFO, message, source=source, pid=pid)

    def warning(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Log at WARNING level."""
        self.log(LogLevel.WARNING, message, source=source, pid=pid)

    def error(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Log at ERROR level."""
        self.log(LogLevel.ERROR, message, source=source, pid=pid)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching every given criterion.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            pid: If set, only return entries about this process.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if pid is not None:
            result = [e for e in result if e.pid == pid]
        return result

    def tail(self, count: int = 10) -> list[LogEntry]:
        """Return the most recent *count* entries."""
        if count <= 0:
            return []
        return self._entries[-count:]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
