"""Per-run, in-memory, capped log buffer with offset polling.

Entries live only in process memory and are lost on restart.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice

from bddrunner.config import settings

logger = logging.getLogger(__name__)


@dataclass
class LogChunk:
    """Lines from the requested offset onward and the log's total length."""

    lines: list[str]
    total: int


@dataclass(frozen=True)
class LogEntry:
    """One appended line, as stored, and its absolute offset."""

    offset: int
    line: str


@dataclass
class _RunLog:
    lines: deque[str]
    dropped: int = 0
    eviction: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def total(self) -> int:
        return self.dropped + len(self.lines)


class LogStore(ABC):
    """Run-id keyed log storage used by the executor and the API."""

    @abstractmethod
    def append(self, run_id: str, line: str) -> LogEntry:
        """Timestamp and append a line. Returns the stored line and its absolute offset."""

    @abstractmethod
    def read(self, run_id: str, offset: int = 0) -> LogChunk:
        """Return lines from *offset* onward without blocking."""

    @abstractmethod
    def evict(self, run_id: str) -> None:
        """Forget a run's log."""

    @abstractmethod
    def schedule_eviction(self, run_id: str, delay: float) -> None:
        """Forget a run's log after *delay* seconds."""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class InMemoryLogBuffer(LogStore):
    """Ring buffer per run.

    Offsets count every line ever appended to the run, so truncating old
    entries never shifts what a poller has already seen and ``total`` never
    decreases while the run is buffered. An offset older than the retained
    window reads from the oldest retained line.
    """

    def __init__(self, max_lines: int = 5000) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.max_lines = max_lines
        self._logs: dict[str, _RunLog] = {}

    def append(self, run_id: str, line: str) -> LogEntry:
        log = self._logs.get(run_id)
        if log is None:
            log = self._logs[run_id] = _RunLog(lines=deque(maxlen=self.max_lines))
        if len(log.lines) == self.max_lines:
            log.dropped += 1
        stamped = f"[{_timestamp()}] {line}"
        log.lines.append(stamped)
        return LogEntry(offset=log.total - 1, line=stamped)

    def read(self, run_id: str, offset: int = 0) -> LogChunk:
        log = self._logs.get(run_id)
        if log is None:
            return LogChunk(lines=[], total=0)
        start = max(offset - log.dropped, 0)
        return LogChunk(lines=list(islice(log.lines, start, None)), total=log.total)

    def evict(self, run_id: str) -> None:
        log = self._logs.pop(run_id, None)
        if log is not None and log.eviction is not None:
            log.eviction.cancel()

    def schedule_eviction(self, run_id: str, delay: float) -> None:
        log = self._logs.get(run_id)
        if log is None:
            return
        if log.eviction is not None:
            log.eviction.cancel()
        loop = asyncio.get_running_loop()
        log.eviction = loop.call_later(delay, self._evict_scheduled, run_id, log)
        logger.debug("log_buffer: run %s evicts in %.0fs", run_id, delay)

    def _evict_scheduled(self, run_id: str, log: _RunLog) -> None:
        # Only drop the log the timer was set for
        if self._logs.get(run_id) is log:
            del self._logs[run_id]

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._logs


log_buffer = InMemoryLogBuffer(max_lines=settings.log_max_lines)


def get_log_store() -> LogStore:
    """Dependency that provides the process-wide log buffer."""
    return log_buffer
