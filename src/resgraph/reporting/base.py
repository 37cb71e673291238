"""Reporter interface shared by the CLI backends and the loader.

Loads run concurrently, so several tasks with the same id (one
``archive.fetch`` per archive, say) can be open at once. Records are
therefore tracked by identity, never by id.
"""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, Optional

__all__ = [
    "TaskStatus",
    "TaskRecord",
    "Reporter",
    "set_reporter",
    "get_reporter",
    "set_verbosity",
    "get_verbosity",
    "task",
    "format_stats",
    "describe_end",
]

STAT_KEYS = ("archive", "key", "files", "directories", "bytes", "resources")


class TaskStatus(Enum):
    RUNNING = auto()
    SUCCESS = auto()
    FAILED = auto()
    CACHED = auto()


ICONS = {
    TaskStatus.SUCCESS: "✔",
    TaskStatus.FAILED: "✖",
    TaskStatus.CACHED: "=",
}


@dataclass(slots=True, eq=False)
class TaskRecord:
    task_id: str
    name: str
    status: TaskStatus = TaskStatus.RUNNING
    start_time: float = field(default_factory=time.perf_counter)
    end_time: Optional[float] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return self.end_time - self.start_time

    @property
    def throughput(self) -> Optional[float]:
        """Bytes per second for tasks that recorded a ``bytes`` stat."""
        size = self.meta.get("bytes")
        if not isinstance(size, int) or self.duration <= 0:
            return None
        return size / self.duration


def format_stats(meta: Dict[str, Any]) -> str:
    stats = [f"{k}={meta[k]}" for k in STAT_KEYS if k in meta]
    return f" [{' '.join(stats)}]" if stats else ""


def describe_end(rec: TaskRecord) -> str:
    """One completion line: name, timing, stats."""
    timing = f"{rec.duration:.2f}s"
    rate = rec.throughput
    if rate is not None:
        timing += f", {rate / (1024 * 1024):.1f} MiB/s"
    if rec.status is TaskStatus.CACHED:
        timing = "cached"
    return f"{rec.name} ({timing}){format_stats(rec.meta)}"


_VERBOSITY: int = 0


def set_verbosity(level: int) -> None:
    global _VERBOSITY
    _VERBOSITY = max(0, level)


def get_verbosity() -> int:
    return _VERBOSITY


class Reporter:
    """Sink for task lifecycle events and status messages."""

    def start_task(self, task_id: str, name: str, **meta: Any) -> TaskRecord:
        return TaskRecord(task_id, name, meta=meta)

    def end_task(
        self,
        rec: TaskRecord,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> TaskRecord:
        rec.status = status
        rec.end_time = time.perf_counter()
        rec.meta.update(final_meta)
        return rec

    def status(self, message: str, **fields: Any) -> None:
        raise NotImplementedError

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        pass

    def error(self, message: str, **fields: Any) -> None:
        raise NotImplementedError

    def warning(self, message: str, **fields: Any) -> None:
        self.status(message, **fields)

    def section(self, title: str) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        pass


_ACTIVE_REPORTER: Reporter | None = None


def set_reporter(rep: Reporter) -> None:
    global _ACTIVE_REPORTER
    _ACTIVE_REPORTER = rep


def get_reporter() -> Reporter:
    global _ACTIVE_REPORTER
    if _ACTIVE_REPORTER is None:
        from .plain import PlainReporter  # local import to avoid cycle

        _ACTIVE_REPORTER = PlainReporter(stream=sys.stderr)
    return _ACTIVE_REPORTER


@contextmanager
def task(task_id: str, name: str, **meta: Any) -> Iterator[TaskRecord]:
    """Bracket a unit of work.

    The body may add to ``rec.meta`` or set ``rec.status`` (for example to
    ``CACHED``); a still-running record ends as ``SUCCESS``.
    """
    rep = get_reporter()
    rec = rep.start_task(task_id, name, **meta)
    try:
        yield rec
    except BaseException:
        rep.end_task(rec, TaskStatus.FAILED)
        raise
    status = rec.status
    if status is TaskStatus.RUNNING:
        status = TaskStatus.SUCCESS
    rep.end_task(rec, status)
