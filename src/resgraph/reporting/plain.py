from __future__ import annotations

import sys
from typing import Any

from .base import ICONS, Reporter, TaskRecord, TaskStatus, describe_end, get_verbosity

_LEVEL_COLORS = {"INFO": "32", "WARN": "33", "ERROR": "31", "VERB": "36"}


class PlainReporter(Reporter):
    """Line-oriented text on stderr, colored only on a terminal."""

    def __init__(self, stream=None, use_color: bool | None = None):
        self.stream = stream or sys.stderr
        if use_color is None:
            use_color = getattr(self.stream, "isatty", lambda: False)()
        self.use_color = use_color

    def _line(self, label: str, message: str, suffix: str = "") -> None:
        tag = f"{label}{suffix}"
        if self.use_color:
            tag = f"\x1b[{_LEVEL_COLORS[label]}m{tag}\x1b[0m"
        self.stream.write(f"{tag}: {message}\n")

    def end_task(
        self,
        rec: TaskRecord,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> TaskRecord:
        super().end_task(rec, status, **final_meta)
        self.stream.write(f" {ICONS.get(status, '?')} {describe_end(rec)}\n")
        return rec

    def status(self, message: str, **fields: Any) -> None:
        self._line("INFO", message)

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self._line("VERB", message, str(level))

    def error(self, message: str, **fields: Any) -> None:
        self._line("ERROR", message)

    def warning(self, message: str, **fields: Any) -> None:
        self._line("WARN", message)

    def section(self, title: str) -> None:
        self.stream.write(f"\n[{title}]\n")
