from __future__ import annotations

import itertools
import json
import sys
from typing import Any, Dict, Optional

from .base import Reporter, TaskRecord, TaskStatus, get_verbosity

# Status lines starting with one of these become structured summary events.
SUMMARY_PREFIXES: Dict[str, str] = {
    "load summary": "load",
    "archive summary": "archive",
    "codec summary": "codec",
}


def parse_summary(message: str) -> Optional[Dict[str, str]]:
    """Split ``"<Prefix> summary: k=v k=v"`` into its type and pairs."""
    lower = message.lower()
    for prefix, stype in SUMMARY_PREFIXES.items():
        if lower.startswith(prefix):
            _, _, kv_text = message.partition(":")
            pairs = dict(
                token.split("=", 1) for token in kv_text.split() if "=" in token
            )
            return {"summary_type": stype, **pairs}
    return None


class JsonLinesReporter(Reporter):
    """One JSON object per event on stdout.

    Task events carry a ``run`` number so that overlapping tasks sharing
    an id (two archives fetched at once) can be paired up by consumers.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._runs = itertools.count(1)
        self._run_of: Dict[int, int] = {}

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        obj = {**payload, "event": event}
        self.stream.write(json.dumps(obj, sort_keys=True, default=str) + "\n")

    def start_task(self, task_id: str, name: str, **meta: Any) -> TaskRecord:
        rec = super().start_task(task_id, name, **meta)
        run = self._run_of[id(rec)] = next(self._runs)
        self._emit("task_start", {**meta, "id": task_id, "run": run, "name": name})
        return rec

    def end_task(
        self,
        rec: TaskRecord,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> TaskRecord:
        super().end_task(rec, status, **final_meta)
        self._emit(
            "task_end",
            {
                **rec.meta,
                "id": rec.task_id,
                "run": self._run_of.pop(id(rec), None),
                "status": status.name.lower(),
                "duration_seconds": rec.duration,
            },
        )
        return rec

    def status(self, message: str, **fields: Any) -> None:
        summary = parse_summary(message)
        if summary is not None:
            self._emit(
                "summary", {**fields, **summary, "level": "info", "raw": message}
            )
        self._emit("status", {**fields, "message": message, "level": "info"})

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() < level:
            return
        self._emit(
            "status",
            {**fields, "message": message, "level": f"verbose{level}", "vlevel": level},
        )

    def error(self, message: str, **fields: Any) -> None:
        self._emit("status", {**fields, "message": message, "level": "error"})

    def warning(self, message: str, **fields: Any) -> None:
        self._emit("status", {**fields, "message": message, "level": "warning"})

    def section(self, title: str) -> None:
        self._emit("section", {"title": title})
