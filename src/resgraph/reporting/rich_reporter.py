from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .base import Reporter, TaskRecord, TaskStatus, describe_end, get_verbosity

_STATUS_ICON = {
    TaskStatus.SUCCESS: "[green]✔[/]",
    TaskStatus.FAILED: "[red]✖[/]",
    TaskStatus.CACHED: "[dim]=[/]",
}


def _transient_from_env() -> bool:
    value = os.getenv("RESGRAPH_PROGRESS_TRANSIENT", "0")
    return value.lower() in ("1", "true", "yes")


class RichReporter(Reporter):
    """Spinner per in-flight fetch or parse on stderr.

    Completion lines are printed as tasks end, or held back until the last
    spinner stops when ``RESGRAPH_PROGRESS_TRANSIENT`` is set.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True, highlight=False)
        self._transient = _transient_from_env()
        self.progress: Progress | None = None
        self._spinners: Dict[int, Any] = {}
        self._held: List[str] = []

    def _ensure_progress(self) -> Progress:
        if self.progress is None:
            self.progress = Progress(
                SpinnerColumn(spinner_name="dots"),
                TextColumn("{task.description}"),
                TimeElapsedColumn(),
                transient=True,
                console=self.console,
            )
            self.progress.start()
        return self.progress

    def start_task(self, task_id: str, name: str, **meta: Any) -> TaskRecord:
        rec = super().start_task(task_id, name, **meta)
        self._spinners[id(rec)] = self._ensure_progress().add_task(name, total=None)
        return rec

    def end_task(
        self,
        rec: TaskRecord,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> TaskRecord:
        super().end_task(rec, status, **final_meta)
        spinner = self._spinners.pop(id(rec), None)
        if spinner is not None and self.progress is not None:
            self.progress.remove_task(spinner)
        line = f"{_STATUS_ICON.get(status, '')} {describe_end(rec)}"
        if self._transient:
            self._held.append(line)
        else:
            self.console.print(line)
        if not self._spinners:
            self.flush()
        return rec

    def status(self, message: str, **fields: Any) -> None:
        self.console.print(f"[green]INFO[/]: {message}")

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self.console.print(f"[cyan]VERB{level}[/]: {message}")

    def error(self, message: str, **fields: Any) -> None:
        self.console.print(f"[bold red]ERROR[/]: {message}")

    def warning(self, message: str, **fields: Any) -> None:
        self.console.print(f"[yellow]WARN[/]: {message}")

    def section(self, title: str) -> None:
        self.console.rule(title)

    def flush(self) -> None:
        if self.progress is None:
            return
        try:
            self.progress.stop()
        finally:
            self.progress = None
            if self._held:
                self.console.print("\n".join(self._held))
                self._held.clear()
