from __future__ import annotations

from .base import Reporter


class SilentReporter(Reporter):
    """Tracks tasks but prints nothing (library and test default)."""

    def status(self, message: str, **fields):
        pass

    def error(self, message: str, **fields):
        pass

    def warning(self, message: str, **fields):
        pass

    def section(self, title: str) -> None:
        pass
