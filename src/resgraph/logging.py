"""Logging glue for resgraph.

Library modules log through the stdlib ``resgraph`` logger. Once
``configure_logging`` has run, records are forwarded to the active reporter
so whichever backend the CLI chose renders them. Without it the logger
behaves like any other library logger and stays quiet by default.
"""

from __future__ import annotations

import logging

from .reporting import get_reporter

_LOGGER_NAME = "resgraph"
_STEP_PREFIX = "  ->"

__all__ = ["get_logger", "configure_logging", "step"]


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


class _ReporterHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        rep = get_reporter()
        msg = self.format(record)
        if record.levelno >= logging.ERROR:
            rep.error(msg)
        elif record.levelno >= logging.WARNING:
            rep.warning(msg)
        elif record.levelno >= logging.INFO:
            rep.status(msg)
        else:
            rep.verbose(msg, level=1)


def configure_logging(verbosity: int = 0) -> None:
    """Route the package logger into the reporter; ``-v`` enables debug."""
    logger = get_logger()
    logger.setLevel(logging.DEBUG if verbosity >= 1 else logging.INFO)
    for h in list(logger.handlers):
        if isinstance(h, _ReporterHandler):
            logger.removeHandler(h)
    handler = _ReporterHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def step(message: str) -> None:
    get_reporter().status(f"{_STEP_PREFIX} {message}")
