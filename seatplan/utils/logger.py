"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional

from seatplan.utils.config import get_settings


_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Engine, repository and controller layers share one pipe-delimited format
    so a batch run can be followed end to end in a single stream.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)


class RunLogger(logging.LoggerAdapter):
    """Prefixes every record with the batch run id."""

    def process(
        self,
        msg: Any,
        kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"run_id={self.extra['run_id']} | {msg}", kwargs


def get_run_logger(name: str, run_id: str) -> RunLogger:
    """Return a logger bound to one batch run."""
    return RunLogger(get_logger(name), {"run_id": run_id})
