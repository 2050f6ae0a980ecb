"""
Display sink contract consumed by the ingestion, stats and update components.

The presentation layer is external. Anything with these three methods can be
handed to the engines; the headless daemon uses :class:`LoggingSink`.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import enum
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Severity(enum.StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class DisplaySink(Protocol):
    """Receives labelled values for display."""

    def update_module(self, index: int, percent: int, voltage: float) -> None:
        """Show the charge bar and voltage of one module."""

    def update_stat(self, field: str, text: str) -> None:
        """Show one formatted aggregate-stats field."""

    def show_status(self, message: str, severity: Severity) -> None:
        """Show a short transient status message."""


_LEVELS = {
    Severity.info: logging.INFO,
    Severity.success: logging.INFO,
    Severity.warning: logging.WARNING,
    Severity.error: logging.ERROR,
}


class LoggingSink:
    """Sink that writes every update to the log. Used when no UI is attached."""

    def update_module(self, index: int, percent: int, voltage: float) -> None:
        logger.debug("Module %d: %d%% (%.1f V)", index, percent, voltage)

    def update_stat(self, field: str, text: str) -> None:
        logger.debug("Stat %s = %s", field, text)

    def show_status(self, message: str, severity: Severity) -> None:
        logger.log(_LEVELS[severity], "Status: %s", message)
