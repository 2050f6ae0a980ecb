"""
Health file writer for the dock daemon.

Writes a JSON health file at a configurable path with four fields:
- last_poll_ts: ISO timestamp of the most recent telemetry poll.
- last_stats_refresh_ts: ISO timestamp of the most recent stats-panel refresh.
- last_update_check_ts: ISO timestamp of the most recent update check.
- update_state: State of the update session after that check.

The file is replaced atomically on every state change so a supervisor or
HEALTHCHECK never reads a half-written document.

CHANGELOG:
- 2026-10-18: Write through a temp file and os.replace
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes dock health status to a JSON file.

    Each mutating method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest status.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._last_stats_refresh_ts: str | None = None
        self._last_update_check_ts: str | None = None
        self._update_state: str = "idle"

    def record_poll(self) -> None:
        """Record a telemetry poll and write health file."""
        self._last_poll_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def record_stats_refresh(self) -> None:
        """Record a stats-panel refresh and write health file."""
        self._last_stats_refresh_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def record_update_check(self, state: str) -> None:
        """Record an update check and the session state it ended in.

        Args:
            state: Update session state name, e.g. ``"available"``.
        """
        self._last_update_check_ts = datetime.now(tz=UTC).isoformat()
        self._update_state = state
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_poll_ts": self._last_poll_ts,
            "last_stats_refresh_ts": self._last_stats_refresh_ts,
            "last_update_check_ts": self._last_update_check_ts,
            "update_state": self._update_state,
        }
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data))
        os.replace(tmp, self.path)
