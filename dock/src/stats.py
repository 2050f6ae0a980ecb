"""
On-demand lookup of one module's lifetime statistics.

The aggregate-stats file is written by the same producer as the telemetry
file but is only read when the operator opens a module's info panel, and
then refreshed on a slower interval while that panel stays visible. Since
the read is user-triggered, an unreadable file is shown as "N/A" in every
field instead of leaving possibly stale numbers on screen.

Operations:
- lookup(module_id): Load the file and return a BatteryAggregate.
- show(module_id): Select the module and push its formatted fields.
- refresh_active(panel_visible): Re-run show() for the selected module.

CHANGELOG:
- 2026-10-18: Initial creation
- 2026-10-18: Match ids by value so fractional ids no longer hit; drop clear_selection()

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

from dock.src.errors import DataCorruptionError, DockError, TransientIoError
from dock.src.json_source import load_json
from dock.src.models import BatteryAggregate
from dock.src.sink import DisplaySink

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

STAT_FIELDS: tuple[str, ...] = (
    "total_charging_time",
    "wh",
    "ah",
    "min_temp",
    "max_temp",
    "soh",
    "soc",
)
"""Sink field names, in display order. Same as the on-disk keys."""


class StatsLookupError(DockError):
    """Base class for aggregate-stats lookup failures."""


class InvalidModuleId(StatsLookupError):
    """The requested module id is outside the display's slot range."""


class StatsUnavailable(StatsLookupError):
    """The stats file could not be loaded or has the wrong shape."""


class ModuleNotFound(StatsLookupError):
    """The stats file has no entry for the requested module."""


def format_duration(seconds: float) -> str:
    """Format a second count as ``HH:MM:SS`` without rounding."""
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_aggregate(aggregate: BatteryAggregate) -> dict[str, str]:
    """Return display strings for the fields present in *aggregate*."""
    values: dict[str, tuple[float | None, str]] = {
        "total_charging_time": (aggregate.total_charging_seconds, ""),
        "wh": (aggregate.watt_hours, "{:.2f} Wh"),
        "ah": (aggregate.amp_hours, "{:.3f} Ah"),
        "min_temp": (aggregate.min_temp, "{:.1f} C"),
        "max_temp": (aggregate.max_temp, "{:.1f} C"),
        "soh": (aggregate.state_of_health_pct, "{:.1f} %"),
        "soc": (aggregate.state_of_charge_pct, "{:.1f} %"),
    }
    out: dict[str, str] = {}
    for field, (value, fmt) in values.items():
        if value is None:
            continue
        out[field] = format_duration(value) if field == "total_charging_time" else fmt.format(value)
    return out


def _numeric(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


class AggregateStatsLookup:
    """Look up and display per-module aggregate statistics.

    Args:
        path: Aggregate-stats JSON file written by the producer.
        sink: Display sink receiving ``update_stat`` calls.
        max_modules: Number of module slots; ids outside it are rejected.
        max_file_bytes: Files larger than this are rejected.
    """

    def __init__(
        self,
        path: str | Path,
        sink: DisplaySink,
        *,
        max_modules: int = 8,
        max_file_bytes: int = 1024 * 1024,
    ) -> None:
        self._path = Path(path)
        self._sink = sink
        self._max_modules = max_modules
        self._max_file_bytes = max_file_bytes
        self._selected: int | None = None

    @property
    def selected_module(self) -> int | None:
        return self._selected

    def lookup(self, module_id: int) -> BatteryAggregate:
        """Load the stats file and return the entry for *module_id*.

        Raises:
            InvalidModuleId: *module_id* is outside ``0..max_modules-1``.
            StatsUnavailable: The file is missing, unreadable or malformed.
            ModuleNotFound: No entry has a matching ``id``.
        """
        if not 0 <= module_id < self._max_modules:
            raise InvalidModuleId(f"invalid module id {module_id}")

        try:
            doc = load_json(self._path, max_size=self._max_file_bytes)
        except (TransientIoError, DataCorruptionError) as exc:
            raise StatsUnavailable(str(exc)) from exc

        modules = doc.get("modules") if isinstance(doc, dict) else None
        if not isinstance(modules, list):
            raise StatsUnavailable(f"{self._path}: 'modules' is not an array")

        for entry in modules:
            if not isinstance(entry, dict):
                continue
            entry_id = entry.get("id")
            if _numeric(entry_id) and entry_id == module_id:
                return self._build(module_id, entry)

        raise ModuleNotFound(f"module {module_id} not found in {self._path}")

    def show(self, module_id: int) -> BatteryAggregate | None:
        """Select *module_id* and push its statistics to the sink.

        Never raises. Returns the aggregate that was displayed, or ``None``.
        """
        try:
            if not 0 <= module_id < self._max_modules:
                raise InvalidModuleId(f"invalid module id {module_id}")
            self._selected = module_id
            aggregate = self.lookup(module_id)
        except InvalidModuleId:
            logger.error("Invalid module id: %d", module_id)
            return None
        except StatsUnavailable as exc:
            logger.warning("Aggregate stats unavailable: %s", exc)
            for field in STAT_FIELDS:
                self._sink.update_stat(field, NOT_AVAILABLE)
            return None
        except ModuleNotFound:
            logger.warning("Module %d not found in stats", module_id)
            return None

        for field, text in format_aggregate(aggregate).items():
            self._sink.update_stat(field, text)
        return aggregate

    def refresh_active(self, panel_visible: bool) -> BatteryAggregate | None:
        """Re-display the selected module if its panel is visible."""
        if self._selected is None or not panel_visible:
            return None
        return self.show(self._selected)

    def _build(self, module_id: int, entry: dict[str, Any]) -> BatteryAggregate:
        present = {key: entry[key] for key in STAT_FIELDS if _numeric(entry.get(key))}
        skipped = [key for key in STAT_FIELDS if key in entry and key not in present]
        if skipped:
            logger.debug("Module %d: non-numeric stats skipped: %s", module_id, skipped)
        return BatteryAggregate(id=module_id, **present)
