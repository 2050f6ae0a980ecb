"""
Unit tests for aggregate-stats lookup and display.

Tests verify:
- Field formatting: HH:MM:SS duration, 2/3/1 decimal units.
- lookup() returns the entry whose id matches; unknown ids raise
  ModuleNotFound; out-of-range ids raise InvalidModuleId; fractional ids
  never match.
- An unreadable stats file makes show() push "N/A" to every field.
- Non-numeric fields are left out instead of failing the lookup.
- refresh_active() only re-displays while the panel is visible.

CHANGELOG:
- 2026-10-18: Initial creation
- 2026-10-18: Cover fractional and integral float ids

TODO:
- None
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from dock.src.models import BatteryAggregate
from dock.src.stats import (
    NOT_AVAILABLE,
    STAT_FIELDS,
    AggregateStatsLookup,
    InvalidModuleId,
    ModuleNotFound,
    StatsUnavailable,
    format_aggregate,
    format_duration,
)

_ENTRY_2 = {
    "id": 2,
    "total_charging_time": 3725,
    "wh": 1234.5678,
    "ah": 56.78912,
    "min_temp": 12.34,
    "max_temp": 41.06,
    "soh": 97.25,
    "soc": 64,
}


def _write_stats(path: Path, modules: list[dict[str, object]]) -> None:
    path.write_text(json.dumps({"modules": modules}))


# ---------------------------------------------------------------------------
# Test: formatting
# ---------------------------------------------------------------------------


class TestFormatting:
    """Display formatting of aggregate statistics."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "00:00:00"), (59.9, "00:00:59"), (3725, "01:02:05"), (360000, "100:00:00")],
    )
    def test_format_duration(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected

    def test_format_full_aggregate(self) -> None:
        agg = BatteryAggregate(**_ENTRY_2)

        assert format_aggregate(agg) == {
            "total_charging_time": "01:02:05",
            "wh": "1234.57 Wh",
            "ah": "56.789 Ah",
            "min_temp": "12.3 C",
            "max_temp": "41.1 C",
            "soh": "97.2 %",
            "soc": "64.0 %",
        }

    def test_missing_fields_omitted(self) -> None:
        agg = BatteryAggregate(id=1, wh=10.0)

        assert format_aggregate(agg) == {"wh": "10.00 Wh"}


# ---------------------------------------------------------------------------
# Test: lookup
# ---------------------------------------------------------------------------


class TestLookup:
    """Finding a module's entry in the stats file."""

    def test_lookup_matches_id(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [{"id": 0, "wh": 1.0}, _ENTRY_2])
        stats = AggregateStatsLookup(path, sink)

        agg = stats.lookup(2)

        assert agg.module_id == 2
        assert agg.watt_hours == pytest.approx(1234.5678)
        assert agg.state_of_charge_pct == 64

    def test_lookup_unknown_id(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [{"id": 0, "wh": 1.0}])
        stats = AggregateStatsLookup(path, sink)

        with pytest.raises(ModuleNotFound):
            stats.lookup(5)

    def test_fractional_id_does_not_match(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [{"id": 2.7, "wh": 1.0}])
        stats = AggregateStatsLookup(path, sink)

        with pytest.raises(ModuleNotFound):
            stats.lookup(2)

    def test_integral_float_id_matches(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [{"id": 2.7, "wh": 1.0}, {"id": 2.0, "wh": 5.0}])
        stats = AggregateStatsLookup(path, sink)

        assert stats.lookup(2).watt_hours == 5.0

    @pytest.mark.parametrize("module_id", [-1, 8, 100])
    def test_lookup_invalid_id(self, tmp_path: Path, sink, module_id: int) -> None:
        stats = AggregateStatsLookup(tmp_path / "battery_stats.json", sink)

        with pytest.raises(InvalidModuleId):
            stats.lookup(module_id)

    def test_lookup_missing_file(self, tmp_path: Path, sink) -> None:
        stats = AggregateStatsLookup(tmp_path / "absent.json", sink)

        with pytest.raises(StatsUnavailable):
            stats.lookup(0)

    def test_lookup_modules_not_array(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        path.write_text('{"modules": "none"}')
        stats = AggregateStatsLookup(path, sink)

        with pytest.raises(StatsUnavailable):
            stats.lookup(0)

    def test_non_numeric_fields_skipped(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [{"id": 1, "wh": "lots", "soc": 50.0, "soh": None}])
        stats = AggregateStatsLookup(path, sink)

        agg = stats.lookup(1)

        assert agg.watt_hours is None
        assert agg.state_of_health_pct is None
        assert agg.state_of_charge_pct == 50.0


# ---------------------------------------------------------------------------
# Test: show / refresh
# ---------------------------------------------------------------------------


class TestShow:
    """Pushing formatted stats to the sink."""

    def test_show_pushes_fields(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [_ENTRY_2])
        stats = AggregateStatsLookup(path, sink)

        result = stats.show(2)

        assert result is not None
        assert ("total_charging_time", "01:02:05") in sink.stats
        assert ("ah", "56.789 Ah") in sink.stats
        assert len(sink.stats) == len(STAT_FIELDS)
        assert stats.selected_module == 2

    def test_unavailable_file_shows_na(self, tmp_path: Path, sink) -> None:
        stats = AggregateStatsLookup(tmp_path / "absent.json", sink)

        assert stats.show(3) is None

        assert sink.stats == [(field, NOT_AVAILABLE) for field in STAT_FIELDS]
        assert stats.selected_module == 3

    def test_module_not_found_leaves_display(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [_ENTRY_2])
        stats = AggregateStatsLookup(path, sink)

        assert stats.show(4) is None
        assert sink.stats == []

    def test_invalid_id_does_not_select(self, tmp_path: Path, sink) -> None:
        stats = AggregateStatsLookup(tmp_path / "battery_stats.json", sink)

        assert stats.show(42) is None
        assert stats.selected_module is None
        assert sink.stats == []


class TestRefreshActive:
    """Periodic refresh of the open stats panel."""

    def test_no_selection_is_noop(self, tmp_path: Path, sink) -> None:
        stats = AggregateStatsLookup(tmp_path / "battery_stats.json", sink)

        assert stats.refresh_active(True) is None
        assert sink.stats == []

    def test_hidden_panel_is_noop(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [_ENTRY_2])
        stats = AggregateStatsLookup(path, sink)
        stats.show(2)
        sink.stats.clear()

        assert stats.refresh_active(False) is None
        assert sink.stats == []

    def test_visible_panel_picks_up_new_values(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [_ENTRY_2])
        stats = AggregateStatsLookup(path, sink)
        stats.show(2)
        sink.stats.clear()

        _write_stats(path, [{**_ENTRY_2, "wh": 2000.0}])
        stats.refresh_active(True)

        assert ("wh", "2000.00 Wh") in sink.stats

    def test_shown_module_keeps_refreshing(self, tmp_path: Path, sink) -> None:
        path = tmp_path / "battery_stats.json"
        _write_stats(path, [_ENTRY_2])
        stats = AggregateStatsLookup(path, sink)
        stats.show(2)
        sink.stats.clear()

        assert stats.refresh_active(True) is not None
        assert stats.selected_module == 2
        assert sink.stats != []
