"""
Telemetry ingestion engine for the producer's module-voltage file.

Polled on a fixed short interval. Each cycle reads the whole telemetry file
through :func:`~dock.src.json_source.load_json`, converts every module's bus
voltage into a charge percentage and pushes it to the display sink. The
engine is built to keep running on last-known-good values:

- Missing, truncated or half-written files leave the display untouched and
  are counted in an :class:`~dock.src.diagnostics.IngestionHealth`.
- Diagnostics fire on the healthy->failing boundary, then at most once per
  ``error_log_interval_s`` after ``burst_threshold`` failures, then once on
  recovery.
- A module with a missing or non-numeric voltage is skipped for that cycle
  only; the rest of the file is still applied.
- Out-of-range voltages are warned about at most once per
  ``out_of_range_warn_interval_s`` per module.

Operations:
- poll_once(): One read-parse-display cycle. Never raises.
- derived_percent(voltage, low, high): Calibration helper.

CHANGELOG:
- 2026-10-18: Initial creation
- 2026-10-18: Clamp before scaling, round halves up, re-arm per-slot skip notes

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import time
from pathlib import Path
from typing import Any

from dock.src.diagnostics import Clock, DegradedState, OnceEmitter, RateLimiter
from dock.src.errors import (
    DataCorruptionError,
    FileNotFound,
    StructureError,
    TransientIoError,
)
from dock.src.json_source import load_json
from dock.src.models import ModuleReading
from dock.src.sink import DisplaySink

logger = logging.getLogger(__name__)

VOLTAGE_FIELD = "bus_voltage"

DEFAULT_MAX_MODULES = 8
DEFAULT_VOLTAGE_LOW = 18.0
DEFAULT_VOLTAGE_HIGH = 21.0


def derived_percent(voltage: float, low: float, high: float) -> int:
    """Map *voltage* linearly onto 0-100 over ``[low, high]``, clamped.

    Halves round up (``50.5`` -> ``51``), not to even. Voltages outside the
    range are clamped before any arithmetic, so huge values cannot overflow.
    """
    if voltage <= low:
        return 0
    if voltage >= high:
        return 100
    percent = math.floor((voltage - low) / (high - low) * 100 + 0.5)
    return max(0, min(100, percent))


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


class TelemetryIngestionEngine:
    """Poll the telemetry file and drive the per-module display.

    Args:
        path: Telemetry JSON file written by the producer.
        sink: Display sink receiving ``update_module`` calls.
        max_modules: Number of module slots on the display.
        voltage_low: Voltage shown as 0 %.
        voltage_high: Voltage shown as 100 %.
        min_file_bytes: Files smaller than this are treated as mid-rewrite.
        max_file_bytes: Files larger than this are rejected.
        burst_threshold: Failures after which periodic reminders start.
        error_log_interval_s: Spacing of reminders during a failure burst.
        out_of_range_warn_interval_s: Spacing of per-module voltage warnings.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        path: str | Path,
        sink: DisplaySink,
        *,
        max_modules: int = DEFAULT_MAX_MODULES,
        voltage_low: float = DEFAULT_VOLTAGE_LOW,
        voltage_high: float = DEFAULT_VOLTAGE_HIGH,
        min_file_bytes: int = 50,
        max_file_bytes: int = 1024 * 1024,
        burst_threshold: int = 20,
        error_log_interval_s: float = 10.0,
        out_of_range_warn_interval_s: float = 60.0,
        clock: Clock = time.monotonic,
    ) -> None:
        if voltage_high <= voltage_low:
            raise ValueError("voltage_high must be greater than voltage_low")
        self._path = Path(path)
        self._sink = sink
        self._max_modules = max_modules
        self._low = voltage_low
        self._high = voltage_high
        self._min_file_bytes = min_file_bytes
        self._max_file_bytes = max_file_bytes
        self._state = DegradedState(
            burst_threshold=burst_threshold,
            error_log_interval_s=error_log_interval_s,
            clock=clock,
        )
        self._voltage_warnings = RateLimiter(out_of_range_warn_interval_s, clock=clock)
        self._once = OnceEmitter()

    @property
    def consecutive_failures(self) -> int:
        return self._state.consecutive_failures

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def poll_once(self) -> list[ModuleReading]:
        """Run one ingestion cycle.

        Returns:
            The readings pushed to the sink this cycle; empty if the file
            could not be used.
        """
        try:
            modules = self._load_modules()
        except (TransientIoError, DataCorruptionError) as exc:
            self._on_failure(exc)
            return []

        failures = self._state.record_success()
        if failures:
            logger.info("Telemetry recovered after %d failed polls", failures)

        return self._apply_modules(modules)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load_modules(self) -> list[Any]:
        doc = load_json(
            self._path,
            min_size=self._min_file_bytes,
            max_size=self._max_file_bytes,
        )
        if not isinstance(doc, dict):
            raise StructureError(f"{self._path}: top level is not an object")
        if "modules" not in doc:
            raise StructureError(f"{self._path}: 'modules' key not found")
        modules = doc["modules"]
        if not isinstance(modules, list):
            raise StructureError(
                f"{self._path}: 'modules' is not an array ({type(modules).__name__})"
            )
        return modules

    def _on_failure(self, exc: Exception) -> None:
        if not self._state.record_failure():
            return
        count = self._state.consecutive_failures
        if isinstance(exc, FileNotFound):
            logger.warning("Telemetry file unavailable (%d consecutive): %s", count, exc)
        elif isinstance(exc, TransientIoError):
            logger.warning("Telemetry file unusable (%d consecutive): %s", count, exc)
        else:
            logger.warning("Telemetry parse errors detected (%d consecutive): %s", count, exc)
            logger.debug("This usually happens while the producer rewrites the file")

    def _apply_modules(self, modules: list[Any]) -> list[ModuleReading]:
        if len(modules) > self._max_modules and self._once.first("max_modules"):
            logger.warning(
                "Telemetry lists %d modules, ignoring all beyond %d",
                len(modules),
                self._max_modules,
            )

        readings: list[ModuleReading] = []
        for idx, module in enumerate(modules[: self._max_modules]):
            voltage = module.get(VOLTAGE_FIELD) if isinstance(module, dict) else None
            if voltage is None:
                if self._once.first(("missing", idx)):
                    logger.debug("Module %d: '%s' not present", idx, VOLTAGE_FIELD)
                continue
            if not _is_number(voltage):
                if self._once.first(("non_numeric", idx)):
                    logger.debug("Module %d: '%s' is not a number", idx, VOLTAGE_FIELD)
                continue

            # A valid reading re-arms the skip notes for this slot.
            self._once.reset(("missing", idx))
            self._once.reset(("non_numeric", idx))

            voltage = float(voltage)
            self._check_range(idx, voltage)
            percent = derived_percent(voltage, self._low, self._high)
            self._sink.update_module(idx, percent, voltage)
            readings.append(
                ModuleReading(index=idx, voltage=voltage, derived_percent=percent)
            )
        return readings

    def _check_range(self, idx: int, voltage: float) -> None:
        if self._low <= voltage <= self._high:
            return
        if not self._voltage_warnings.allow(idx):
            return
        if voltage < self._low:
            logger.warning("Module %d: low voltage %.2f V (below %.1f V)", idx, voltage, self._low)
        else:
            logger.warning("Module %d: high voltage %.2f V (above %.1f V)", idx, voltage, self._high)
