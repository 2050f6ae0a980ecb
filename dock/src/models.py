"""
Pydantic models for dock telemetry, aggregate stats and release data.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class ModuleReading(BaseModel):
    """One module's reading from a single telemetry poll.

    Attributes:
        index: Module slot, 0-based.
        voltage: Bus voltage in volts as reported by the producer.
        derived_percent: Charge estimate 0-100 from the calibration range.
    """

    index: int = Field(ge=0)
    voltage: float
    derived_percent: int = Field(ge=0, le=100)


class BatteryAggregate(BaseModel):
    """Lifetime statistics for one module from the aggregate-stats file.

    Field aliases match the producer's on-disk names. Every statistic is
    optional; absent or non-numeric values are left as ``None``.
    """

    model_config = ConfigDict(populate_by_name=True)

    module_id: int = Field(alias="id")
    total_charging_seconds: float | None = Field(default=None, alias="total_charging_time")
    watt_hours: float | None = Field(default=None, alias="wh")
    amp_hours: float | None = Field(default=None, alias="ah")
    min_temp: float | None = None
    max_temp: float | None = None
    state_of_health_pct: float | None = Field(default=None, alias="soh")
    state_of_charge_pct: float | None = Field(default=None, alias="soc")


class UpdateManifest(BaseModel):
    """The latest release as described by the GitHub releases API.

    Attributes:
        tag_version: Release tag with any leading ``v`` removed.
        asset_refs: Names of the release assets.
    """

    tag_version: str
    asset_refs: list[str] = Field(default_factory=list)


class Evidence(enum.StrEnum):
    service_check = "service_check"
    route_check = "route_check"


class ReachabilityResult(BaseModel):
    """Outcome of one connectivity preflight.

    ``evidence`` names the check that produced the positive signal and is
    ``None`` when the network is not reachable.
    """

    reachable: bool
    evidence: Evidence | None = None
