"""
Shared test fixtures for dock daemon tests.

Provides environment variable fixtures for DockSettings configuration tests,
a recording display sink and a controllable clock. All dock env vars are
cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest
from dock.src.sink import Severity

# All DockSettings environment variable names, used for cleanup.
_ALL_DOCK_ENV_VARS = (
    "REPO_OWNER",
    "REPO_NAME",
    "CURRENT_VERSION",
    "TELEMETRY_PATH",
    "STATS_PATH",
    "OTA_CONFIG_PATH",
    "HEALTH_PATH",
    "GITHUB_API_BASE",
    "USER_AGENT",
    "HTTP_TIMEOUT_S",
    "INSTALLER_COMMAND",
    "WIFI_INTERFACE",
    "COMMAND_TIMEOUT_S",
    "POLL_INTERVAL_MS",
    "STATS_REFRESH_INTERVAL_S",
    "MAX_MODULES",
    "VOLTAGE_LOW",
    "VOLTAGE_HIGH",
    "MIN_FILE_BYTES",
    "MAX_FILE_BYTES",
    "BURST_THRESHOLD",
    "ERROR_LOG_INTERVAL_S",
    "OUT_OF_RANGE_WARN_INTERVAL_S",
    "CHECK_UPDATES_ON_STARTUP",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_dock_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all dock env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_DOCK_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required and optional environment variables for DockSettings.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "REPO_OWNER": "acme",
        "REPO_NAME": "dock-firmware",
        "CURRENT_VERSION": "v1.4.2",
        "TELEMETRY_PATH": "/tmp/gui_data.json",
        "STATS_PATH": "/tmp/battery_stats.json",
        "OTA_CONFIG_PATH": "/tmp/ota_config.json",
        "HEALTH_PATH": "/tmp/health.json",
        "GITHUB_API_BASE": "https://github.example.com/api/v3/",
        "USER_AGENT": "dock-test/2.0",
        "HTTP_TIMEOUT_S": "15",
        "INSTALLER_COMMAND": "python3 /opt/test/install.py --quiet",
        "WIFI_INTERFACE": "wlan1",
        "COMMAND_TIMEOUT_S": "3",
        "POLL_INTERVAL_MS": "250",
        "STATS_REFRESH_INTERVAL_S": "4",
        "MAX_MODULES": "6",
        "VOLTAGE_LOW": "10",
        "VOLTAGE_HIGH": "14.5",
        "MIN_FILE_BYTES": "20",
        "MAX_FILE_BYTES": "4096",
        "BURST_THRESHOLD": "5",
        "ERROR_LOG_INTERVAL_S": "30",
        "OUT_OF_RANGE_WARN_INTERVAL_S": "120",
        "CHECK_UPDATES_ON_STARTUP": "true",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones).

    Optional variables should fall back to their defaults.
    """
    env = {
        "REPO_OWNER": "acme",
        "REPO_NAME": "dock-firmware",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


class RecordingSink:
    """DisplaySink that records every call for assertions."""

    def __init__(self) -> None:
        self.modules: list[tuple[int, int, float]] = []
        self.stats: list[tuple[str, str]] = []
        self.statuses: list[tuple[str, Severity]] = []

    def update_module(self, index: int, percent: int, voltage: float) -> None:
        self.modules.append((index, percent, voltage))

    def update_stat(self, field: str, text: str) -> None:
        self.stats.append((field, text))

    def show_status(self, message: str, severity: Severity) -> None:
        self.statuses.append((message, severity))

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.statuses]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
