"""
Dock daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
File locations, calibration constants and rate-limit thresholds all come
from environment variables or a .env file; only the repository coordinates
are required.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
import shlex

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class DockSettings(BaseSettings):
    """Dock daemon configuration.

    Attributes:
        repo_owner: GitHub owner of the release repository.
        repo_name: GitHub release repository name.
        current_version: Version of the software running on this device.
        telemetry_path: Per-module voltage file written by the producer.
        stats_path: Aggregate per-module statistics file.
        ota_config_path: Optional JSON file with a ``github_token`` field.
        health_path: Health JSON written by this daemon.
        github_api_base: GitHub API base URL (must be HTTPS).
        user_agent: User-Agent sent to the release API.
        http_timeout_s: Timeout for the release request.
        installer_command: Installer command line; owner, repo and version
            are appended as positional arguments.
        wifi_interface: Interface queried by the reachability preflight.
        command_timeout_s: Timeout for each preflight command.
        poll_interval_ms: Milliseconds between telemetry polls.
        stats_refresh_interval_s: Seconds between stats-panel refreshes.
        max_modules: Number of module slots on the display.
        voltage_low: Voltage shown as 0 %.
        voltage_high: Voltage shown as 100 %.
        min_file_bytes: Smaller telemetry files are treated as mid-rewrite.
        max_file_bytes: Larger shared files are rejected.
        burst_threshold: Consecutive failures before periodic reminders.
        error_log_interval_s: Spacing of reminders during a failure burst.
        out_of_range_warn_interval_s: Spacing of per-module voltage warnings.
        check_updates_on_startup: Run one update check when the daemon starts.
        log_level: Root log level name.
    """

    repo_owner: str
    repo_name: str
    current_version: str = "0.0.0"
    telemetry_path: str = "/data/gui_data.json"
    stats_path: str = "/data/battery_stats.json"
    ota_config_path: str = "/data/ota_config.json"
    health_path: str = "/data/health.json"
    github_api_base: str = "https://api.github.com"
    user_agent: str = "dock-ota/1.0"
    http_timeout_s: float = 10.0
    installer_command: str = "python3 /opt/dock/ota_install.py"
    wifi_interface: str = "wlan0"
    command_timeout_s: float = 5.0
    poll_interval_ms: int = 500
    stats_refresh_interval_s: float = 2.0
    max_modules: int = 8
    voltage_low: float = 18.0
    voltage_high: float = 21.0
    min_file_bytes: int = 50
    max_file_bytes: int = 1024 * 1024
    burst_threshold: int = 20
    error_log_interval_s: float = 10.0
    out_of_range_warn_interval_s: float = 60.0
    check_updates_on_startup: bool = False
    log_level: str = "INFO"

    @property
    def installer_args(self) -> list[str]:
        """``installer_command`` split into argv form."""
        return shlex.split(self.installer_command)

    @field_validator("github_api_base")
    @classmethod
    def github_api_base_must_be_https(cls, v: str) -> str:
        """Release metadata is only fetched over HTTPS."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"GITHUB_API_BASE must use HTTPS (got: '{v[:30]}')")
        return v.rstrip("/")

    @field_validator("repo_owner", "repo_name", "current_version")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("installer_command")
    @classmethod
    def installer_command_must_parse(cls, v: str) -> str:
        """Validate the installer command splits into at least one word."""
        if not shlex.split(v):
            raise ValueError("INSTALLER_COMMAND must not be empty")
        return v

    @field_validator("poll_interval_ms")
    @classmethod
    def poll_interval_must_be_reasonable(cls, v: int) -> int:
        if v < 100:
            raise ValueError("POLL_INTERVAL_MS must be >= 100")
        return v

    @field_validator("max_modules")
    @classmethod
    def max_modules_must_be_valid(cls, v: int) -> int:
        if v < 1 or v > 64:
            raise ValueError("MAX_MODULES must be between 1 and 64")
        return v

    @field_validator("http_timeout_s", "command_timeout_s", "stats_refresh_interval_s")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("burst_threshold", "min_file_bytes")
    @classmethod
    def must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        name = v.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"LOG_LEVEL '{v}' is not a logging level")
        return name

    @model_validator(mode="after")
    def _check_ranges(self) -> "DockSettings":
        """Cross-field checks for the calibration range and file bounds."""
        if self.voltage_high <= self.voltage_low:
            raise ValueError("VOLTAGE_HIGH must be greater than VOLTAGE_LOW")
        if self.max_file_bytes < self.min_file_bytes:
            raise ValueError("MAX_FILE_BYTES must be >= MIN_FILE_BYTES")
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
