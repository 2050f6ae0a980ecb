"""
Dock daemon main loop.

Runs two fixed-rate asyncio loops on one event loop:
1. **Telemetry loop**: calls TelemetryIngestionEngine.poll_once() every
   POLL_INTERVAL_MS and pushes module readings to the display sink.
2. **Stats loop**: re-displays the selected module's aggregate stats every
   STATS_REFRESH_INTERVAL_S while its panel is visible.

Operator actions (update check, confirm, cancel, opening a stats panel) run
as coroutines on the same loop, so all component state is only ever touched
from one thread. An optional update check runs once at startup.

Both loops are resilient: an exception in one iteration is logged and does
not crash the loop or affect the other loop. Graceful shutdown on
SIGTERM/SIGINT sets a shared asyncio.Event, allowing both loops to finish
their current iteration before exiting.

Structured JSON logging is used for all events. A HealthWriter instance
tracks last_poll_ts, last_stats_refresh_ts and last_update_check_ts.

CHANGELOG:
- 2026-10-18: Initial creation
- 2026-10-18: Run the startup update check beside the loops

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import signal
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from dock.src.health import HealthWriter

if TYPE_CHECKING:
    from dock.src.ota import OtaUpdateOrchestrator, UpdateSession
    from dock.src.stats import AggregateStatsLookup
    from dock.src.telemetry import TelemetryIngestionEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the dock daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: object, token: str | None = None) -> None:
    """Log a config summary at startup, excluding secrets.

    The GitHub token itself is never logged, only a fingerprint.

    Args:
        settings: A DockSettings instance (or any object with the same attrs).
        token: The GitHub token currently in the update-config file, if any.
    """
    logger.info(
        "Dock daemon starting with config: "
        "repo=%s/%s, current_version=%s, "
        "telemetry_path=%s, stats_path=%s, ota_config_path=%s, "
        "poll_interval_ms=%s, stats_refresh_interval_s=%s, "
        "max_modules=%s, voltage_range=%s-%s, "
        "wifi_interface=%s, check_updates_on_startup=%s, "
        "github_token_masked=%s",
        settings.repo_owner,  # type: ignore[attr-defined]
        settings.repo_name,  # type: ignore[attr-defined]
        settings.current_version,  # type: ignore[attr-defined]
        settings.telemetry_path,  # type: ignore[attr-defined]
        settings.stats_path,  # type: ignore[attr-defined]
        settings.ota_config_path,  # type: ignore[attr-defined]
        settings.poll_interval_ms,  # type: ignore[attr-defined]
        settings.stats_refresh_interval_s,  # type: ignore[attr-defined]
        settings.max_modules,  # type: ignore[attr-defined]
        settings.voltage_low,  # type: ignore[attr-defined]
        settings.voltage_high,  # type: ignore[attr-defined]
        settings.wifi_interface,  # type: ignore[attr-defined]
        settings.check_updates_on_startup,  # type: ignore[attr-defined]
        _masked_token(token),
    )


# ---------------------------------------------------------------------------
# One iteration of each loop
# ---------------------------------------------------------------------------


def _poll_once(
    *,
    engine: TelemetryIngestionEngine,
    health: HealthWriter | None,
) -> None:
    """Execute a single telemetry poll.

    Never raises; a failed poll is logged and the loop carries on.

    Args:
        engine: The telemetry ingestion engine.
        health: HealthWriter instance, or None to skip health writes.
    """
    try:
        engine.poll_once()
    except Exception:
        logger.error("Telemetry poll error", exc_info=True)

    if health is not None:
        try:
            health.record_poll()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)


def _refresh_stats_once(
    *,
    stats: AggregateStatsLookup,
    panel_visible: Callable[[], bool],
    health: HealthWriter | None,
) -> None:
    """Refresh the active stats panel, if one is visible."""
    try:
        if stats.refresh_active(panel_visible()) is None:
            return
    except Exception:
        logger.error("Stats refresh error", exc_info=True)
        return

    if health is not None:
        try:
            health.record_stats_refresh()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)


async def run_update_check(
    *,
    orchestrator: OtaUpdateOrchestrator,
    health: HealthWriter | None = None,
) -> UpdateSession | None:
    """Operator or startup trigger for an update check.

    Returns the resulting session, or None if the check itself crashed.
    """
    try:
        session = await orchestrator.check_for_updates()
    except Exception:
        logger.error("Update check error", exc_info=True)
        return None

    if health is not None:
        try:
            health.record_update_check(session.state.value)
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
    return session


# ---------------------------------------------------------------------------
# Loop runners
# ---------------------------------------------------------------------------


async def _poll_loop(
    *,
    engine: TelemetryIngestionEngine,
    poll_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None,
) -> None:
    """Run the telemetry loop until shutdown_event is set."""
    logger.info("Telemetry loop started (interval=%ss)", poll_interval_s)
    while not shutdown_event.is_set():
        _poll_once(engine=engine, health=health)
        # Sleep until the next tick or until shutdown, whichever comes first
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=poll_interval_s,
            )
    logger.info("Telemetry loop stopped")


async def _stats_loop(
    *,
    stats: AggregateStatsLookup,
    panel_visible: Callable[[], bool],
    refresh_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None,
) -> None:
    """Run the stats-panel refresh loop until shutdown_event is set."""
    logger.info("Stats loop started (interval=%ss)", refresh_interval_s)
    while not shutdown_event.is_set():
        _refresh_stats_once(stats=stats, panel_visible=panel_visible, health=health)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=refresh_interval_s,
            )
    logger.info("Stats loop stopped")


# ---------------------------------------------------------------------------
# Loop supervisor
# ---------------------------------------------------------------------------


async def run_loops(
    *,
    engine: TelemetryIngestionEngine,
    stats: AggregateStatsLookup,
    orchestrator: OtaUpdateOrchestrator,
    poll_interval_s: float,
    stats_refresh_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
    panel_visible: Callable[[], bool] | None = None,
    check_updates_on_startup: bool = False,
) -> None:
    """Run the telemetry and stats loops concurrently until shutdown.

    Args:
        engine: The telemetry ingestion engine.
        stats: The aggregate-stats lookup.
        orchestrator: The update orchestrator.
        poll_interval_s: Seconds between telemetry polls.
        stats_refresh_interval_s: Seconds between stats-panel refreshes.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
        panel_visible: Returns whether the stats panel is shown. Without a
            UI the panel counts as visible whenever a module is selected.
        check_updates_on_startup: Run one update check alongside the loops.
    """
    if panel_visible is None:

        def panel_visible() -> bool:
            return stats.selected_module is not None

    loops = [
        _poll_loop(
            engine=engine,
            poll_interval_s=poll_interval_s,
            shutdown_event=shutdown_event,
            health=health,
        ),
        _stats_loop(
            stats=stats,
            panel_visible=panel_visible,
            refresh_interval_s=stats_refresh_interval_s,
            shutdown_event=shutdown_event,
            health=health,
        ),
    ]
    # The startup check runs beside the loops so polling starts on time.
    if check_updates_on_startup:
        loops.append(run_update_check(orchestrator=orchestrator, health=health))

    logger.info("Starting telemetry and stats loops")
    await asyncio.gather(*loops)
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Load settings, wire the dock components together and run until signalled.

    SIGTERM and SIGINT set the shutdown event.
    """
    from dock.src.commands import CommandRunner
    from dock.src.config import DockSettings
    from dock.src.ota import OtaUpdateOrchestrator
    from dock.src.reachability import ReachabilityPreflight
    from dock.src.sink import LoggingSink
    from dock.src.stats import AggregateStatsLookup
    from dock.src.telemetry import TelemetryIngestionEngine

    settings = DockSettings()
    configure_logging(settings.log_level)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    sink = LoggingSink()
    runner = CommandRunner()

    engine = TelemetryIngestionEngine(
        settings.telemetry_path,
        sink,
        max_modules=settings.max_modules,
        voltage_low=settings.voltage_low,
        voltage_high=settings.voltage_high,
        min_file_bytes=settings.min_file_bytes,
        max_file_bytes=settings.max_file_bytes,
        burst_threshold=settings.burst_threshold,
        error_log_interval_s=settings.error_log_interval_s,
        out_of_range_warn_interval_s=settings.out_of_range_warn_interval_s,
    )

    stats = AggregateStatsLookup(
        settings.stats_path,
        sink,
        max_modules=settings.max_modules,
        max_file_bytes=settings.max_file_bytes,
    )

    orchestrator = OtaUpdateOrchestrator(
        repo_owner=settings.repo_owner,
        repo_name=settings.repo_name,
        current_version=settings.current_version,
        preflight=ReachabilityPreflight(
            runner,
            interface=settings.wifi_interface,
            timeout_s=settings.command_timeout_s,
        ),
        runner=runner,
        sink=sink,
        installer_command=settings.installer_args,
        token_path=settings.ota_config_path,
        api_base=settings.github_api_base,
        user_agent=settings.user_agent,
        http_timeout_s=settings.http_timeout_s,
    )

    log_config_summary(settings, orchestrator.load_token())

    health = HealthWriter(settings.health_path)

    await run_loops(
        engine=engine,
        stats=stats,
        orchestrator=orchestrator,
        poll_interval_s=settings.poll_interval_ms / 1000.0,
        stats_refresh_interval_s=settings.stats_refresh_interval_s,
        shutdown_event=shutdown_event,
        health=health,
        check_updates_on_startup=settings.check_updates_on_startup,
    )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the dock daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
