"""
Layered network reachability preflight for the update check.

Runs cheap NetworkManager queries in order and stops at the first negative
answer. Only when the per-interface query cannot be run at all does it fall
back to the weaker "a default route exists" signal.

Operations:
- check(): Return a ReachabilityResult naming the positive evidence.
- is_reachable(): Boolean shortcut for check().

CHANGELOG:
- 2026-10-18: Initial creation
- 2026-10-18: Accept terse field prefixes and "connected (...)" device labels

TODO:
- None
"""

from __future__ import annotations

import logging

from dock.src.commands import CommandRunner
from dock.src.models import Evidence, ReachabilityResult

logger = logging.getLogger(__name__)

FULLY_CONNECTED_CODE = "100"
"""NetworkManager GENERAL.STATE code for a fully activated device."""

_NOT_REACHABLE = ReachabilityResult(reachable=False)


class ReachabilityPreflight:
    """Decide whether the device currently has usable network connectivity.

    Args:
        runner: Command runner used for every probe.
        interface: Wireless interface to query (default ``wlan0``).
        timeout_s: Timeout applied to each probe command.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        interface: str = "wlan0",
        timeout_s: float = 5.0,
    ) -> None:
        self._runner = runner
        self._interface = interface
        self._timeout_s = timeout_s

    async def is_reachable(self) -> bool:
        return (await self.check()).reachable

    async def check(self) -> ReachabilityResult:
        """Run the probes and return the outcome. Never raises."""
        try:
            return await self._check()
        except Exception:
            logger.warning("Reachability preflight failed unexpectedly", exc_info=True)
            return _NOT_REACHABLE

    async def _check(self) -> ReachabilityResult:
        service = await self._runner.run(
            ["systemctl", "is-active", "NetworkManager.service"],
            timeout=self._timeout_s,
        )
        status = _first_line(service.stdout)
        logger.debug("NetworkManager status: %r", status)
        if status != "active":
            logger.info("NetworkManager not active (%s)", status or "no output")
            return _NOT_REACHABLE

        general = await self._runner.run(
            ["nmcli", "-t", "-f", "STATE", "general"],
            timeout=self._timeout_s,
        )
        net_state = _first_line(general.stdout)
        logger.debug("General network state: %r", net_state)
        if not general.ok or not net_state.startswith("connected"):
            logger.info("No network connectivity (state=%s)", net_state or "unknown")
            return _NOT_REACHABLE

        device = await self._runner.run(
            ["nmcli", "-t", "-f", "GENERAL.STATE", "device", "show", self._interface],
            timeout=self._timeout_s,
        )
        if device.unavailable:
            logger.debug("Could not query %s state, trying route check", self._interface)
            return await self._route_check()

        device_state = _first_line(device.stdout)
        logger.debug("%s device state: %r", self._interface, device_state)
        if device.ok and _device_connected(device_state):
            logger.info("WiFi connected")
            return ReachabilityResult(reachable=True, evidence=Evidence.service_check)

        logger.info("WiFi not connected (%s)", device_state or "no output")
        return _NOT_REACHABLE

    async def _route_check(self) -> ReachabilityResult:
        route = await self._runner.run(
            ["ip", "route", "show", "default"],
            timeout=self._timeout_s,
        )
        if route.ok and route.stdout.strip():
            logger.info("WiFi connected (via route check)")
            return ReachabilityResult(reachable=True, evidence=Evidence.route_check)
        logger.info("No default route")
        return _NOT_REACHABLE


def _device_connected(state: str) -> bool:
    """Interpret ``nmcli -t`` device state output.

    Terse output carries a field prefix, e.g. ``GENERAL.STATE:100 (connected)``
    or ``GENERAL.STATE:100 (connected (externally))``. ``30 (disconnected)``
    must not match, so this compares whole tokens instead of searching for a
    substring.
    """
    value = state.rpartition(":")[2].strip()
    code, _, rest = value.partition(" ")
    if code == FULLY_CONNECTED_CODE:
        return True
    label = rest.strip()
    if label.startswith("(") and label.endswith(")"):
        label = label[1:-1].strip()
    if not label:
        label = value
    return label == "connected" or label.startswith("connected (")


def _first_line(text: str) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return ""
