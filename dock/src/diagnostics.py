"""
Rate-limited diagnostics and degraded-state tracking for the polling loops.

A producer that rewrites its file non-atomically causes bursts of transient
parse failures at the poll rate. Logging each one would flood the log, so
the loops only emit a diagnostic when the source flips from healthy to
failing, at most once per interval during a long failure burst, and once on
recovery.

Operations:
- OnceEmitter.first(key): True only the first time *key* is seen.
- RateLimiter.allow(key): True if *key* has not fired within its interval.
- DegradedState.record_failure(): Count a failure, decide whether to log.
- DegradedState.record_success(): Reset the run, report how long it was.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass

Clock = Callable[[], float]


class OnceEmitter:
    """Remembers which diagnostic identities have already been emitted."""

    def __init__(self) -> None:
        self._seen: set[Hashable] = set()

    def first(self, key: Hashable) -> bool:
        """Return True the first time *key* is passed, False afterwards."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def reset(self, key: Hashable) -> None:
        """Forget *key* so the next ``first(key)`` fires again."""
        self._seen.discard(key)


class RateLimiter:
    """Allows one event per key per interval.

    Args:
        interval_s: Minimum spacing between allowed events for one key.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(self, interval_s: float, clock: Clock = time.monotonic) -> None:
        self._interval_s = interval_s
        self._clock = clock
        self._last: dict[Hashable, float] = {}

    def allow(self, key: Hashable) -> bool:
        """Return True and record the time if *key* may fire now."""
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._interval_s:
            return False
        self._last[key] = now
        return True


@dataclass
class IngestionHealth:
    """Health of one polled source file."""

    last_success: bool = True
    consecutive_failures: int = 0
    last_error_log_time: float | None = None


class DegradedState:
    """Applies the log-on-boundary / log-during-burst policy to one source.

    Args:
        burst_threshold: Failures after which periodic reminders start.
        error_log_interval_s: Minimum spacing between burst reminders.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        *,
        burst_threshold: int = 20,
        error_log_interval_s: float = 10.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self._burst_threshold = burst_threshold
        self._error_log_interval_s = error_log_interval_s
        self._clock = clock
        self.health = IngestionHealth()

    @property
    def consecutive_failures(self) -> int:
        return self.health.consecutive_failures

    def record_failure(self) -> bool:
        """Count one failure and return True if it should be logged."""
        h = self.health
        h.consecutive_failures += 1
        now = self._clock()

        boundary = h.last_success and h.consecutive_failures == 1
        burst = h.consecutive_failures > self._burst_threshold and (
            h.last_error_log_time is None
            or now - h.last_error_log_time >= self._error_log_interval_s
        )
        h.last_success = False
        if boundary or burst:
            h.last_error_log_time = now
            return True
        return False

    def record_success(self) -> int:
        """Mark the source healthy and return the length of the failure run."""
        h = self.health
        failures = h.consecutive_failures
        h.consecutive_failures = 0
        h.last_success = True
        return failures
