"""
External command execution behind one mockable interface.

Both the connectivity preflight (systemctl, nmcli, ip) and the installer
launch go through :class:`CommandRunner`, so tests substitute a fake runner
instead of invoking real OS tools.

Operations:
- run(args, timeout): Execute, capture output, enforce a timeout.
- spawn_detached(args): Launch a child in its own session and return
  without waiting for it.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from dock.src.errors import SpawnFailure

logger = logging.getLogger(__name__)

RC_TIMEOUT = 124
RC_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def unavailable(self) -> bool:
        """True if the tool could not be run at all or timed out."""
        return self.returncode in (RC_TIMEOUT, RC_NOT_FOUND)


class CommandRunner:
    """Execute external commands. Override for testing."""

    async def run(self, args: list[str], *, timeout: float = 5.0) -> CommandResult:
        """Run *args* and return its exit code and decoded output.

        Never raises: a missing executable yields return code 127, a timeout
        kills the child and yields 124, any other OS error yields 1.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return CommandResult(RC_NOT_FOUND, "", f"Command not found: {args[0]}")
        except OSError as exc:
            return CommandResult(1, "", str(exc))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            try:
                proc.kill()
                await proc.wait()
            except ProcessLookupError:
                pass
            return CommandResult(RC_TIMEOUT, "", "Command timed out")

        return CommandResult(
            proc.returncode or 0,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def spawn_detached(self, args: list[str]) -> int:
        """Start *args* in a new session with output discarded.

        The child is not awaited or supervised; success only means the
        process was created.

        Returns:
            The child's PID.

        Raises:
            SpawnFailure: The process could not be created.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise SpawnFailure(f"could not start {args[0]}: {exc}") from exc
        logger.info("Spawned detached process pid=%d: %s", proc.pid, args[0])
        return proc.pid
