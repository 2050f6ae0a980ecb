"""
Over-the-air update orchestration against GitHub releases.

Drives a small state machine for one update session:

    idle -> checking -> available -> awaiting_confirmation -> installing -> idle
                 \\-> idle ("up to date")        \\-> idle (cancel)
                 \\-> failed (401 / 404 / other)                \\-> failed (spawn)

A check first runs the reachability preflight, then GETs
``/repos/{owner}/{repo}/releases/latest`` with an explicit timeout and an
optional ``token`` read from the update-config file. A newer tag is offered
to the operator; only an explicit confirm spawns the installer, detached,
with ``(owner, repo, version)`` arguments. The orchestrator never waits for
the installer and never raises: every outcome becomes a session state plus
a status message on the display sink.

Re-entrancy: a check requested while a session is checking, holding a
pending version, or installing is rejected. The pending version is only
dropped by an explicit cancel().

Operations:
- check_for_updates(): Preflight, fetch, compare.
- present(): Offer an available version to the operator.
- confirm(): Spawn the installer for the pending version.
- cancel(): Drop the pending version or abandon an in-flight check.
- fetch_manifest(): GET and classify the latest-release response.
- load_token(): Read the optional GitHub token.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from dock.src.commands import CommandRunner
from dock.src.errors import (
    AuthFailure,
    DataCorruptionError,
    FileNotFound,
    InvalidReleaseResponse,
    NetworkFailure,
    ReleaseApiError,
    RemoteNotFound,
    SpawnFailure,
    TransientIoError,
    UpdateCheckError,
)
from dock.src.json_source import load_json
from dock.src.models import UpdateManifest
from dock.src.reachability import ReachabilityPreflight
from dock.src.sink import DisplaySink, Severity
from dock.src.versioning import is_newer, normalize_tag

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github.v3+json"
TOKEN_FIELD = "github_token"
TOKEN_FILE_MAX_BYTES = 10000

MSG_NO_CONNECTIVITY = "No WiFi connection"
MSG_CHECKING = "Checking for updates..."
MSG_UP_TO_DATE = "Software is up to date"
MSG_AUTH_FAILED = "OTA: Auth failed"
MSG_NO_RELEASES = "OTA: No releases found"
MSG_INVALID_RESPONSE = "OTA: Invalid response"
MSG_INSTALLING = "Installing update..."
MSG_INSTALL_STARTED = "Update started - check logs"
MSG_INSTALL_FAILED = "Update failed to start"
MSG_CANCELLED = "Update cancelled"


class UpdateState(enum.StrEnum):
    idle = "idle"
    checking = "checking"
    available = "available"
    awaiting_confirmation = "awaiting_confirmation"
    installing = "installing"
    failed = "failed"


_BUSY = frozenset(
    {
        UpdateState.checking,
        UpdateState.available,
        UpdateState.awaiting_confirmation,
        UpdateState.installing,
    }
)


@dataclass(frozen=True)
class UpdateSession:
    """Snapshot of the orchestrator's session.

    Attributes:
        state: Current state.
        version: Pending or installing version, without ``v`` prefix.
        reason: Failure description when ``state`` is ``failed``.
    """

    state: UpdateState = UpdateState.idle
    version: str | None = None
    reason: str | None = None

    @property
    def is_idle(self) -> bool:
        """True when a new check may start (idle or after a failure)."""
        return self.state not in _BUSY


class OtaUpdateOrchestrator:
    """Check GitHub for a newer release and run an operator-confirmed install.

    Args:
        repo_owner: GitHub repository owner.
        repo_name: GitHub repository name.
        current_version: Version of the running software.
        preflight: Connectivity preflight run before every check.
        runner: Command runner used to spawn the installer.
        sink: Display sink for status messages.
        installer_command: Installer executable and leading arguments; owner,
            repo and version are appended.
        token_path: Optional update-config JSON holding ``github_token``.
        api_base: GitHub API base URL.
        user_agent: ``User-Agent`` header value.
        http_timeout_s: Timeout for the release request.
    """

    def __init__(
        self,
        *,
        repo_owner: str,
        repo_name: str,
        current_version: str,
        preflight: ReachabilityPreflight,
        runner: CommandRunner,
        sink: DisplaySink,
        installer_command: list[str],
        token_path: str | Path | None = None,
        api_base: str = "https://api.github.com",
        user_agent: str = "dock-ota/1.0",
        http_timeout_s: float = 10.0,
    ) -> None:
        if not installer_command:
            raise ValueError("installer_command must not be empty")
        self._owner = repo_owner
        self._repo = repo_name
        self._current_version = normalize_tag(current_version)
        self._preflight = preflight
        self._runner = runner
        self._sink = sink
        self._installer_command = list(installer_command)
        self._token_path = Path(token_path) if token_path else None
        self._api_base = api_base.rstrip("/")
        self._user_agent = user_agent
        self._http_timeout_s = http_timeout_s
        self._session = UpdateSession()
        self._tickets = itertools.count(1)
        self._active_ticket: int | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def session(self) -> UpdateSession:
        return self._session

    @property
    def release_url(self) -> str:
        return f"{self._api_base}/repos/{self._owner}/{self._repo}/releases/latest"

    async def check_for_updates(self) -> UpdateSession:
        """Run preflight, fetch the latest release and compare versions.

        Returns the session as it stands once this check is finished.
        """
        if not self._session.is_idle:
            self._reject_busy()
            return self._session

        logger.info("Update check requested")
        ticket = next(self._tickets)
        self._active_ticket = ticket
        # Claim the session before awaiting so a second trigger is rejected.
        self._session = UpdateSession(UpdateState.checking)

        if not await self._preflight.is_reachable():
            if self._owns(ticket):
                logger.warning("No network connectivity, skipping update check")
                self._finish(UpdateSession(UpdateState.idle), MSG_NO_CONNECTIVITY, Severity.error)
            return self._session

        if not self._owns(ticket):
            return self._session
        self._sink.show_status(MSG_CHECKING, Severity.info)

        try:
            manifest = await self.fetch_manifest()
        except UpdateCheckError as exc:
            if self._owns(ticket):
                self._fail_check(exc)
            else:
                logger.info("Discarding result of cancelled update check: %s", exc)
            return self._session
        except Exception as exc:
            logger.error("Update check failed unexpectedly", exc_info=True)
            if self._owns(ticket):
                self._fail_check(UpdateCheckError(f"{type(exc).__name__}: {exc}"))
            return self._session

        if not self._owns(ticket):
            logger.info(
                "Discarding result of cancelled update check (v%s)",
                manifest.tag_version,
            )
            return self._session

        latest = manifest.tag_version
        logger.info("Current version: %s", self._current_version)
        logger.info("Latest version: %s", latest)
        if is_newer(self._current_version, latest):
            logger.info("Update available: %s", latest)
            self._active_ticket = None
            self._session = UpdateSession(UpdateState.available, version=latest)
            self._sink.show_status(f"Update v{latest} available", Severity.info)
        else:
            logger.info("Software is up to date")
            self._finish(UpdateSession(UpdateState.idle), MSG_UP_TO_DATE, Severity.info)
        return self._session

    def present(self) -> str | None:
        """Offer the available version to the operator.

        Moves ``available`` to ``awaiting_confirmation`` and returns the
        version, or returns ``None`` if there is nothing to present.
        """
        session = self._session
        if session.state is UpdateState.awaiting_confirmation:
            return session.version
        if session.state is not UpdateState.available:
            logger.debug("Nothing to present (state=%s)", session.state)
            return None
        logger.info("Asking operator to confirm install of %s", session.version)
        self._session = UpdateSession(UpdateState.awaiting_confirmation, version=session.version)
        self._sink.show_status(f"Install update v{session.version}?", Severity.info)
        return session.version

    async def confirm(self) -> UpdateSession:
        """Spawn the installer for the pending version.

        Only acts from ``awaiting_confirmation``. The installer is started
        detached; success means the spawn call succeeded.
        """
        session = self._session
        if session.state is not UpdateState.awaiting_confirmation or not session.version:
            logger.warning("Confirm ignored, no update pending (state=%s)", session.state)
            return self._session

        version = session.version
        logger.info("Starting installation of version %s", version)
        self._session = UpdateSession(UpdateState.installing, version=version)
        self._sink.show_status(MSG_INSTALLING, Severity.warning)

        args = [*self._installer_command, self._owner, self._repo, version]
        logger.debug("Executing installer: %s", args)
        try:
            await self._runner.spawn_detached(args)
        except SpawnFailure as exc:
            logger.error("Failed to start update installation: %s", exc)
            self._session = UpdateSession(UpdateState.failed, version=version, reason=str(exc))
            self._sink.show_status(MSG_INSTALL_FAILED, Severity.error)
            return self._session

        logger.info("Update installation started successfully")
        self._finish(UpdateSession(UpdateState.idle), MSG_INSTALL_STARTED, Severity.success)
        return self._session

    def cancel(self) -> UpdateSession:
        """Drop the pending version or abandon an in-flight check."""
        state = self._session.state
        if state is UpdateState.checking:
            logger.info("Update check cancelled")
            self._finish(UpdateSession(UpdateState.idle), MSG_CANCELLED, Severity.warning)
        elif state in (UpdateState.available, UpdateState.awaiting_confirmation):
            logger.info("Pending update %s cancelled", self._session.version)
            self._finish(UpdateSession(UpdateState.idle), MSG_CANCELLED, Severity.warning)
        else:
            logger.debug("Cancel ignored (state=%s)", state)
        return self._session

    async def fetch_manifest(self) -> UpdateManifest:
        """GET the latest release and return its manifest.

        Raises:
            NetworkFailure: Transport error or timeout.
            AuthFailure: HTTP 401.
            RemoteNotFound: HTTP 404.
            ReleaseApiError: Any other non-200 status.
            InvalidReleaseResponse: Body is not JSON or lacks ``tag_name``.
        """
        headers = {
            "User-Agent": self._user_agent,
            "Accept": GITHUB_ACCEPT,
        }
        token = self.load_token()
        if token:
            headers["Authorization"] = f"token {token}"
            logger.debug("Using authentication token")
        else:
            logger.debug("No token, accessing as public repo")

        logger.info("Checking for updates on GitHub (%s/%s)", self._owner, self._repo)
        try:
            async with httpx.AsyncClient(
                timeout=self._http_timeout_s,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.release_url, headers=headers)
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"{type(exc).__name__}: {exc}") from exc

        status = response.status_code
        logger.debug("GitHub API response code: %d", status)
        if status == 401:
            raise AuthFailure("authentication failed, check the GitHub token")
        if status == 404:
            raise RemoteNotFound(
                "no releases found (private repository without token, "
                "wrong repository name, or only draft releases)"
            )
        if status != 200:
            raise ReleaseApiError(status)

        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidReleaseResponse(f"response is not JSON: {exc}") from exc

        tag = body.get("tag_name") if isinstance(body, dict) else None
        if not isinstance(tag, str) or not normalize_tag(tag):
            raise InvalidReleaseResponse("tag_name not found in response")

        assets = body.get("assets")
        names = [
            a["name"]
            for a in (assets if isinstance(assets, list) else [])
            if isinstance(a, dict) and isinstance(a.get("name"), str)
        ]
        return UpdateManifest(tag_version=normalize_tag(tag), asset_refs=names)

    def load_token(self) -> str | None:
        """Return the GitHub token from the update-config file, if any.

        Every problem with the file is logged and treated as "no token".
        """
        if self._token_path is None:
            return None
        try:
            doc = load_json(self._token_path, max_size=TOKEN_FILE_MAX_BYTES)
        except FileNotFound:
            logger.info("OTA config not found, continuing without authentication")
            return None
        except TransientIoError as exc:
            logger.warning("Invalid OTA config file size: %s", exc)
            return None
        except DataCorruptionError as exc:
            logger.warning("Failed to parse OTA config: %s", exc)
            return None

        token = doc.get(TOKEN_FIELD) if isinstance(doc, dict) else None
        if isinstance(token, str) and token.strip():
            logger.debug("GitHub token loaded")
            return token.strip()
        logger.debug("No %s field found in OTA config", TOKEN_FIELD)
        return None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _owns(self, ticket: int) -> bool:
        """True if *ticket* is still the live check of a checking session."""
        return self._active_ticket == ticket and self._session.state is UpdateState.checking

    def _finish(self, session: UpdateSession, message: str, severity: Severity) -> None:
        self._active_ticket = None
        self._session = session
        self._sink.show_status(message, severity)

    def _fail_check(self, exc: UpdateCheckError) -> None:
        if isinstance(exc, AuthFailure):
            logger.error("Update check failed: %s", exc)
            message = MSG_AUTH_FAILED
        elif isinstance(exc, RemoteNotFound):
            logger.warning("GitHub API returned HTTP 404: %s", exc)
            message = MSG_NO_RELEASES
        elif isinstance(exc, ReleaseApiError):
            logger.error("Update check failed: %s", exc)
            message = f"OTA: API error ({exc.status_code})"
        elif isinstance(exc, InvalidReleaseResponse):
            logger.error("Update check failed: %s", exc)
            message = MSG_INVALID_RESPONSE
        elif isinstance(exc, NetworkFailure):
            logger.error("Update check failed (network): %s", exc)
            message = "OTA: Network error"
        else:
            message = "OTA: Update check failed"
        self._finish(
            UpdateSession(UpdateState.failed, reason=str(exc)),
            message,
            Severity.error,
        )

    def _reject_busy(self) -> None:
        session = self._session
        if session.state is UpdateState.checking:
            message = "Update check already in progress"
        elif session.state is UpdateState.installing:
            message = "Update installation in progress"
        else:
            message = f"Update v{session.version} pending, cancel it first"
        logger.info("Update check rejected (state=%s)", session.state)
        self._sink.show_status(message, Severity.warning)
