"""
Exception hierarchy for the dock daemon.

Transient I/O and data corruption errors are expected while the producer
process rewrites its files; the polling loops absorb them. Update-check
errors end the current update session but never the process.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations


class DockError(Exception):
    """Base class for all dock daemon errors."""


# ---------------------------------------------------------------------------
# Shared file loading
# ---------------------------------------------------------------------------


class TransientIoError(DockError):
    """File missing, too small, too large or unreadable. Retried next cycle."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


class FileNotFound(TransientIoError):
    """The file does not exist or cannot be opened."""


class FileEmpty(TransientIoError):
    """The file is smaller than the minimum accepted size."""


class FileTooLarge(TransientIoError):
    """The file is larger than the maximum accepted size."""


class DataCorruptionError(DockError):
    """Content is unparseable or structurally wrong. Retried next cycle."""


class JsonParseError(DataCorruptionError):
    """The buffer is not valid JSON.

    Args:
        path: File the buffer was read from.
        position: Character offset where parsing stopped, if known.
        detail: Parser message.
    """

    def __init__(self, path: str, position: int | None, detail: str) -> None:
        super().__init__(f"{path}: invalid JSON at position {position}: {detail}")
        self.path = path
        self.position = position
        self.detail = detail


class StructureError(DataCorruptionError):
    """Valid JSON that does not have the expected shape."""


# ---------------------------------------------------------------------------
# Remote update check
# ---------------------------------------------------------------------------


class UpdateCheckError(DockError):
    """Base class for failures while fetching the release manifest."""


class NetworkFailure(UpdateCheckError):
    """Timeout, DNS failure, refused connection or other transport error."""


class AuthFailure(UpdateCheckError):
    """The release API answered 401."""


class RemoteNotFound(UpdateCheckError):
    """The release API answered 404 (no releases, or private repo without token)."""


class ReleaseApiError(UpdateCheckError):
    """The release API answered with an unexpected status code."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"GitHub API returned HTTP {status_code}")
        self.status_code = status_code


class InvalidReleaseResponse(UpdateCheckError):
    """The 200 body is not JSON or carries no usable ``tag_name``."""


class SpawnFailure(DockError):
    """The installer process could not be launched."""
