"""
Exception hierarchy for drivecache.

Every error carries an optional ``context`` dict that is rendered into
``str(err)`` so log lines stay greppable.
"""

from __future__ import annotations

from typing import Any


class DriveCacheError(Exception):
    """Base exception for all drivecache errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class AlreadyExistsError(DriveCacheError):
    """store() without replace hit an existing local or remote file."""


class RemoteFileNotFoundError(DriveCacheError):
    """fetch_or_touch() found no remote object for the path."""


class TransportError(DriveCacheError):
    """A remote store call failed."""


class LocalIOError(DriveCacheError):
    """A local filesystem operation failed."""


class MetadataError(DriveCacheError):
    """The metadata backend failed or was asked about an unknown path."""
