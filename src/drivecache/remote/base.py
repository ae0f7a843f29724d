from __future__ import annotations

from typing import Protocol

from drivecache.schemas import RemoteObject

REMOTE_PATH_SEPARATOR = "#"
FOLDER_NAME_PREFIX = "gdrive-"


class RemoteStore(Protocol):
    """Object-store operations the synchronizer depends on.

    Every failure is raised as TransportError.
    """

    def ensure_folder(self, name: str) -> str:
        """Return the id of the top-level folder ``name``, creating it if absent."""

    def find(self, name: str, parent_id: str) -> list[RemoteObject]:
        """Live, non-folder objects named exactly ``name`` under ``parent_id``."""

    def create(self, name: str, parent_id: str, content: bytes) -> RemoteObject:
        """Create a new object under ``parent_id``."""

    def replace_content(self, object_id: str, content: bytes) -> RemoteObject:
        """Overwrite the content of an existing object."""

    def download(self, object_id: str) -> bytes:
        """Full content of an object."""

    def delete(self, object_id: str) -> None:
        """Delete an object permanently."""


def to_remote_name(relative_path: str) -> str:
    """Flatten a mirror path into a single remote object name."""
    return relative_path.replace("/", REMOTE_PATH_SEPARATOR)


def to_folder_name(remote_folder: str) -> str:
    return f"{FOLDER_NAME_PREFIX}{remote_folder}"
