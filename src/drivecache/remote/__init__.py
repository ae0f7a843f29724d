"""Remote object store adapters."""

from .base import RemoteStore, to_folder_name, to_remote_name
from .drive_client import DriveClient
from .memory import MemoryRemoteStore

__all__ = [
    "DriveClient",
    "MemoryRemoteStore",
    "RemoteStore",
    "to_folder_name",
    "to_remote_name",
]
