"""drivecache: size-bounded local mirror of a remote object store."""

from .config import AppConfig, load_config
from .errors import (
    AlreadyExistsError,
    DriveCacheError,
    LocalIOError,
    MetadataError,
    RemoteFileNotFoundError,
    TransportError,
)
from .schemas import FileRecord, RemoteObject

__all__ = [
    "AlreadyExistsError",
    "AppConfig",
    "DriveCacheError",
    "FileRecord",
    "LocalIOError",
    "MetadataError",
    "RemoteFileNotFoundError",
    "RemoteObject",
    "TransportError",
    "load_config",
]
