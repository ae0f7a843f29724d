"""Storage layer: local mirror files + metadata backends."""

from .metadata import MemoryMetadataStore, MetadataStore
from .mirror import LocalMirror
from .repo import SqliteMetadataStore

__all__ = ["LocalMirror", "MemoryMetadataStore", "MetadataStore", "SqliteMetadataStore"]
