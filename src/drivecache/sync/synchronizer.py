from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from drivecache.errors import AlreadyExistsError, RemoteFileNotFoundError
from drivecache.remote.base import RemoteStore, to_folder_name, to_remote_name
from drivecache.schemas import FileRecord, RemoteObject, now_utc
from drivecache.storage import LocalMirror, MetadataStore

logger = logging.getLogger(__name__)


class Synchronizer:
    """Read-through/write-through access to files mirrored from a remote store.

    Each operation is a fixed sequence of steps: remote first, then the local
    file, then metadata. A failure part-way surfaces the error and leaves the
    earlier steps in place (e.g. a remote object with no local copy or record).
    """

    def __init__(
        self,
        *,
        remote: RemoteStore,
        metadata: MetadataStore,
        mirror: LocalMirror,
        remote_folder: str,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        if not remote_folder.strip():
            raise ValueError("remote_folder must not be empty.")
        self.remote = remote
        self.metadata = metadata
        self.mirror = mirror
        self.remote_folder = remote_folder
        self.clock = clock
        self._parent_id: str | None = None
        self._init_lock = threading.Lock()

    def init(self) -> str:
        """Resolve (find or create) the remote parent folder."""
        with self._init_lock:
            if self._parent_id is None:
                folder_name = to_folder_name(self.remote_folder)
                self._parent_id = self.remote.ensure_folder(folder_name)
                logger.info("remote folder ready name=%s id=%s", folder_name, self._parent_id)
            return self._parent_id

    def store(self, relative_path: str, content: bytes, *, replace: bool = False) -> FileRecord:
        relative_path = self.mirror.normalize(relative_path)

        if self.mirror.exists(relative_path) and not replace:
            raise AlreadyExistsError("file exists locally", {"path": relative_path})
        existing = self.find_remote(relative_path)
        if existing is not None and not replace:
            raise AlreadyExistsError("file exists remotely", {"path": relative_path})

        remote_obj = self._push(relative_path, content, existing=existing, replace=True)
        self.mirror.write(relative_path, content)
        record = self.record(relative_path, remote_obj, size_bytes=len(content))
        logger.info(
            "store path=%s size=%s remote_id=%s replace=%s",
            relative_path,
            record.size_bytes,
            record.remote_id,
            replace,
        )
        return record

    def fetch_or_touch(self, relative_path: str) -> bool:
        """Make the file available locally; returns True if it was downloaded."""
        relative_path = self.mirror.normalize(relative_path)
        if self.mirror.exists(relative_path):
            self.metadata.touch(relative_path, self.clock())
            logger.debug("touch path=%s", relative_path)
            return False

        remote_obj = self.find_remote(relative_path)
        if remote_obj is None:
            raise RemoteFileNotFoundError("file not available on remote store", {"path": relative_path})

        content = self.remote.download(remote_obj.id)
        self.mirror.write(relative_path, content)
        self.record(relative_path, remote_obj, size_bytes=len(content))
        logger.info("fetch path=%s size=%s remote_id=%s", relative_path, len(content), remote_obj.id)
        return True

    def delete(self, relative_path: str) -> None:
        """Delete the remote object and the record. The local file is left alone.

        Raises RemoteFileNotFoundError when neither a remote object nor a record
        exists. A local file kept after delete is untracked: fetch_or_touch treats
        it as a local hit and only touches, so no record is created again until
        the path is stored.
        """
        relative_path = self.mirror.normalize(relative_path)
        remote_obj = self.find_remote(relative_path)
        tracked = self.metadata.get(relative_path) is not None
        if remote_obj is None and not tracked:
            raise RemoteFileNotFoundError("file not tracked", {"path": relative_path})

        if remote_obj is not None:
            self.remote.delete(remote_obj.id)
        if tracked:
            self.metadata.delete(relative_path)
        logger.info("delete path=%s remote_deleted=%s", relative_path, remote_obj is not None)

    def find_remote(self, relative_path: str) -> RemoteObject | None:
        relative_path = self.mirror.normalize(relative_path)
        matches = self.remote.find(to_remote_name(relative_path), self.init())
        return matches[0] if matches else None

    def upload_to_remote(
        self,
        relative_path: str,
        content: bytes,
        *,
        replace: bool,
    ) -> RemoteObject:
        """Create the remote object, or replace it; without replace an existing one is returned as-is."""
        relative_path = self.mirror.normalize(relative_path)
        existing = self.find_remote(relative_path)
        return self._push(relative_path, content, existing=existing, replace=replace)

    def record(self, relative_path: str, remote_obj: RemoteObject, *, size_bytes: int) -> FileRecord:
        relative_path = self.mirror.normalize(relative_path)
        record = FileRecord(
            remote_id=remote_obj.id,
            relative_path=relative_path,
            size_bytes=size_bytes,
            content_type=remote_obj.mime_type,
            last_access=self.clock(),
        )
        self.metadata.upsert(record)
        return record

    def _push(
        self,
        relative_path: str,
        content: bytes,
        *,
        existing: RemoteObject | None,
        replace: bool,
    ) -> RemoteObject:
        if existing is not None and not replace:
            return existing
        if existing is None:
            return self.remote.create(to_remote_name(relative_path), self.init(), content)
        return self.remote.replace_content(existing.id, content)
