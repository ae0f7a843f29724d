from __future__ import annotations

import logging
import threading
import uuid

from drivecache.errors import TransportError
from drivecache.schemas import RemoteObject

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_MIME_TYPE = "application/octet-stream"


class MemoryRemoteStore:
    """Process-local RemoteStore, used for tests and dry runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: dict[str, RemoteObject] = {}
        self._contents: dict[str, bytes] = {}

    def ensure_folder(self, name: str) -> str:
        with self._lock:
            for obj in self._objects.values():
                if obj.name == name and obj.mime_type == FOLDER_MIME_TYPE and not obj.parents:
                    return obj.id
            folder = RemoteObject(id=_new_id(), name=name, mime_type=FOLDER_MIME_TYPE)
            self._objects[folder.id] = folder
            logger.info("memory_remote folder created name=%s id=%s", name, folder.id)
            return folder.id

    def find(self, name: str, parent_id: str) -> list[RemoteObject]:
        with self._lock:
            return [
                obj.model_copy()
                for obj in self._objects.values()
                if obj.name == name
                and parent_id in obj.parents
                and obj.mime_type != FOLDER_MIME_TYPE
            ]

    def create(self, name: str, parent_id: str, content: bytes) -> RemoteObject:
        with self._lock:
            if parent_id not in self._objects:
                raise TransportError("parent folder not found", {"parent_id": parent_id})
            obj = RemoteObject(
                id=_new_id(),
                name=name,
                mime_type=DEFAULT_MIME_TYPE,
                size=len(content),
                parents=[parent_id],
            )
            self._objects[obj.id] = obj
            self._contents[obj.id] = bytes(content)
            return obj.model_copy()

    def replace_content(self, object_id: str, content: bytes) -> RemoteObject:
        with self._lock:
            obj = self._require(object_id)
            updated = obj.model_copy(update={"size": len(content)})
            self._objects[object_id] = updated
            self._contents[object_id] = bytes(content)
            return updated.model_copy()

    def download(self, object_id: str) -> bytes:
        with self._lock:
            self._require(object_id)
            return self._contents.get(object_id, b"")

    def delete(self, object_id: str) -> None:
        with self._lock:
            self._require(object_id)
            del self._objects[object_id]
            self._contents.pop(object_id, None)
            # Deleting a folder removes its children, as Drive does.
            for child_id in [oid for oid, obj in self._objects.items() if object_id in obj.parents]:
                del self._objects[child_id]
                self._contents.pop(child_id, None)

    def _require(self, object_id: str) -> RemoteObject:
        obj = self._objects.get(object_id)
        if obj is None:
            raise TransportError("remote object not found", {"object_id": object_id})
        return obj


def _new_id() -> str:
    return uuid.uuid4().hex
