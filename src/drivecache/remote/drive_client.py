from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Any

import requests

from drivecache.errors import TransportError
from drivecache.schemas import RemoteObject

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
_FILE_FIELDS = "id,name,mimeType,size,parents"

logger = logging.getLogger(__name__)


class DriveClient:
    """Google Drive v3 RemoteStore over plain REST calls.

    The bearer token is obtained elsewhere; this client never refreshes it.
    """

    def __init__(
        self,
        *,
        access_token: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not access_token.strip():
            raise ValueError("Drive access token is empty.")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")

        self.access_token = access_token
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_env(
        cls,
        *,
        env_var: str = "GDRIVE_ACCESS_TOKEN",
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> DriveClient:
        access_token = os.getenv(env_var, "").strip()
        if not access_token:
            raise ValueError(f"Environment variable {env_var} is not set.")
        return cls(access_token=access_token, timeout_seconds=timeout_seconds, session=session)

    def ensure_folder(self, name: str) -> str:
        query = (
            f"mimeType = '{FOLDER_MIME_TYPE}' and name = '{_escape_query(name)}' "
            "and 'root' in parents and trashed = false"
        )
        folders = self._list_files(query)
        if folders:
            return folders[0].id

        payload = self._request_json(
            "POST",
            f"{DRIVE_API_BASE}/files",
            params={"fields": _FILE_FIELDS},
            json_body={"name": name, "mimeType": FOLDER_MIME_TYPE},
        )
        folder = _to_remote_object(payload)
        logger.info("drive folder created name=%s id=%s", name, folder.id)
        return folder.id

    def find(self, name: str, parent_id: str) -> list[RemoteObject]:
        query = (
            f"name = '{_escape_query(name)}' and '{_escape_query(parent_id)}' in parents "
            f"and mimeType != '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        return self._list_files(query)

    def create(self, name: str, parent_id: str, content: bytes) -> RemoteObject:
        boundary = f"drivecache-{uuid.uuid4().hex}"
        metadata = {"name": name, "parents": [parent_id]}
        body = _multipart_related(boundary, metadata, content)
        payload = self._request_json(
            "POST",
            f"{DRIVE_UPLOAD_BASE}/files",
            params={"uploadType": "multipart", "fields": _FILE_FIELDS},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            data=body,
        )
        return _to_remote_object(payload)

    def replace_content(self, object_id: str, content: bytes) -> RemoteObject:
        payload = self._request_json(
            "PATCH",
            f"{DRIVE_UPLOAD_BASE}/files/{object_id}",
            params={"uploadType": "media", "fields": _FILE_FIELDS},
            headers={"Content-Type": "application/octet-stream"},
            data=content,
        )
        return _to_remote_object(payload)

    def download(self, object_id: str) -> bytes:
        response = self._request(
            "GET",
            f"{DRIVE_API_BASE}/files/{object_id}",
            params={"alt": "media"},
        )
        return response.content

    def delete(self, object_id: str) -> None:
        self._request("DELETE", f"{DRIVE_API_BASE}/files/{object_id}")

    def _list_files(self, query: str) -> list[RemoteObject]:
        payload = self._request_json(
            "GET",
            f"{DRIVE_API_BASE}/files",
            params={"q": query, "fields": f"files({_FILE_FIELDS})", "spaces": "drive"},
        )
        files = payload.get("files")
        if not isinstance(files, list):
            raise TransportError("Drive list response has no files array.", {"q": query})
        return [_to_remote_object(item) for item in files if isinstance(item, dict)]

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        data: bytes | None = None,
    ) -> dict[str, Any]:
        response = self._request(
            method, url, params=params, headers=headers, json_body=json_body, data=data
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError("Drive response is not JSON.", {"url": url}) from exc
        if not isinstance(payload, dict):
            raise TransportError("Drive response root must be an object.", {"url": url})
        return payload

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        data: bytes | None = None,
    ) -> requests.Response:
        merged_headers = {"Authorization": f"Bearer {self.access_token}"}
        if headers:
            merged_headers.update(headers)
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                headers=merged_headers,
                json=json_body,
                data=data,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise TransportError(
                "Drive request failed.", {"method": method, "url": url, "status": status}
            ) from exc
        except requests.RequestException as exc:
            raise TransportError("Drive request failed.", {"method": method, "url": url}) from exc
        return response


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _multipart_related(boundary: str, metadata: dict[str, Any], content: bytes) -> bytes:
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata, ensure_ascii=False)}\r\n"
        f"--{boundary}\r\n"
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode()
    return head + content + tail


def _to_remote_object(payload: dict[str, Any]) -> RemoteObject:
    object_id = payload.get("id")
    if not isinstance(object_id, str) or not object_id:
        raise TransportError("Drive file payload has no id.")
    return RemoteObject(
        id=object_id,
        name=str(payload.get("name", "")),
        mime_type=str(payload.get("mimeType", "")),
        size=payload.get("size"),
        parents=[str(parent) for parent in payload.get("parents") or []],
    )
