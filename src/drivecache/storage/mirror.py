from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path, PurePosixPath

from drivecache.errors import LocalIOError
from drivecache.remote.base import REMOTE_PATH_SEPARATOR

logger = logging.getLogger(__name__)


class LocalMirror:
    """Files of the mirror, stored at ``root / relative_path``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def normalize(self, relative_path: str) -> str:
        """Canonical key for a path: ``docs//a.txt`` and ``./docs/a.txt`` both become ``docs/a.txt``."""
        return self._parts(relative_path).as_posix()

    def full_path(self, relative_path: str) -> Path:
        return self.root.joinpath(*self._parts(relative_path).parts)

    def _parts(self, relative_path: str) -> PurePosixPath:
        if not relative_path.strip():
            raise ValueError("relative_path must not be empty")
        posix = PurePosixPath(relative_path)
        if posix.is_absolute() or ".." in posix.parts:
            raise ValueError(f"relative_path escapes the mirror root: {relative_path}")
        if not posix.parts:
            raise ValueError(f"relative_path names no file: {relative_path}")
        if any(REMOTE_PATH_SEPARATOR in part for part in posix.parts):
            raise ValueError(
                f"relative_path must not contain {REMOTE_PATH_SEPARATOR!r}: {relative_path}"
            )
        return posix

    def exists(self, relative_path: str) -> bool:
        return self.full_path(relative_path).is_file()

    def read(self, relative_path: str) -> bytes:
        path = self.full_path(relative_path)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise LocalIOError("unable to read local file", {"path": relative_path}) from exc

    def write(self, relative_path: str, content: bytes) -> None:
        path = self.full_path(relative_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            raise LocalIOError("unable to write local file", {"path": relative_path}) from exc
        logger.debug("mirror write path=%s size=%s", relative_path, len(content))

    def delete(self, relative_path: str) -> bool:
        """Remove the local copy; returns False when it was already gone."""
        path = self.full_path(relative_path)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("mirror delete path=%s reason=not_found", relative_path)
            return False
        except OSError as exc:
            raise LocalIOError("unable to remove local file", {"path": relative_path}) from exc
        logger.debug("mirror delete path=%s", relative_path)
        return True

    def walk(self) -> Iterator[str]:
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if not path.is_file():
                    continue
                yield path.relative_to(self.root).as_posix()
