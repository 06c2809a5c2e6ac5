"""
Filesystem storage backend implementation.

Stores files in a local directory structure:
- public/{key} - files anyone may fetch
- protected/{key} - files served only through the host application

A key lives under exactly one of the two roots; its visibility is the
root it lives under.
"""

import logging
import mimetypes
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, Optional, Tuple
from urllib.parse import quote

from assetstore.storage.adapter import (
    NotFoundError,
    ObjectInfo,
    ObjectMetadata,
    StorageAdapter,
    StorageError,
    Visibility,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


class FilesystemStorage(StorageAdapter):
    """
    Filesystem-based storage implementation.

    Organizes files in a public and a protected directory tree on the
    local filesystem. Changing visibility moves the file between trees.
    """

    def __init__(
        self,
        base_path: str = "./storage",
        public_url_base: str = "/assets",
        protected_url_base: str = "/assets/protected",
    ):
        """
        Initialize filesystem storage.

        Args:
            base_path: Root directory for all storage
            public_url_base: URL prefix under which public files are served
            protected_url_base: URL prefix of the host's protected file handler
        """
        self.base_path = Path(base_path).resolve()
        self.public_url_base = public_url_base.rstrip("/")
        self.protected_url_base = protected_url_base.rstrip("/")
        self._roots = {
            Visibility.PUBLIC: self.base_path / "public",
            Visibility.PROTECTED: self.base_path / "protected",
        }
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        """Create the directory structure if it doesn't exist."""
        for directory in self._roots.values():
            directory.mkdir(parents=True, exist_ok=True)

    def _relative(self, key: str) -> PurePosixPath:
        """
        Validate a key and convert it to a relative path.

        Raises:
            StorageError: If the key is absolute or escapes the root
        """
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Invalid key: {key}")
        return relative

    def _key_to_path(self, key: str, visibility: Visibility) -> Path:
        return self._roots[visibility] / self._relative(key)

    def _locate(self, key: str) -> Optional[Tuple[Path, Visibility]]:
        """Find the file backing a key and the visibility it has."""
        for visibility in (Visibility.PUBLIC, Visibility.PROTECTED):
            path = self._key_to_path(key, visibility)
            if path.is_file():
                return path, visibility
        return None

    def _require(self, key: str) -> Tuple[Path, Visibility]:
        located = self._locate(key)
        if located is None:
            raise NotFoundError(key)
        return located

    def _prune(self, path: Path, root: Path) -> None:
        """Remove empty parent directories of path, stopping at root."""
        parent = path.parent
        while parent != root and root in parent.parents:
            try:
                # Check if directory is empty before removing
                if not any(parent.iterdir()):
                    parent.rmdir()
                    parent = parent.parent
                else:
                    break
            except OSError:
                # Directory not empty or already removed
                break

    def _remove_other_copies(self, key: str, visibility: Visibility) -> None:
        for other, root in self._roots.items():
            if other is visibility:
                continue
            path = self._key_to_path(key, other)
            if path.is_file():
                path.unlink()
                self._prune(path, root)

    def exists(self, key: str) -> bool:
        """Check if a file exists."""
        return self._locate(key) is not None

    def read_stream(self, key: str) -> BinaryIO:
        """Open a stored file for reading."""
        path, _ = self._require(key)
        try:
            return open(path, "rb")
        except OSError as e:
            raise StorageError(f"Failed to open file: {e}") from e

    def read(self, key: str) -> bytes:
        """Read the full content of a stored file."""
        path, _ = self._require(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read file: {e}") from e

    def write_stream(self, key: str, stream: BinaryIO, visibility: Visibility) -> bool:
        """Store the remaining content of a stream under a key."""
        target_path = self._key_to_path(key, visibility)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            with open(target_path, "wb") as f:
                shutil.copyfileobj(stream, f)
            self._remove_other_copies(key, visibility)
        except OSError as e:
            raise StorageError(f"Failed to store file {key}: {e}") from e

        logger.debug(f"Stored {key} as {visibility.value}")
        return True

    def write(self, key: str, data: bytes, visibility: Visibility) -> bool:
        """Store a buffer under a key."""
        target_path = self._key_to_path(key, visibility)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            target_path.write_bytes(data)
            self._remove_other_copies(key, visibility)
        except OSError as e:
            raise StorageError(f"Failed to store file {key}: {e}") from e

        logger.debug(f"Stored {key} as {visibility.value}")
        return True

    def delete(self, key: str) -> bool:
        """Delete a file and clean up empty parent directories."""
        path, visibility = self._require(key)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e

        self._prune(path, self._roots[visibility])
        return True

    def list_contents(self, directory: str = "") -> Iterator[ObjectInfo]:
        """List the direct children of a directory across both trees."""
        relative = self._relative(directory) if directory else PurePosixPath()
        seen = set()
        for root in self._roots.values():
            dir_path = root / relative
            if not dir_path.is_dir():
                continue
            try:
                children = sorted(dir_path.iterdir())
            except OSError as e:
                raise StorageError(f"Failed to list {directory!r}: {e}") from e
            for child in children:
                path = child.relative_to(root).as_posix()
                if path in seen:
                    continue
                seen.add(path)
                yield ObjectInfo(path=path, type="dir" if child.is_dir() else "file")

    def get_visibility(self, key: str) -> Optional[Visibility]:
        located = self._locate(key)
        return located[1] if located else None

    def set_visibility(self, key: str, visibility: Visibility) -> None:
        """Move a file to the tree of the requested visibility."""
        path, current = self._require(key)
        if current is visibility:
            return

        target_path = self._key_to_path(key, visibility)
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            path.replace(target_path)
        except OSError as e:
            raise StorageError(f"Failed to change visibility of {key}: {e}") from e

        self._prune(path, self._roots[current])

    def get_metadata(self, key: str) -> ObjectMetadata:
        path, visibility = self._require(key)
        try:
            stat = path.stat()
        except OSError as e:
            raise StorageError(f"Failed to stat file: {e}") from e

        return ObjectMetadata(
            path=key,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            mime_type=self._guess_mime_type(key),
            visibility=visibility,
        )

    def get_mime_type(self, key: str) -> str:
        self._require(key)
        return self._guess_mime_type(key)

    def _guess_mime_type(self, key: str) -> str:
        mime_type, _ = mimetypes.guess_type(key)
        return mime_type or DEFAULT_MIME_TYPE

    def get_public_url(self, key: str) -> str:
        return f"{self.public_url_base}/{quote(key)}"

    def get_protected_url(self, key: str) -> str:
        return f"{self.protected_url_base}/{quote(key)}"
