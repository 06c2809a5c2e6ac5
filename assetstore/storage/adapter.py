"""
Abstract base class for storage backends.

Defines the capability interface that every object store used by the
asset store must implement in full.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Iterator, Optional


class StorageError(Exception):
    """Exception raised for storage-related errors."""
    pass


class NotFoundError(StorageError):
    """Raised when a key is absent from the backend."""

    def __init__(self, key: str) -> None:
        super().__init__(f"File not found: {key}")
        self.key = key


class Visibility(str, Enum):
    """Access classification of a stored key."""
    PUBLIC = "public"
    PROTECTED = "protected"


@dataclass(frozen=True)
class ObjectInfo:
    """One entry of a directory listing."""
    path: str
    type: str  # "file" or "dir"

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of a stored key."""
    path: str
    size: int
    last_modified: Optional[datetime] = None
    mime_type: Optional[str] = None
    visibility: Optional[Visibility] = None


# Every method the asset store calls on a backend
REQUIRED_CAPABILITIES = (
    "exists",
    "read_stream",
    "read",
    "write_stream",
    "write",
    "delete",
    "list_contents",
    "get_visibility",
    "set_visibility",
    "get_metadata",
    "get_mime_type",
    "get_public_url",
    "get_protected_url",
)


class StorageAdapter(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations (filesystem, S3, etc.) must implement
    these methods to provide a consistent interface. Keys are relative,
    slash-separated paths such as 'folder/abcdef1234/photo.jpg'.
    """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """
        Check if a file exists.

        Args:
            key: Storage key

        Returns:
            True if file exists, False otherwise
        """
        pass

    @abstractmethod
    def read_stream(self, key: str) -> BinaryIO:
        """
        Open a stored file for reading.

        Args:
            key: Storage key

        Returns:
            Binary file-like object positioned at the start

        Raises:
            NotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    def read(self, key: str) -> bytes:
        """
        Read the full content of a stored file.

        Raises:
            NotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    def write_stream(self, key: str, stream: BinaryIO, visibility: Visibility) -> bool:
        """
        Store the remaining content of a stream under a key.

        Args:
            key: Storage key
            stream: Binary file-like object to copy from
            visibility: Visibility of the stored file

        Returns:
            True if the content was stored

        Raises:
            StorageError: If storage operation fails
        """
        pass

    @abstractmethod
    def write(self, key: str, data: bytes, visibility: Visibility) -> bool:
        """Store a buffer under a key. Returns True if the content was stored."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a file.

        Args:
            key: Storage key

        Returns:
            True once the file is removed

        Raises:
            NotFoundError: If the key does not exist
            StorageError: If deletion fails
        """
        pass

    @abstractmethod
    def list_contents(self, directory: str = "") -> Iterator[ObjectInfo]:
        """
        List the direct children of a directory.

        Args:
            directory: Directory key without trailing slash ('' for the root)

        Returns:
            Iterator of ObjectInfo entries with full paths
        """
        pass

    @abstractmethod
    def get_visibility(self, key: str) -> Optional[Visibility]:
        """Return the visibility of a key, or None if the key does not exist."""
        pass

    @abstractmethod
    def set_visibility(self, key: str, visibility: Visibility) -> None:
        """
        Change the visibility of a key.

        Raises:
            NotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    def get_metadata(self, key: str) -> ObjectMetadata:
        """
        Get size, modification time, MIME type and visibility of a key.

        Raises:
            NotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    def get_mime_type(self, key: str) -> str:
        """
        Get the MIME type of a key.

        Raises:
            NotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """Get a URL serving a public key directly."""
        pass

    @abstractmethod
    def get_protected_url(self, key: str) -> str:
        """Get a URL serving a protected key to authorised clients."""
        pass
