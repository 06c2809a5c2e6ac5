"""
Storage backend abstraction for file operations.

Provides adapters for filesystem and S3 storage backends.
"""

from assetstore.storage.adapter import (
    REQUIRED_CAPABILITIES,
    NotFoundError,
    ObjectInfo,
    ObjectMetadata,
    StorageAdapter,
    StorageError,
    Visibility,
)
from assetstore.storage.filesystem import FilesystemStorage
from assetstore.storage.s3 import S3Storage

__all__ = [
    "REQUIRED_CAPABILITIES",
    "NotFoundError",
    "ObjectInfo",
    "ObjectMetadata",
    "StorageAdapter",
    "StorageError",
    "Visibility",
    "FilesystemStorage",
    "S3Storage",
]
