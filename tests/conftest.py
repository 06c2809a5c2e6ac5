# Test configuration

import io
import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from assetstore.assets.store import AssetStore
from assetstore.config.settings import Settings
from assetstore.storage.filesystem import FilesystemStorage


@pytest.fixture
def test_settings(tmp_path):
    """Override settings for testing"""
    return Settings(
        storage_backend="fs://",
        storage_path=str(tmp_path / "storage"),
        public_url_base="https://cdn.example.com/assets",
        protected_url_base="https://app.example.com/protected",
        rename_max_tries=5,
    )


@pytest.fixture
def fs_storage(test_settings):
    """Filesystem backend rooted in a temporary directory."""
    return FilesystemStorage(
        base_path=test_settings.storage_path,
        public_url_base=test_settings.public_url_base,
        protected_url_base=test_settings.protected_url_base,
    )


@pytest.fixture
def store(fs_storage, test_settings):
    """Asset store over the temporary filesystem backend."""
    return AssetStore(backend=fs_storage, settings=test_settings)


class NonSeekableStream(io.RawIOBase):
    """Read-only stream that cannot be rewound, like a socket or pipe."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    def readable(self):
        return True

    def seekable(self):
        return False

    def readinto(self, b):
        chunk = self._buffer.read(len(b))
        b[:len(chunk)] = chunk
        return len(chunk)


@pytest.fixture
def non_seekable():
    """Build a non-seekable stream over some bytes."""
    return NonSeekableStream
