"""Content hashing and stream helpers."""

import hashlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Union

from assetstore.storage.adapter import StorageError

DEFAULT_ALGORITHM = "sha1"
DEFAULT_CHUNK_SIZE = 64 * 1024


def hash_bytes(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    return hashlib.new(algorithm, data).hexdigest()


def hash_file(
    path: Union[str, os.PathLike],
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    with open(path, "rb") as f:
        return hash_stream(f, algorithm, chunk_size)


def is_seekable(stream: BinaryIO) -> bool:
    """True if the stream can be rewound."""
    seekable = getattr(stream, "seekable", None)
    if not callable(seekable):
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def hash_stream(
    stream: BinaryIO,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """
    Hash the content of a stream.

    Seekable streams are hashed from the start and rewound afterwards so
    they can be read again. Other streams are consumed from their current
    position.
    """
    rewind = is_seekable(stream)
    if rewind:
        stream.seek(0)

    digest = hashlib.new(algorithm)
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        digest.update(chunk)

    if rewind:
        stream.seek(0)
    return digest.hexdigest()


@contextmanager
def buffered_to_file(stream: BinaryIO) -> Iterator[str]:
    """
    Copy a stream into a temporary file and yield its path.

    The file is removed on exit, including when the body raises.

    Raises:
        StorageError: If the temporary file cannot be created or written
    """
    try:
        fd, path = tempfile.mkstemp(prefix="assetstore")
    except OSError as e:
        raise StorageError(f"Could not create temporary file: {e}") from e

    try:
        try:
            with os.fdopen(fd, "wb") as buffer:
                shutil.copyfileobj(stream, buffer)
        except OSError as e:
            raise StorageError(f"Could not write stream to temporary file: {e}") from e
        yield path
    finally:
        if os.path.exists(path):
            os.unlink(path)
