"""
Content-addressed asset store.

Maps logical files (filename, hash, variant) onto keys of a storage
backend, applies the conflict policy of each write, keeps variants next
to their originals and removes whole file families on delete.
"""

import logging
import os
import re
from contextlib import closing
from dataclasses import dataclass, replace
from typing import Any, BinaryIO, Callable, Dict, Iterator, NamedTuple, Optional, Union

from assetstore.assets.conflicts import ConflictPolicy, resolve_conflict
from assetstore.assets.hashing import (
    buffered_to_file,
    hash_bytes,
    hash_file,
    hash_stream,
    is_seekable,
)
from assetstore.assets.keys import (
    HASH_PREFIX_LENGTH,
    VARIANT_DELIMITER,
    clean_filename,
    derive_key,
    key_dirname,
    original_filename,
    strip_variant,
)
from assetstore.assets.naming import NameGeneratorFactory, versioned_name_generator
from assetstore.common.logging_config import PerformanceTracker
from assetstore.common.metrics import record_delete, record_write, track_operation
from assetstore.config.settings import Settings, get_settings
from assetstore.exceptions import InvalidInputError, MisconfigurationError, WriteError
from assetstore.storage.adapter import (
    REQUIRED_CAPABILITIES,
    NotFoundError,
    ObjectMetadata,
    StorageAdapter,
    Visibility,
)

logger = logging.getLogger(__name__)

_HASH_PATTERN = re.compile(rf"^[A-Za-z0-9]{{{HASH_PREFIX_LENGTH},}}$")


class AssetTuple(NamedTuple):
    """Identity of a stored file as reported back to callers."""
    filename: str
    hash: str
    variant: Optional[str] = None


@dataclass(frozen=True)
class WriteConfig:
    """
    Per-write options. Unset fields fall back to store defaults.

    String values are converted to their enums. A conflict policy that is
    not recognised keeps the existing file, like USE_EXISTING.
    """
    conflict: Optional[ConflictPolicy] = None
    visibility: Optional[Visibility] = None

    def __post_init__(self):
        conflict = self.conflict or None
        if conflict is not None and not isinstance(conflict, ConflictPolicy):
            try:
                conflict = ConflictPolicy(conflict)
            except ValueError:
                logger.warning(f"Unknown conflict policy {conflict!r}, keeping existing files")
                conflict = ConflictPolicy.USE_EXISTING
        object.__setattr__(self, "conflict", conflict)

        visibility = self.visibility or None
        if visibility is not None and not isinstance(visibility, Visibility):
            try:
                visibility = Visibility(visibility)
            except ValueError as e:
                raise InvalidInputError(f"Invalid visibility: {visibility!r}") from e
        object.__setattr__(self, "visibility", visibility)

    @classmethod
    def coerce(cls, config: Union["WriteConfig", Dict[str, Any], None]) -> "WriteConfig":
        """Build a WriteConfig from None, a WriteConfig or a plain dict."""
        if config is None:
            return cls()
        if isinstance(config, cls):
            return config
        if not isinstance(config, dict):
            raise InvalidInputError(f"Unsupported write config: {config!r}")
        return cls(conflict=config.get("conflict"), visibility=config.get("visibility"))


# Transfers the bytes of one write: (backend, key, config) -> success
Writer = Callable[[StorageAdapter, str, WriteConfig], bool]


def validate_variant(variant: str) -> None:
    """
    Reject variant names that would not survive key parsing.

    Raises:
        InvalidInputError: If the variant contains a path separator, a dot,
            the variant delimiter, or starts with an underscore
    """
    if (
        "/" in variant
        or "." in variant
        or VARIANT_DELIMITER in variant
        or variant.startswith("_")
    ):
        raise InvalidInputError(f"Invalid variant name: {variant!r}")


def validate_hash(hash: str) -> None:
    """
    Reject hashes whose key segment could not be recognised again.

    Raises:
        InvalidInputError: If the hash is shorter than the key segment or
            not alphanumeric
    """
    if not _HASH_PATTERN.match(hash):
        raise InvalidInputError(
            f"Invalid file hash: {hash!r} (expected at least "
            f"{HASH_PREFIX_LENGTH} alphanumeric characters)")


class AssetStore:
    """
    Asset store on top of a storage backend.

    Instances hold no per-call state and may be shared between threads.
    Conflict checks and the write that follows are separate backend
    calls, so two concurrent writers to the same key can both see it as
    free; the backend decides which write survives.
    """

    def __init__(
        self,
        backend: Optional[StorageAdapter] = None,
        name_generator: Optional[NameGeneratorFactory] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the store.

        Args:
            backend: Storage backend (may be assigned later via set_backend)
            name_generator: Rename candidate factory for the RENAME policy
            settings: Configuration (defaults to the process settings)
        """
        self.settings = settings if settings is not None else get_settings()
        self.name_generator = name_generator or versioned_name_generator(
            self.settings.rename_max_tries)
        try:
            self.default_conflict = ConflictPolicy(self.settings.default_conflict)
        except ValueError as e:
            raise MisconfigurationError(
                f"Unknown default conflict policy: {self.settings.default_conflict}") from e

        self._backend: Optional[StorageAdapter] = None
        if backend is not None:
            self.set_backend(backend)

    # ========== Backend ==========

    def set_backend(self, backend: StorageAdapter) -> "AssetStore":
        """
        Assign the storage backend.

        Raises:
            MisconfigurationError: If the backend lacks a required capability
        """
        missing = [
            name for name in REQUIRED_CAPABILITIES
            if not callable(getattr(backend, name, None))
        ]
        if missing:
            raise MisconfigurationError(
                f"Storage backend {type(backend).__name__} is missing capabilities: "
                + ", ".join(missing))
        self._backend = backend
        return self

    @property
    def backend(self) -> StorageAdapter:
        if self._backend is None:
            raise MisconfigurationError("Storage backend misconfiguration: no backend assigned")
        return self._backend

    def get_capabilities(self) -> Dict[str, list]:
        return {
            "visibility": [Visibility.PUBLIC, Visibility.PROTECTED],
            "conflict": [
                ConflictPolicy.THROW_ON_CONFLICT,
                ConflictPolicy.OVERWRITE,
                ConflictPolicy.RENAME,
                ConflictPolicy.USE_EXISTING,
            ],
        }

    # ========== Reads ==========

    def get_visibility(self, filename: str, hash: str) -> Optional[Visibility]:
        """Visibility of the original file, or None if it is not stored."""
        return self.backend.get_visibility(derive_key(filename, hash))

    def get_as_stream(self, filename: str, hash: str, variant: Optional[str] = None) -> BinaryIO:
        return self.backend.read_stream(derive_key(filename, hash, variant))

    def get_as_bytes(self, filename: str, hash: str, variant: Optional[str] = None) -> bytes:
        return self.backend.read(derive_key(filename, hash, variant))

    def get_as_url(
        self,
        filename: str,
        hash: str,
        variant: Optional[str] = None,
        grant: bool = True,
    ) -> Optional[str]:
        """
        URL serving the file, chosen by its visibility.

        Public files get a direct URL, protected files a URL of the
        backend's protected mechanism. Returns None when nothing is stored.
        The grant flag is accepted for interface compatibility; access to
        protected files is controlled by the backend's URLs alone.
        """
        key = derive_key(filename, hash, variant)
        backend = self.backend

        visibility = backend.get_visibility(key)
        if visibility is Visibility.PUBLIC:
            return backend.get_public_url(key)
        if visibility is Visibility.PROTECTED:
            return backend.get_protected_url(key)
        return None

    def exists(self, filename: str, hash: str, variant: Optional[str] = None) -> bool:
        return self.backend.exists(derive_key(filename, hash, variant))

    def get_metadata(self, filename: str, hash: str, variant: Optional[str] = None) -> ObjectMetadata:
        return self.backend.get_metadata(derive_key(filename, hash, variant))

    def get_mime_type(self, filename: str, hash: str, variant: Optional[str] = None) -> str:
        return self.backend.get_mime_type(derive_key(filename, hash, variant))

    # ========== Writes ==========

    def set_from_local_file(
        self,
        path: Union[str, os.PathLike],
        filename: Optional[str] = None,
        hash: Optional[str] = None,
        variant: Optional[str] = None,
        config: Union[WriteConfig, Dict[str, Any], None] = None,
    ) -> AssetTuple:
        """
        Store the content of a local file.

        Args:
            path: Local file to copy from
            filename: Name to store under (defaults to the basename of path)
            hash: Hash of the original; required for variants, computed otherwise
            variant: Variant name, if storing a derived file
            config: Conflict policy and visibility

        Raises:
            InvalidInputError: If path does not exist or arguments are invalid
        """
        path = os.fspath(path)
        if not os.path.isfile(path):
            raise InvalidInputError(f"{path} does not exist")

        if not filename:
            filename = os.path.basename(path)

        def writer(backend: StorageAdapter, key: str, write_config: WriteConfig) -> bool:
            try:
                handle = open(path, "rb")
            except OSError as e:
                raise WriteError(f"{path} could not be opened for reading", key) from e
            with handle:
                return backend.write_stream(key, handle, write_config.visibility)

        # When saving the original, generate the hash
        if not variant:
            hash = hash_file(path, self.settings.hash_algorithm, self.settings.hash_chunk_size)

        return self.write(writer, filename, hash, variant, config, source="local_file")

    def set_from_bytes(
        self,
        data: Union[bytes, str],
        filename: str,
        hash: Optional[str] = None,
        variant: Optional[str] = None,
        config: Union[WriteConfig, Dict[str, Any], None] = None,
    ) -> AssetTuple:
        """Store an in-memory buffer. Text is stored UTF-8 encoded."""
        if isinstance(data, str):
            data = data.encode("utf-8")

        def writer(backend: StorageAdapter, key: str, write_config: WriteConfig) -> bool:
            return backend.write(key, data, write_config.visibility)

        if not variant:
            hash = hash_bytes(data, self.settings.hash_algorithm)

        return self.write(writer, filename, hash, variant, config, source="bytes")

    def set_from_stream(
        self,
        stream: BinaryIO,
        filename: str,
        hash: Optional[str] = None,
        variant: Optional[str] = None,
        config: Union[WriteConfig, Dict[str, Any], None] = None,
    ) -> AssetTuple:
        """
        Store the content of a binary stream.

        Streams that cannot be rewound are first copied to a temporary
        file, which is removed once the write finishes or fails.
        """
        if not filename:
            raise InvalidInputError("Filename is missing")

        if not is_seekable(stream):
            with buffered_to_file(stream) as path:
                return self.set_from_local_file(path, filename, hash, variant, config)

        def writer(backend: StorageAdapter, key: str, write_config: WriteConfig) -> bool:
            return backend.write_stream(key, stream, write_config.visibility)

        if not variant:
            hash = hash_stream(stream, self.settings.hash_algorithm, self.settings.hash_chunk_size)

        return self.write(writer, filename, hash, variant, config, source="stream")

    @track_operation("write")
    def write(
        self,
        writer: Writer,
        filename: str,
        hash: Optional[str],
        variant: Optional[str] = None,
        config: Union[WriteConfig, Dict[str, Any], None] = None,
        source: str = "callback",
    ) -> AssetTuple:
        """
        Run the conflict policy for a write and invoke the writer if approved.

        The writer is called at most once, with the resolved key and a
        config whose visibility is always set. Without an explicit
        visibility the write inherits the visibility of the original file,
        or PUBLIC if the original is not stored yet.

        Returns:
            The stored identity. The filename reflects any rename. When an
            existing original is kept, the hash is recomputed from the
            stored content; for variants the given hash is returned.

        Raises:
            InvalidInputError: If filename or hash is missing, or a variant
                is written with the RENAME policy
            ConflictError: If the conflict policy rejects the write
            WriteError: If the writer reports failure
        """
        config = WriteConfig.coerce(config)
        policy = config.conflict or self.default_conflict

        if variant and policy is ConflictPolicy.RENAME:
            # Variants must stay at their predictable keys
            raise InvalidInputError("Rename cannot be used when writing variants")
        if not filename:
            raise InvalidInputError("Filename is missing")
        if not hash:
            raise InvalidInputError("File hash is missing")
        validate_hash(hash)
        if variant:
            validate_variant(variant)

        backend = self.backend
        filename = clean_filename(filename)
        key = derive_key(filename, hash, variant)

        resolved = resolve_conflict(key, policy, backend.exists, self.name_generator)
        if resolved is not None:
            if config.visibility is None:
                visibility = backend.get_visibility(derive_key(filename, hash))
                config = replace(config, visibility=visibility or Visibility.PUBLIC)

            with PerformanceTracker("write", logger, key=resolved, source=source):
                stored = writer(backend, resolved, config)
            if not stored:
                raise WriteError(f"Could not save {filename}", resolved)

            # Conflict resolution may have renamed the file
            filename = original_filename(resolved)
            record_write(source, "written")
            logger.info(
                f"Stored {resolved}",
                extra={"extra_fields": {"key": resolved, "visibility": config.visibility.value}},
            )
        else:
            if not variant:
                # Report the hash of the file that is actually stored
                with closing(backend.read_stream(key)) as stream:
                    hash = hash_stream(stream, self.settings.hash_algorithm,
                                       self.settings.hash_chunk_size)
            record_write(source, "use_existing")
            logger.info(f"Kept existing file at {key}")

        return AssetTuple(filename, hash, variant)

    # ========== Variants and deletion ==========

    def find_variants(self, key: str) -> Iterator[str]:
        """
        Yield every stored key of the file family of key.

        key is the key of an original (no variant). The original itself is
        included when stored. Each call lists the backend afresh.
        """
        backend = self.backend
        directory = key_dirname(key)
        logger.debug(f"Listing {directory or '/'} for variants of {key}")

        for entry in backend.list_contents(directory):
            if not entry.is_file:
                continue
            # Compare given file to target, omitting variant
            if strip_variant(entry.path) == key:
                yield entry.path

    @track_operation("delete")
    def delete(self, filename: str, hash: str) -> bool:
        """
        Delete a file and all of its variants.

        Keys are deleted one by one; if a backend delete fails the error
        propagates and keys already deleted stay deleted.

        Returns:
            True if at least one key was removed, False if nothing was stored
        """
        key = derive_key(filename, hash)
        backend = self.backend

        deleted = 0
        with PerformanceTracker("delete", logger, key=key):
            for next_key in self.find_variants(key):
                backend.delete(next_key)
                deleted += 1

        record_delete(deleted)
        if deleted:
            logger.info(f"Deleted {deleted} key(s) for {key}")
        return deleted > 0

    # ========== Visibility ==========

    def publish(self, filename: str, hash: str) -> None:
        """Make a file and its variants public."""
        self._set_family_visibility(derive_key(filename, hash), Visibility.PUBLIC)

    def protect(self, filename: str, hash: str) -> None:
        """Make a file and its variants protected."""
        self._set_family_visibility(derive_key(filename, hash), Visibility.PROTECTED)

    def _set_family_visibility(self, key: str, visibility: Visibility) -> None:
        backend = self.backend
        keys = list(self.find_variants(key))
        if not keys:
            raise NotFoundError(key)
        for next_key in keys:
            backend.set_visibility(next_key, visibility)
        logger.info(f"Set {len(keys)} key(s) of {key} to {visibility.value}")

    # Access to protected files is granted by the backend's URLs; there is
    # no grant ledger.

    def grant(self, filename: str, hash: str) -> None:
        pass

    def revoke(self, filename: str, hash: str) -> None:
        pass

    def can_view(self, filename: str, hash: str) -> bool:
        return True
