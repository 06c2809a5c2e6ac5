"""
Asset storage on top of a storage backend.

Provides key derivation, conflict resolution, writes and variant handling.
"""

from assetstore.assets.conflicts import ConflictPolicy, resolve_conflict
from assetstore.assets.keys import (
    clean_filename,
    derive_key,
    original_filename,
    strip_variant,
)
from assetstore.assets.naming import VersionedNameGenerator
from assetstore.assets.store import AssetStore, AssetTuple, WriteConfig

__all__ = [
    "AssetStore",
    "AssetTuple",
    "ConflictPolicy",
    "VersionedNameGenerator",
    "WriteConfig",
    "clean_filename",
    "derive_key",
    "original_filename",
    "resolve_conflict",
    "strip_variant",
]
