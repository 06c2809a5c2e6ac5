"""Exception hierarchy for the asset store."""

from typing import Dict, Optional


class AssetStoreError(Exception):
    """Base exception for all asset store errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(AssetStoreError, ValueError):
    """Raised when a call is rejected before any backend I/O."""
    pass


class ConflictError(AssetStoreError):
    """Raised when a write cannot be placed under the requested conflict policy."""

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message, {"key": key})
        self.key = key


class WriteError(AssetStoreError):
    """Raised when the writer reports that the byte transfer failed."""

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message, {"key": key})
        self.key = key


class MisconfigurationError(AssetStoreError):
    """Raised when no backend is assigned or the backend lacks a capability."""
    pass
