"""
Storage factory for creating storage adapter and asset store instances.

Provides cached access to the backend selected by configuration.
"""

import logging
from functools import lru_cache

from assetstore.assets.store import AssetStore
from assetstore.common.logging_config import setup_logging
from assetstore.common.metrics import configure_metrics
from assetstore.config.settings import Settings, get_settings
from assetstore.exceptions import MisconfigurationError
from assetstore.storage.adapter import StorageAdapter
from assetstore.storage.filesystem import FilesystemStorage
from assetstore.storage.s3 import S3Storage

logger = logging.getLogger(__name__)


def create_storage_adapter(settings: Settings) -> StorageAdapter:
    """
    Create the storage adapter named by settings.storage_backend.

    Raises:
        MisconfigurationError: If the storage backend is not supported
    """
    if settings.storage_backend in ("fs://", "filesystem"):
        return FilesystemStorage(
            base_path=settings.storage_path,
            public_url_base=settings.public_url_base,
            protected_url_base=settings.protected_url_base,
        )
    elif settings.storage_backend in ("s3://", "s3"):
        return S3Storage(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            presign_expiry=settings.s3_presign_expiry,
        )
    else:
        raise MisconfigurationError(
            f"Unsupported storage backend: {settings.storage_backend}. "
            "Supported backends: 'fs://', 'filesystem', 's3://', 's3'"
        )


@lru_cache()
def get_storage_adapter() -> StorageAdapter:
    """Get the configured storage adapter instance."""
    settings = get_settings()
    adapter = create_storage_adapter(settings)
    logger.info(f"Using {type(adapter).__name__} storage backend")
    return adapter


@lru_cache()
def get_asset_store() -> AssetStore:
    """Get the asset store wired to the configured storage adapter."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    configure_metrics(settings.metrics_enabled)
    return AssetStore(backend=get_storage_adapter(), settings=settings)


def reset_storage_adapter() -> None:
    """Reset the cached instances (useful for testing)."""
    get_asset_store.cache_clear()
    get_storage_adapter.cache_clear()
