# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Storage
    storage_backend: str = "fs://"
    storage_path: str = "./storage"
    public_url_base: str = "/assets"
    protected_url_base: str = "/assets/protected"

    # S3
    s3_bucket: str = ""
    s3_prefix: str = ""
    s3_endpoint_url: Optional[str] = None
    s3_presign_expiry: int = 900  # seconds
    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""

    # Writes
    default_conflict: str = "overwrite"
    rename_max_tries: int = 100
    hash_algorithm: str = "sha1"
    hash_chunk_size: int = 64 * 1024

    # Observability
    log_level: str = "INFO"
    log_json: bool = True
    metrics_enabled: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "ASSETSTORE_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
