"""Build MinIO clients and stores from settings."""

from __future__ import annotations

from urllib.parse import urlsplit

from minio import Minio

from app.core.config import Settings, settings as default_settings
from app.storage.minio_impl import MinioStorage


def normalize_endpoint(endpoint: str) -> tuple[str, bool]:
    """``https://host:9000`` -> ``("host:9000", True)``; a bare ``host:port`` is plain HTTP."""
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    parts = urlsplit(endpoint)
    return parts.netloc, parts.scheme == "https"


def storage_configured(settings: Settings = default_settings) -> bool:
    return bool(settings.S3_ENDPOINT and settings.S3_ACCESS_KEY and settings.S3_SECRET_KEY)


def build_minio_client(settings: Settings = default_settings) -> Minio:
    host, secure = normalize_endpoint(settings.S3_ENDPOINT)
    return Minio(host, access_key=settings.S3_ACCESS_KEY, secret_key=settings.S3_SECRET_KEY, secure=secure)


def build_storage(settings: Settings = default_settings, *, ensure_bucket: bool = True) -> MinioStorage:
    """Store for contract uploads; creates the uploads bucket unless told not to."""
    storage = MinioStorage(build_minio_client(settings))
    if ensure_bucket:
        storage.ensure_bucket(settings.S3_BUCKET_UPLOADS)
    return storage


__all__ = ["build_minio_client", "build_storage", "normalize_endpoint", "storage_configured"]
