"""Object storage for original contract uploads."""

from app.storage.base import StorageError, UploadStore, object_key
from app.storage.minio_impl import MinioStorage

__all__ = ["MinioStorage", "StorageError", "UploadStore", "object_key"]
