"""UploadStore on top of the MinIO SDK."""

from __future__ import annotations

import functools
import io
import logging
from datetime import timedelta
from typing import Callable, Mapping, TypeVar

from minio import Minio

from app.storage.base import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _storage_call(op: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Turn any SDK or transport failure of the wrapped method into StorageError."""

    def decorate(method: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(method)
        def wrapper(self, bucket: str, *args, **kwargs) -> T:
            try:
                return method(self, bucket, *args, **kwargs)
            except Exception as e:
                location = f"{bucket}/{args[0]}" if args and isinstance(args[0], str) else bucket
                logger.warning("MinIO %s failed for %s: %s", op, location, e)
                raise StorageError(op, location, str(e)) from e

        return wrapper

    return decorate


class MinioStorage:
    def __init__(self, client: Minio):
        self._client = client

    @_storage_call("put")
    def put_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str:
        self._client.put_object(
            bucket_name=bucket,
            object_name=key,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            metadata=dict(metadata) if metadata else None,
        )
        return f"{bucket}/{key}"

    @_storage_call("get")
    def get_bytes(self, bucket: str, key: str) -> bytes:
        response = self._client.get_object(bucket, key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    @_storage_call("delete")
    def delete(self, bucket: str, key: str) -> None:
        self._client.remove_object(bucket, key)

    @_storage_call("bucket_exists")
    def bucket_exists(self, name: str) -> bool:
        return self._client.bucket_exists(name)

    @_storage_call("ensure_bucket")
    def ensure_bucket(self, name: str) -> None:
        if not self._client.bucket_exists(name):
            logger.info("Creating bucket %s", name)
            self._client.make_bucket(name)

    @_storage_call("presign_get")
    def presign_get(self, bucket: str, key: str, ttl_seconds: int = 900) -> str:
        return self._client.presigned_get_object(bucket, key, expires=timedelta(seconds=ttl_seconds))


__all__ = ["MinioStorage"]
