"""Upload store interface.

Original uploads are kept so batch workers can re-read them and clients can
download what they submitted. Keys are ``<contract_id>/<position>-<filename>``.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable


class StorageError(Exception):
    """A storage call failed. ``location`` is ``bucket`` or ``bucket/key``."""

    def __init__(self, op: str, location: str, reason: str):
        super().__init__(f"storage {op} {location}: {reason}")
        self.op = op
        self.location = location
        self.reason = reason


@runtime_checkable
class UploadStore(Protocol):
    def put_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str: ...

    def get_bytes(self, bucket: str, key: str) -> bytes: ...

    def delete(self, bucket: str, key: str) -> None: ...

    def bucket_exists(self, name: str) -> bool: ...

    def ensure_bucket(self, name: str) -> None: ...

    def presign_get(self, bucket: str, key: str, ttl_seconds: int = 900) -> str: ...


def object_key(contract_id: str, position: int, filename: str) -> str:
    """Key for the ``position``-th upload of a contract; path separators are flattened."""
    name = filename.replace("/", "_").replace("\\", "_") or "upload"
    return f"{contract_id}/{position}-{name}"


__all__ = ["StorageError", "UploadStore", "object_key"]
