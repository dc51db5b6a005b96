"""Shared dependencies for FastAPI routes and workers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.ai_client import OpenAIProvider
    from app.services.pipeline import ContractPipeline
    from app.storage.minio_impl import MinioStorage

_storage: "MinioStorage | None" = None
_ai_provider: "OpenAIProvider | None" = None


def get_storage() -> "MinioStorage":
    """Get or lazily initialize the storage singleton.

    Lazy initialization avoids failures at import time when MinIO is unavailable.
    """
    global _storage
    if _storage is None:
        from app.storage.factory import build_storage

        _storage = build_storage()
    return _storage


def get_ai_provider() -> "OpenAIProvider":
    """Get or lazily initialize the AI provider from settings."""
    global _ai_provider
    if _ai_provider is None:
        from app.core.config import settings
        from app.services.ai_client import OpenAIProvider

        _ai_provider = OpenAIProvider(api_key=settings.OPENAI_API_KEY, timeout_s=settings.AI_TIMEOUT_S)
    return _ai_provider


def get_pipeline() -> "ContractPipeline":
    """Contract pipeline wired to the default provider (FastAPI dependency)."""
    from app.core.config import settings
    from app.services.pipeline import ContractPipeline

    return ContractPipeline(get_ai_provider(), settings)


__all__ = ["get_ai_provider", "get_pipeline", "get_storage"]
