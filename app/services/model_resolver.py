"""Model tier selection and fallback chain construction."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def select_model(
    file_size_bytes: int,
    *,
    threshold_bytes: int,
    fast_model: str,
    standard_model: str,
) -> str:
    """Pick the fast model for uploads above the size threshold."""
    model = fast_model if file_size_bytes > threshold_bytes else standard_model
    logger.debug(
        "Selected model %s for %.1fMB upload (threshold %.1fMB)",
        model,
        file_size_bytes / 1024 / 1024,
        threshold_bytes / 1024 / 1024,
    )
    return model


def build_model_chain(primary: str, fallbacks: Iterable[str]) -> tuple[str, ...]:
    """Primary model first, then fallbacks in order, without duplicates."""
    chain: list[str] = []
    for model in (primary, *fallbacks):
        if model and model not in chain:
            chain.append(model)
    return tuple(chain)


def resolve_model_chain(
    file_size_bytes: int,
    preferred_model: Optional[str] = None,
    settings: Settings = default_settings,
) -> tuple[str, ...]:
    """Fallback chain for an upload.

    A caller-resolved preference (plan tier or explicit user choice) wins
    over the size-based choice.
    """
    primary = preferred_model or select_model(
        file_size_bytes,
        threshold_bytes=settings.large_file_threshold_bytes,
        fast_model=settings.AI_MODEL_FAST,
        standard_model=settings.AI_MODEL_STANDARD,
    )
    return build_model_chain(primary, settings.AI_FALLBACK_MODELS)


__all__ = ["build_model_chain", "resolve_model_chain", "select_model"]
