"""Image text extraction through an AI vision model.

This is a remote call: provider and timeout errors propagate unchanged so
callers see the same failure modes as the analysis engine.
"""

from __future__ import annotations

import asyncio
import logging

from app.core.errors import ExtractionError
from app.services.ai_client import AIProvider

logger = logging.getLogger(__name__)


async def transcribe_image(
    data: bytes,
    content_type: str,
    *,
    client: AIProvider,
    model: str,
    timeout_s: float = 45.0,
) -> str:
    """Transcribe the text in an image.

    Raises:
        ExtractionError: The model returned no text.
        asyncio.TimeoutError: The call exceeded ``timeout_s``.
    """
    text = await asyncio.wait_for(
        client.transcribe_image(data, content_type, model),
        timeout=timeout_s,
    )
    text = (text or "").strip()
    if not text:
        raise ExtractionError("no text content: image transcription was empty")
    logger.info("Transcribed image with %s: %d chars", model, len(text))
    return text


__all__ = ["transcribe_image"]
