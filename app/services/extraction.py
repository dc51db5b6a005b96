"""Per-file text extraction and multi-file combination."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from app.core.config import Settings, settings as default_settings
from app.core.errors import ExtractionError, HeliosError, InsufficientTextError
from app.schemas.domain import DetectedFormat, ExtractedText, RawDocument
from app.services.ai_client import AIProvider, is_retryable_error
from app.services.docx_parser import extract_docx_text
from app.services.file_type import IMAGE_CONTENT_TYPES, IMAGE_EXTENSIONS, verify_signature
from app.services.image_ocr import transcribe_image
from app.services.pdf_parser import extract_pdf_text

logger = logging.getLogger(__name__)

SOURCE_HEADER = "=== DOCUMENT: {filename} ==="


def extract_sync(
    document: RawDocument,
    detected: DetectedFormat,
    *,
    pdf_max_size_mb: int = 25,
    pdf_max_pages: int = 300,
) -> ExtractedText:
    """Extract text from a verified PDF or DOCX document.

    Raises:
        ExtractionError: The format has no local extractor or produced no text.
            The message names the file.
    """
    try:
        if detected == DetectedFormat.PDF:
            result = extract_pdf_text(document.data, max_size_mb=pdf_max_size_mb, max_pages=pdf_max_pages)
            return ExtractedText(document.filename, result.text, result.page_count)
        if detected == DetectedFormat.DOCX:
            return ExtractedText(document.filename, extract_docx_text(document.data))
    except ExtractionError as e:
        raise type(e)(f"{document.filename}: {e}", filename=document.filename) from e

    raise ExtractionError(
        f"{document.filename}: no text extractor for format '{detected.value}'",
        filename=document.filename,
    )


async def extract_document(
    document: RawDocument,
    *,
    client: Optional[AIProvider] = None,
    config: Optional[Settings] = None,
    vision_model: Optional[str] = None,
    timeout_s: Optional[float] = None,
) -> ExtractedText:
    """Verify a document's signature and extract its text.

    Limits and the vision model come from ``config`` (the global settings by
    default). Images are transcribed with the AI vision model and need
    ``client``; a provider or timeout failure during transcription surfaces
    as ExtractionError with ``retryable`` set from the cause.
    """
    config = config or default_settings
    detected = verify_signature(document)

    if document.extension in IMAGE_EXTENSIONS:
        if client is None:
            raise ExtractionError(
                f"{document.filename}: image transcription requires an AI client",
                filename=document.filename,
            )
        image_type = IMAGE_EXTENSIONS[document.extension]
        try:
            text = await transcribe_image(
                document.data,
                IMAGE_CONTENT_TYPES[image_type],
                client=client,
                model=vision_model or config.AI_VISION_MODEL,
                timeout_s=timeout_s or config.AI_TIMEOUT_S,
            )
        except ExtractionError as e:
            raise ExtractionError(f"{document.filename}: {e}", filename=document.filename) from e
        except HeliosError:
            raise
        except Exception as e:
            retryable = is_retryable_error(e)
            logger.warning("Image transcription failed for %s (retryable=%s): %r", document.filename, retryable, e)
            raise ExtractionError(
                f"{document.filename}: image transcription failed: {str(e) or type(e).__name__}",
                filename=document.filename,
                retryable=retryable,
            ) from e
        return ExtractedText(document.filename, text, 1)

    return await asyncio.to_thread(
        extract_sync,
        document,
        detected,
        pdf_max_size_mb=config.PDF_MAX_FILE_SIZE_MB,
        pdf_max_pages=config.PDF_MAX_PAGES,
    )


def combine_texts(texts: Iterable[ExtractedText]) -> str:
    """Join extracted texts in input order, each under a source header."""
    return "\n\n".join(
        f"{SOURCE_HEADER.format(filename=t.filename)}\n{t.text.strip()}" for t in texts
    )


def truncate_text(text: str, max_chars: int) -> str:
    """Truncate text to max_chars, preserving complete sentences where possible.

    Lossy: anything past ``max_chars`` is dropped before the model sees it.
    """
    if len(text) <= max_chars:
        return text

    logger.info("Truncating contract text from %d to %d chars", len(text), max_chars)
    truncated = text[:max_chars]
    last_period = truncated.rfind(".")
    if last_period > max_chars * 0.8:
        truncated = truncated[: last_period + 1]

    return truncated


def ensure_sufficient_text(texts: Iterable[ExtractedText], min_chars: int) -> None:
    """Raise InsufficientTextError when the combined body text is too short.

    Source headers are not counted.
    """
    length = sum(len(t.text.strip()) for t in texts)
    if length < min_chars:
        raise InsufficientTextError(length, min_chars)


__all__ = [
    "SOURCE_HEADER",
    "combine_texts",
    "ensure_sufficient_text",
    "extract_document",
    "extract_sync",
    "truncate_text",
]
