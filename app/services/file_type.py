"""File signature (magic number) detection.

The sniffed format is authoritative; the declared extension is only a claim
that must agree with it.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.core.errors import FormatMismatchError
from app.schemas.domain import DetectedFormat, RawDocument

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF-"
ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Declared extension -> sniffed format it must match
DOCUMENT_EXTENSIONS: dict[str, DetectedFormat] = {
    "pdf": DetectedFormat.PDF,
    "docx": DetectedFormat.DOCX,
    "doc": DetectedFormat.LEGACY_DOC,
}

# Declared extension -> sniffed image type it must match
IMAGE_EXTENSIONS: dict[str, str] = {
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "png": "png",
    "webp": "webp",
}

IMAGE_CONTENT_TYPES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def detect_format(data: bytes) -> DetectedFormat:
    """Classify a document buffer by its leading bytes. Never raises."""
    if not data or len(data) < 4:
        return DetectedFormat.UNKNOWN
    if data.startswith(PDF_SIGNATURE):
        return DetectedFormat.PDF
    if data.startswith(ZIP_SIGNATURES):
        return DetectedFormat.DOCX
    if data.startswith(OLE_SIGNATURE):
        return DetectedFormat.LEGACY_DOC
    # Lenient: some producers emit ZIP containers with unusual record order
    if data.startswith(b"PK"):
        return DetectedFormat.DOCX
    return DetectedFormat.UNKNOWN


def detect_image_type(data: bytes) -> Optional[str]:
    """Return "jpeg", "png" or "webp" for recognised image buffers."""
    if data.startswith(JPEG_SIGNATURE):
        return "jpeg"
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def verify_signature(document: RawDocument) -> DetectedFormat:
    """Check that a document's bytes match its declared extension.

    Returns:
        The sniffed DetectedFormat (UNKNOWN for verified images).

    Raises:
        FormatMismatchError: Extension and signature disagree, or the
            extension is not one we know how to verify.
    """
    ext = document.extension
    detected = detect_format(document.data)

    if ext in IMAGE_EXTENSIONS:
        image_type = detect_image_type(document.data)
        if image_type != IMAGE_EXTENSIONS[ext]:
            _reject(document, f"expected {IMAGE_EXTENSIONS[ext]} image, found {image_type or detected.value}")
        return detected

    expected = DOCUMENT_EXTENSIONS.get(ext)
    if expected is None:
        _reject(document, f"unsupported extension '.{ext}'" if ext else "missing extension")
    if detected != expected:
        _reject(document, f"expected {expected.value}, found {detected.value}")
    return detected


def _reject(document: RawDocument, detail: str) -> None:
    logger.warning("Signature check failed for %s: %s", document.filename, detail)
    raise FormatMismatchError(
        document.filename,
        f"security error: signature mismatch for '{document.filename}' ({detail})",
    )


__all__ = [
    "DOCUMENT_EXTENSIONS",
    "IMAGE_CONTENT_TYPES",
    "IMAGE_EXTENSIONS",
    "detect_format",
    "detect_image_type",
    "verify_signature",
]
