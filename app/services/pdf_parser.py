"""PDF contract text extraction.

Works entirely on bytes, so it can run in a worker thread or a Temporal
activity without touching disk. Only the text layer is read; scanned pages
must be uploaded as images and go through OCR instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Mapping, Optional

import pdfplumber
from pdfminer.pdfdocument import PDFEncryptionError, PDFPasswordIncorrect

from app.core.errors import ExtractionError

logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF"

_HORIZONTAL_WS = re.compile(r"[ \t\f\v\u00a0]+")
_TRAILING_WS = re.compile(r" *\n *")
_PARAGRAPH_BREAKS = re.compile(r"\n{3,}")
_PDF_DATE = re.compile(r"^D?:?(\d{4})(\d{2})?(\d{2})?")


class PDFError(ExtractionError):
    """Base class for PDF extraction errors."""

    pass


class PDFValidationError(PDFError):
    """The upload can never yield text: not a PDF, over limits, encrypted or empty."""

    pass


class PDFParseError(PDFError):
    """pdfplumber could not read the document (corrupted or truncated file)."""

    pass


@dataclass(frozen=True, slots=True)
class PdfText:
    """Cleaned text layer of a PDF plus its document info."""

    text: str
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None
    created: Optional[str] = None  # YYYY-MM-DD when the info date parses


def clean_text(text: str) -> str:
    """Collapse whitespace runs and normalise paragraph breaks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _TRAILING_WS.sub("\n", text)
    text = _PARAGRAPH_BREAKS.sub("\n\n", text)
    return text.strip()


def _info_value(info: Mapping[str, Any], key: str) -> Optional[str]:
    value = info.get(key)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return None
    return value.strip() or None


def parse_pdf_date(value: Optional[str]) -> Optional[str]:
    """Turn a PDF info date (``D:20240131120000Z``) into ``2024-01-31``."""
    match = _PDF_DATE.match(value or "")
    if not match or not (match.group(2) and match.group(3)):
        return None
    year, month, day = match.groups()
    if not ("01" <= month <= "12" and "01" <= day <= "31"):
        return None
    return f"{year}-{month}-{day}"


def _is_encrypted_error(exc: BaseException) -> bool:
    # pdfplumber wraps pdfminer failures; the original is in args or __cause__
    for candidate in (exc, exc.__cause__, *exc.args):
        if isinstance(candidate, (PDFPasswordIncorrect, PDFEncryptionError)):
            return True
    return False


def extract_pdf_text(
    data: bytes,
    *,
    max_size_mb: int = 25,
    max_pages: int = 300,
) -> PdfText:
    """Extract the cleaned text layer and document info from PDF bytes.

    Pages are joined with blank lines; pages without text are skipped.

    Raises:
        PDFValidationError: Not a PDF, too large, too many pages, encrypted,
            or no text layer at all.
        PDFParseError: Corrupted or unparseable PDF.
    """
    if not data.startswith(PDF_HEADER):
        raise PDFValidationError("unsupported content: missing PDF header")

    if len(data) > max_size_mb * 1024 * 1024:
        raise PDFValidationError(
            f"file too large: {len(data) / 1024 / 1024:.1f}MB > {max_size_mb}MB"
        )

    try:
        with pdfplumber.open(BytesIO(data)) as pdf:
            page_count = len(pdf.pages)
            if page_count > max_pages:
                raise PDFValidationError(f"too many pages: {page_count} > {max_pages}")

            pages_text = [clean_text(page.extract_text() or "") for page in pdf.pages]
            info = dict(pdf.metadata or {})
    except PDFValidationError:
        raise
    except Exception as e:
        if _is_encrypted_error(e):
            raise PDFValidationError("encrypted PDF: remove the password and upload again") from e
        logger.warning("PDF parse failed: %s", e, exc_info=True)
        raise PDFParseError(f"failed to parse PDF: {type(e).__name__}") from e

    text = "\n\n".join(t for t in pages_text if t)
    if not text:
        raise PDFValidationError(
            "no text content: PDF may be scanned, upload the pages as images instead"
        )

    logger.debug(
        "PDF text layer: %d/%d pages with text, %d chars",
        sum(1 for t in pages_text if t),
        page_count,
        len(text),
    )
    return PdfText(
        text=text,
        page_count=page_count,
        title=_info_value(info, "Title"),
        author=_info_value(info, "Author"),
        created=parse_pdf_date(_info_value(info, "CreationDate")),
    )


__all__ = [
    "PDFError",
    "PDFParseError",
    "PDFValidationError",
    "PdfText",
    "clean_text",
    "extract_pdf_text",
    "parse_pdf_date",
]
