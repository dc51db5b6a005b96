"""DOCX text extraction via python-docx."""

from __future__ import annotations

import logging
from io import BytesIO

from docx import Document

from app.core.errors import ExtractionError

logger = logging.getLogger(__name__)


class DOCXParseError(ExtractionError):
    """DOCX could not be opened or contained no text."""

    pass


def extract_docx_text(data: bytes) -> str:
    """Return paragraph text followed by table rows (cells joined by " | ")."""
    try:
        document = Document(BytesIO(data))
        parts = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
    except Exception as e:
        logger.warning("DOCX parse failed: %s", e, exc_info=True)
        raise DOCXParseError(f"failed to parse DOCX: {type(e).__name__}") from e

    text = "\n".join(parts).strip()
    if not text:
        raise DOCXParseError("no text content: DOCX is empty")
    return text


__all__ = ["DOCXParseError", "extract_docx_text"]
