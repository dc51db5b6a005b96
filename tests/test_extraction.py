"""Tests for per-file extraction, combination and truncation."""

import asyncio

import pytest

from app.core.config import Settings
from app.core.errors import ExtractionError, FormatMismatchError, InsufficientTextError
from app.schemas.domain import DetectedFormat, ExtractedText, RawDocument
from app.services.extraction import (
    combine_texts,
    ensure_sufficient_text,
    extract_document,
    extract_sync,
    truncate_text,
)
from app.services.image_ocr import transcribe_image
from conftest import CONTRACT_LINES, JPEG_BYTES, PNG_BYTES


class TestExtractDocument:
    """Tests for extract_document dispatch."""

    @pytest.mark.asyncio
    async def test_pdf(self, contract_pdf):
        extracted = await extract_document(RawDocument(contract_pdf, "contract.pdf"))

        assert extracted.filename == "contract.pdf"
        assert extracted.page_count == 1
        assert CONTRACT_LINES[0] in extracted.text

    @pytest.mark.asyncio
    async def test_docx(self, docx_factory):
        data = docx_factory(["NON-DISCLOSURE AGREEMENT", "Confidential information stays secret."])

        extracted = await extract_document(RawDocument(data, "nda.docx"))

        assert extracted.text.startswith("NON-DISCLOSURE AGREEMENT")
        assert extracted.page_count is None

    @pytest.mark.asyncio
    async def test_image_uses_vision_model(self, fake_provider):
        provider = fake_provider(ocr_text="  Scanned lease agreement text  ")

        extracted = await extract_document(
            RawDocument(PNG_BYTES, "page1.png"), client=provider, vision_model="vision-x"
        )

        assert extracted.text == "Scanned lease agreement text"
        assert provider.ocr_calls == [("image/png", "vision-x")]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_image_without_client_fails(self):
        with pytest.raises(ExtractionError, match="requires an AI client"):
            await extract_document(RawDocument(JPEG_BYTES, "scan.jpeg"))

    @pytest.mark.asyncio
    async def test_empty_transcription_names_file(self, fake_provider):
        provider = fake_provider(ocr_text="   ")

        with pytest.raises(ExtractionError, match="scan.jpg") as excinfo:
            await extract_document(RawDocument(JPEG_BYTES, "scan.jpg"), client=provider)
        assert excinfo.value.filename == "scan.jpg"

    @pytest.mark.asyncio
    async def test_transcription_timeout_is_retryable(self, fake_provider):
        provider = fake_provider(ocr_text=asyncio.TimeoutError())

        with pytest.raises(ExtractionError, match="scan.jpg: image transcription failed") as excinfo:
            await extract_document(RawDocument(JPEG_BYTES, "scan.jpg"), client=provider)
        assert excinfo.value.retryable is True
        assert excinfo.value.filename == "scan.jpg"
        assert isinstance(excinfo.value.__cause__, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_rejected_image_is_not_retryable(self, fake_provider):
        provider = fake_provider(ocr_text=RuntimeError("invalid image data"))

        with pytest.raises(ExtractionError, match="invalid image data") as excinfo:
            await extract_document(RawDocument(JPEG_BYTES, "scan.jpg"), client=provider)
        assert excinfo.value.retryable is False

    @pytest.mark.asyncio
    async def test_pdf_limits_come_from_config(self, contract_pdf):
        config = Settings(PDF_MAX_PAGES=0)

        with pytest.raises(ExtractionError, match="contract.pdf: too many pages"):
            await extract_document(RawDocument(contract_pdf, "contract.pdf"), config=config)

    @pytest.mark.asyncio
    async def test_signature_mismatch_raises_before_parsing(self):
        with pytest.raises(FormatMismatchError):
            await extract_document(RawDocument(JPEG_BYTES, "contract.pdf"))

    @pytest.mark.asyncio
    async def test_corrupt_pdf_error_names_file(self):
        with pytest.raises(ExtractionError, match="broken.pdf") as excinfo:
            await extract_document(RawDocument(b"%PDF-1.4\n" + b"\x00" * 64, "broken.pdf"))
        assert excinfo.value.filename == "broken.pdf"

    def test_legacy_doc_has_no_extractor(self):
        doc = RawDocument(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 8, "old.doc")
        with pytest.raises(ExtractionError, match="no text extractor"):
            extract_sync(doc, DetectedFormat.LEGACY_DOC)


class TestTranscribeImage:
    """Tests for AI vision OCR."""

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, fake_provider):
        provider = fake_provider(ocr_text=RuntimeError("503 overloaded"))

        with pytest.raises(RuntimeError, match="503"):
            await transcribe_image(b"img", "image/png", client=provider, model="m")

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, fake_provider):
        provider = fake_provider(ocr_text=(0.5, "late text"))

        with pytest.raises(asyncio.TimeoutError):
            await transcribe_image(b"img", "image/png", client=provider, model="m", timeout_s=0.01)


class TestCombineTexts:
    """Tests for multi-file combination."""

    def test_preserves_input_order_with_headers(self):
        combined = combine_texts(
            [ExtractedText("b.pdf", "Second body"), ExtractedText("a.docx", "First body")]
        )

        assert combined == (
            "=== DOCUMENT: b.pdf ===\nSecond body\n\n=== DOCUMENT: a.docx ===\nFirst body"
        )

    def test_empty_input(self):
        assert combine_texts([]) == ""


class TestTruncateText:
    """Tests for text truncation."""

    def test_short_text_unchanged(self):
        assert truncate_text("Short text", 100) == "Short text"

    def test_exact_length_unchanged(self):
        text = "x" * 100
        assert truncate_text(text, 100) == text

    def test_long_text_truncated(self):
        assert len(truncate_text("x" * 200, 100)) == 100

    def test_prefers_sentence_boundary_near_end(self):
        text = "a" * 90 + ". " + "b" * 50
        assert truncate_text(text, 100) == "a" * 90 + "."

    def test_ignores_early_sentence_boundary(self):
        text = "a" * 10 + ". " + "b" * 200
        result = truncate_text(text, 100)
        assert len(result) == 100
        assert result.endswith("b")


class TestEnsureSufficientText:
    """Tests for the minimum text check."""

    def test_enough_text(self):
        ensure_sufficient_text([ExtractedText("a.pdf", "x" * 30), ExtractedText("b.pdf", "y" * 20)], 50)

    def test_too_short(self):
        with pytest.raises(InsufficientTextError) as excinfo:
            ensure_sufficient_text([ExtractedText("a.pdf", "  short text  ")], 50)
        assert excinfo.value.length == 10
        assert excinfo.value.minimum == 50
        assert "insufficient text" in str(excinfo.value)
