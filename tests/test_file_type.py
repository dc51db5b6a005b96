"""Tests for file signature detection."""

import pytest

from app.core.errors import FormatMismatchError
from app.schemas.domain import DetectedFormat, RawDocument
from app.services.file_type import detect_format, detect_image_type, verify_signature
from conftest import JPEG_BYTES, PNG_BYTES

OLE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class TestDetectFormat:
    """Tests for detect_format."""

    @pytest.mark.parametrize(
        "data",
        [b"%PDF-1.4\n...", b"%PDF-2.0", b"%PDF-"],
    )
    def test_pdf_signature(self, data):
        assert detect_format(data) == DetectedFormat.PDF

    @pytest.mark.parametrize(
        "data",
        [b"PK\x03\x04rest", b"PK\x05\x06rest", b"PK\x07\x08rest", b"PKxxanything"],
    )
    def test_zip_signatures_are_docx(self, data):
        assert detect_format(data) == DetectedFormat.DOCX

    def test_ole_signature_is_legacy_doc(self):
        assert detect_format(OLE + b"\x00" * 16) == DetectedFormat.LEGACY_DOC

    @pytest.mark.parametrize(
        "data",
        [b"", b"%PD", b"PK", b"abc", JPEG_BYTES, PNG_BYTES, b"hello world", b"%PDX-1.4"],
    )
    def test_everything_else_is_unknown(self, data):
        assert detect_format(data) == DetectedFormat.UNKNOWN

    def test_partial_ole_signature_is_unknown(self):
        assert detect_format(OLE[:6]) == DetectedFormat.UNKNOWN


class TestDetectImageType:
    """Tests for detect_image_type."""

    def test_jpeg(self):
        assert detect_image_type(JPEG_BYTES) == "jpeg"

    def test_png(self):
        assert detect_image_type(PNG_BYTES) == "png"

    def test_webp(self):
        assert detect_image_type(b"RIFF\x24\x00\x00\x00WEBPVP8 ") == "webp"

    def test_riff_without_webp_is_none(self):
        assert detect_image_type(b"RIFF\x24\x00\x00\x00WAVEfmt ") is None

    def test_pdf_is_none(self):
        assert detect_image_type(b"%PDF-1.4") is None


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_matching_pdf(self):
        doc = RawDocument(b"%PDF-1.4 body", "contract.PDF")
        assert verify_signature(doc) == DetectedFormat.PDF

    def test_matching_docx(self):
        doc = RawDocument(b"PK\x03\x04 body", "contract.docx")
        assert verify_signature(doc) == DetectedFormat.DOCX

    def test_matching_image(self):
        doc = RawDocument(JPEG_BYTES, "scan.jpg")
        assert verify_signature(doc) == DetectedFormat.UNKNOWN

    def test_pdf_extension_with_jpeg_bytes_rejected(self):
        doc = RawDocument(JPEG_BYTES, "contract.pdf")
        with pytest.raises(FormatMismatchError, match="security error: signature mismatch") as excinfo:
            verify_signature(doc)
        assert excinfo.value.filename == "contract.pdf"
        assert "contract.pdf" in str(excinfo.value)

    def test_docx_extension_with_pdf_bytes_rejected(self):
        with pytest.raises(FormatMismatchError):
            verify_signature(RawDocument(b"%PDF-1.4", "contract.docx"))

    def test_png_extension_with_jpeg_bytes_rejected(self):
        with pytest.raises(FormatMismatchError, match="expected png"):
            verify_signature(RawDocument(JPEG_BYTES, "scan.png"))

    def test_unknown_extension_rejected(self):
        with pytest.raises(FormatMismatchError, match="unsupported extension"):
            verify_signature(RawDocument(b"%PDF-1.4", "contract.exe"))

    def test_missing_extension_rejected(self):
        with pytest.raises(FormatMismatchError, match="missing extension"):
            verify_signature(RawDocument(b"%PDF-1.4", "contract"))
