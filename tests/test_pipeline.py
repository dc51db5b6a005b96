"""End-to-end tests for the contract processing pipeline."""

from datetime import date

import pytest

from app.core.config import Settings
from app.core.errors import AnalysisError, ExtractionError, FormatMismatchError, InsufficientTextError
from app.schemas.domain import RawDocument, TaskCategory
from app.services.extraction import SOURCE_HEADER
from app.services.normalizer import NOT_FOUND, add_years
from app.services.pipeline import ContractPipeline, display_name
from app.services.task_suggestions import generate_tasks
from conftest import CONTRACT_LINES, JPEG_BYTES, make_ai_result, make_docx, make_pdf


def make_settings(**overrides) -> Settings:
    values = dict(
        AI_MODEL_STANDARD="primary",
        AI_MODEL_FAST="fast",
        AI_FALLBACK_MODELS=["secondary"],
        AI_BACKOFF_BASE_S=0,
        AI_BACKOFF_MAX_S=0,
    )
    values.update(overrides)
    return Settings(**values)


def pdf_document(lines=CONTRACT_LINES, filename="contract.pdf") -> RawDocument:
    return RawDocument(make_pdf(lines), filename, "application/pdf")


class TestScenarios:
    """Full submissions through verification, extraction and analysis."""

    @pytest.mark.asyncio
    async def test_high_risk_pdf(self, fake_provider):
        raw = make_ai_result(riskScore=8, abusiveClauses=["clause X"])
        del raw["renewalDate"]
        provider = fake_provider({"primary": [raw]})
        pipeline = ContractPipeline(provider, make_settings())

        result = await pipeline.process([pdf_document()], data_points=["EffectiveDate"])

        assert provider.calls == ["primary"]
        assert result.model_used == "primary"
        assert result.file_name == "contract.pdf"
        assert result.page_count == 1
        assert "Acme Corp" in result.text
        assert result.analysis.risk_score == 8
        assert result.analysis.renewal_date == add_years(date.today())
        assert result.analysis.extracted_data == {"EffectiveDate": NOT_FOUND}
        assert "- EffectiveDate" in provider.prompts[0]

        categories = [task.category for task in generate_tasks(result.analysis)]
        assert TaskCategory.HIGH_RISK in categories
        assert TaskCategory.ABUSIVE_CLAUSES in categories

    @pytest.mark.asyncio
    async def test_signature_mismatch_rejected_before_analysis(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings())

        with pytest.raises(FormatMismatchError, match="signature mismatch"):
            await pipeline.process([RawDocument(JPEG_BYTES, "contract.pdf", "application/pdf")])

        assert provider.calls == []
        assert provider.ocr_calls == []

    @pytest.mark.asyncio
    async def test_short_text_rejected_before_analysis(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings())

        with pytest.raises(InsufficientTextError, match="insufficient text"):
            await pipeline.process([pdf_document(["Short."])])

        assert provider.calls == []


class TestMultiFile:
    """Tests for submissions with more than one file."""

    @pytest.mark.asyncio
    async def test_texts_combined_in_order_with_headers(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings())
        documents = [
            pdf_document(filename="main.pdf"),
            RawDocument(
                make_docx(["Amendment one extends the term of the agreement by twelve months."]),
                "amendment.docx",
            ),
        ]

        result = await pipeline.process(documents)

        assert result.file_name == "main.pdf + amendment.docx"
        first = result.text.index(SOURCE_HEADER.format(filename="main.pdf"))
        second = result.text.index(SOURCE_HEADER.format(filename="amendment.docx"))
        assert first < second
        assert "twelve months" in result.text

    @pytest.mark.asyncio
    async def test_one_bad_file_rejects_whole_submission(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings())
        documents = [pdf_document(), RawDocument(b"MZ\x90\x00" * 8, "scan.png", "image/png")]

        with pytest.raises(FormatMismatchError, match="scan.png"):
            await pipeline.process(documents)

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_image_is_transcribed(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings(AI_VISION_MODEL="vision"))

        result = await pipeline.process([RawDocument(JPEG_BYTES, "scan.jpg", "image/jpeg")])

        assert provider.ocr_calls == [("image/jpeg", "vision")]
        assert "Transcribed contract text" in result.text

    @pytest.mark.asyncio
    async def test_pdf_page_limit_from_pipeline_settings(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings(PDF_MAX_PAGES=0))

        with pytest.raises(ExtractionError, match="too many pages"):
            await pipeline.process([pdf_document()])

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_no_documents(self, fake_provider):
        with pytest.raises(ExtractionError, match="no documents"):
            await ContractPipeline(fake_provider(), make_settings()).process([])


class TestModelSelection:
    """Tests for model chain selection inside the pipeline."""

    @pytest.mark.asyncio
    async def test_large_upload_uses_fast_model(self, fake_provider):
        provider = fake_provider()
        pipeline = ContractPipeline(provider, make_settings(LARGE_FILE_THRESHOLD_MB=0))

        result = await pipeline.process([pdf_document()])

        assert result.model_used == "fast"

    @pytest.mark.asyncio
    async def test_preferred_model_then_fallback(self, fake_provider):
        provider = fake_provider({"premium": [RuntimeError("503 overloaded")]})
        pipeline = ContractPipeline(provider, make_settings())

        result = await pipeline.process([pdf_document()], preferred_model="premium")

        assert provider.calls == ["premium", "secondary"]
        assert result.model_used == "secondary"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_analysis_failure_propagates(self, fake_provider):
        provider = fake_provider(default=RuntimeError("invalid api key"))
        pipeline = ContractPipeline(provider, make_settings())

        with pytest.raises(AnalysisError):
            await pipeline.process([pdf_document()])


def test_display_name():
    assert display_name(["a.pdf"]) == "a.pdf"
    assert display_name(["a.pdf", "b.docx"]) == "a.pdf + b.docx"
