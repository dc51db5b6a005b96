"""End-to-end contract processing: verify, extract, combine, analyze.

All format and extraction checks run before the first AI analysis call, so
rejected uploads never cost a billable request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from app.core.config import Settings, settings as default_settings
from app.core.errors import ExtractionError
from app.schemas.domain import AnalysisRequest, ContractAnalysis, ExtractedText, RawDocument
from app.services.ai_client import AIProvider
from app.services.analysis_engine import AnalyzerConfig, ContractAnalyzer
from app.services.extraction import (
    combine_texts,
    ensure_sufficient_text,
    extract_document,
    truncate_text,
)
from app.services.file_type import verify_signature
from app.services.model_resolver import resolve_model_chain

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreparedText:
    """Combined, bounded text ready for analysis."""

    text: str
    file_name: str
    page_count: int
    total_size: int


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of processing one submission."""

    analysis: ContractAnalysis
    model_used: str
    provider: str
    file_name: str
    page_count: int
    text: str
    attempts: int


def display_name(filenames: Sequence[str]) -> str:
    return " + ".join(filenames)


class ContractPipeline:
    """Processes one submission of one or more files into a ContractAnalysis."""

    def __init__(
        self,
        client: AIProvider,
        settings: Settings = default_settings,
        analyzer: Optional[ContractAnalyzer] = None,
    ):
        self._client = client
        self._settings = settings
        self._analyzer = analyzer or ContractAnalyzer(client, AnalyzerConfig.from_settings(settings))

    async def extract(self, documents: Sequence[RawDocument]) -> list[ExtractedText]:
        """Verify every signature, then extract each file in input order.

        Raises:
            FormatMismatchError: Any file's bytes contradict its extension.
            ExtractionError: Any file yields no usable text.
        """
        if not documents:
            raise ExtractionError("no documents provided")

        for document in documents:
            verify_signature(document)

        texts = []
        for document in documents:
            extracted = await extract_document(
                document,
                client=self._client,
                config=self._settings,
            )
            logger.info("Extracted %d chars from %s", len(extracted.text), document.filename)
            texts.append(extracted)
        return texts

    def prepare(self, documents: Sequence[RawDocument], texts: Sequence[ExtractedText]) -> PreparedText:
        """Combine texts, enforce the minimum length and apply truncation."""
        ensure_sufficient_text(texts, self._settings.MIN_TEXT_CHARS)
        combined = texts[0].text if len(texts) == 1 else combine_texts(texts)
        return PreparedText(
            text=truncate_text(combined, self._settings.MAX_TEXT_CHARS),
            file_name=display_name([d.filename for d in documents]),
            page_count=sum(t.page_count or 0 for t in texts),
            total_size=sum(d.size for d in documents),
        )

    async def process(
        self,
        documents: Sequence[RawDocument],
        *,
        custom_question: Optional[str] = None,
        data_points: Sequence[str] = (),
        preferred_model: Optional[str] = None,
    ) -> PipelineResult:
        """Run the full pipeline for one submission.

        Raises:
            FormatMismatchError, ExtractionError, InsufficientTextError: Before any
                analysis call.
            AnalysisError: The model fallback chain failed.
        """
        texts = await self.extract(documents)
        prepared = self.prepare(documents, texts)

        chain = resolve_model_chain(prepared.total_size, preferred_model, self._settings)
        request = AnalysisRequest(
            text=prepared.text,
            custom_question=custom_question or None,
            data_points=tuple(p for p in data_points if p and p.strip()),
            model=chain[0],
        )
        outcome = await self._analyzer.analyze(request, chain)

        logger.info(
            "Processed %s with %s (%d attempt(s)), risk score %d",
            prepared.file_name,
            outcome.model_used,
            len(outcome.attempts),
            outcome.analysis.risk_score,
        )
        return PipelineResult(
            analysis=outcome.analysis,
            model_used=outcome.model_used,
            provider=outcome.provider,
            file_name=prepared.file_name,
            page_count=prepared.page_count,
            text=prepared.text,
            attempts=len(outcome.attempts),
        )


__all__ = ["ContractPipeline", "PipelineResult", "PreparedText", "display_name"]
