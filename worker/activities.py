"""Temporal Activities for the batch contract analysis workflow.

- extract_contract_text: load uploads from MinIO and extract/combine their text
- analyze_contract_text: run the model fallback chain on the prepared text
- store_analysis: persist the normalized analysis
- mark_contract_failed: record a terminal failure
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from temporalio import activity
from temporalio.exceptions import ApplicationError

from app.core.config import settings
from app.core.errors import AnalysisError, ExtractionError
from app.db.models import ContractStatus
from app.db.repository import get_contract, mark_failed, upsert_analysis
from app.db.session import session_scope
from app.deps import get_ai_provider, get_storage
from app.schemas.domain import AnalysisRequest, RawDocument
from app.services.analysis_engine import AnalyzerConfig, ContractAnalyzer
from app.services.model_resolver import resolve_model_chain
from app.services.pipeline import ContractPipeline

logger = logging.getLogger(__name__)


def load_documents(contract_id: str) -> tuple[list[RawDocument], list[str], str | None]:
    """Read a contract's uploads from MinIO and mark it processing."""
    storage = get_storage()

    with session_scope() as db:
        contract = get_contract(db, contract_id)
        if contract is None:
            raise ValueError(f"Contract {contract_id} not found")
        if not contract.files:
            raise ValueError(f"Contract {contract_id} has no files")

        documents = [
            RawDocument(storage.get_bytes(f.bucket, f.object_key), f.filename, f.content_type)
            for f in contract.files
        ]
        data_points = list(contract.requested_data_points or [])
        custom_query = contract.custom_query
        contract.status = ContractStatus.processing
        contract.error_message = None

    return documents, data_points, custom_query


def save_extracted_text(contract_id: str, text: str, page_count: int) -> None:
    with session_scope() as db:
        contract = get_contract(db, contract_id)
        if contract is not None:
            contract.extracted_text = text
            contract.page_count = page_count


@activity.defn
async def extract_contract_text(contract_id: str) -> dict[str, Any]:
    """Read a contract's uploads from MinIO and prepare text for analysis.

    Database and storage work runs in a thread; image OCR runs on the
    worker's event loop, which the shared AI client is bound to.

    Returns:
        Dict with 'text', 'file_name', 'page_count', 'total_size',
        'data_points' and 'custom_query'.

    Raises:
        ValueError: Contract or its files not found.
        FormatMismatchError, ExtractionError, InsufficientTextError: Final.
        ApplicationError: Transient OCR failure, type ImageTranscriptionError (retried).
        StorageError: MinIO read failed (retried).
    """
    documents, data_points, custom_query = await asyncio.to_thread(load_documents, contract_id)

    pipeline = ContractPipeline(get_ai_provider(), settings)
    try:
        texts = await pipeline.extract(documents)
    except ExtractionError as e:
        if e.retryable:
            raise ApplicationError(str(e), type="ImageTranscriptionError") from e
        raise
    prepared = pipeline.prepare(documents, texts)

    await asyncio.to_thread(save_extracted_text, contract_id, prepared.text, prepared.page_count)

    logger.info(
        "Prepared contract %s: %d file(s), %d pages, %d chars",
        contract_id,
        len(documents),
        prepared.page_count,
        len(prepared.text),
    )
    return {
        "text": prepared.text,
        "file_name": prepared.file_name,
        "page_count": prepared.page_count,
        "total_size": prepared.total_size,
        "data_points": data_points,
        "custom_query": custom_query,
    }


@activity.defn
async def analyze_contract_text(contract_id: str, prepared: dict[str, Any]) -> dict[str, Any]:
    """Run the model fallback chain on prepared text.

    Does not touch the database. A chain that ended on a transient error is
    re-raised for the workflow's same-model retry policy; anything else is
    non-retryable.
    """
    chain = resolve_model_chain(prepared.get("total_size", 0), None, settings)
    request = AnalysisRequest(
        text=prepared["text"],
        custom_question=prepared.get("custom_query"),
        data_points=tuple(prepared.get("data_points") or ()),
        model=chain[0],
    )
    analyzer = ContractAnalyzer(get_ai_provider(), AnalyzerConfig.from_settings(settings))

    logger.info("Analyzing contract %s (%d chars), chain=%s", contract_id, len(request.text), chain)
    try:
        outcome = await analyzer.analyze(request, chain)
    except AnalysisError as e:
        if e.retryable:
            raise
        raise ApplicationError(str(e), type="AnalysisError", non_retryable=True) from e

    logger.info(
        "Analysis complete for contract %s: model=%s risk=%d",
        contract_id,
        outcome.model_used,
        outcome.analysis.risk_score,
    )
    return {
        "analysis": outcome.analysis.to_api(),
        "model_used": outcome.model_used,
        "provider": outcome.provider,
    }


@activity.defn
def store_analysis(contract_id: str, result: dict[str, Any]) -> None:
    """Persist an analysis. Upsert by contract id, so retries are safe."""
    with session_scope() as db:
        upsert_analysis(
            db,
            contract_id,
            analysis=result["analysis"],
            model_used=result.get("model_used"),
            provider=result.get("provider"),
        )
    logger.info("Contract %s marked as completed", contract_id)


@activity.defn
def mark_contract_failed(contract_id: str, error_message: str) -> None:
    with session_scope() as db:
        mark_failed(db, contract_id, error_message)
    logger.warning("Contract %s marked as failed: %s", contract_id, error_message)


__all__ = [
    "analyze_contract_text",
    "extract_contract_text",
    "mark_contract_failed",
    "store_analysis",
]
