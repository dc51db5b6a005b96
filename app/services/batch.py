"""Sequential batch processing with same-model retry.

Used by the stress-test harness to run many contracts through the pipeline
without tripping provider rate limits: items run one at a time with a fixed
pause between them, and an item whose analysis ended on a transient error is
retried with exponential backoff (5s, 10s, 20s, 40s by default).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from app.core.errors import AnalysisError, HeliosError
from app.schemas.domain import RawDocument
from app.services.analysis_engine import is_retryable_error
from app.services.normalizer import NOT_FOUND
from app.services.pipeline import ContractPipeline, PipelineResult

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class BatchItem:
    name: str
    documents: tuple[RawDocument, ...]


@dataclass(frozen=True, slots=True)
class BatchItemResult:
    name: str
    success: bool
    attempts: int
    elapsed_s: float
    model_used: Optional[str] = None
    risk_score: Optional[int] = None
    data_points_found: int = 0
    cited_sources: int = 0
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BatchSummary:
    results: tuple[BatchItemResult, ...]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def with_citations(self) -> int:
        return sum(1 for r in self.results if r.cited_sources)

    @property
    def retried(self) -> int:
        return sum(1 for r in self.results if r.attempts > 1)


def is_transient_failure(exc: BaseException) -> bool:
    """Worth retrying the whole item on the same model chain."""
    if isinstance(exc, AnalysisError):
        return exc.retryable
    if isinstance(exc, HeliosError):
        return False
    return is_retryable_error(exc)


def same_model_retrying(
    *,
    attempts: int = 5,
    initial_s: float = 5.0,
    max_s: float = 40.0,
    sleep: Sleep = asyncio.sleep,
) -> AsyncRetrying:
    return AsyncRetrying(
        retry=retry_if_exception(is_transient_failure),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=initial_s, max=max_s),
        sleep=sleep,
        before_sleep=lambda state: logger.warning(
            "Attempt %d failed (%s), backing off %.0fs",
            state.attempt_number,
            state.outcome.exception(),
            state.next_action.sleep,
        ),
        reraise=True,
    )


def _count_found(mapping: Optional[dict[str, str]]) -> int:
    return sum(1 for value in (mapping or {}).values() if value and value != NOT_FOUND)


async def process_item(
    pipeline: ContractPipeline,
    item: BatchItem,
    *,
    data_points: Sequence[str] = (),
    custom_question: Optional[str] = None,
    retrying: Optional[AsyncRetrying] = None,
) -> BatchItemResult:
    """Process one item, retrying transient failures.

    Failures are reported in the returned result, not raised.
    """
    retrying = retrying or same_model_retrying()
    started = time.monotonic()
    attempts = 0
    result: Optional[PipelineResult] = None

    try:
        async for attempt in retrying:
            with attempt:
                attempts += 1
                result = await pipeline.process(
                    item.documents, custom_question=custom_question, data_points=data_points
                )
    except Exception as e:
        logger.error(
            "Item %s failed after %d attempt(s): %s",
            item.name,
            attempts,
            e,
            exc_info=not isinstance(e, HeliosError),
        )
        return BatchItemResult(
            name=item.name,
            success=False,
            attempts=attempts,
            elapsed_s=time.monotonic() - started,
            error=str(e),
        )

    analysis = result.analysis
    return BatchItemResult(
        name=item.name,
        success=True,
        attempts=attempts,
        elapsed_s=time.monotonic() - started,
        model_used=result.model_used,
        risk_score=analysis.risk_score,
        data_points_found=_count_found(analysis.extracted_data),
        cited_sources=_count_found(analysis.data_sources),
    )


async def run_batch(
    pipeline: ContractPipeline,
    items: Sequence[BatchItem],
    *,
    data_points: Sequence[str] = (),
    custom_question: Optional[str] = None,
    item_delay_s: float = 10.0,
    retry_attempts: int = 5,
    retry_initial_s: float = 5.0,
    retry_max_s: float = 40.0,
    sleep: Sleep = asyncio.sleep,
) -> BatchSummary:
    """Process items strictly in order with a pause between them."""
    results = []
    for index, item in enumerate(items):
        if index > 0 and item_delay_s > 0:
            await sleep(item_delay_s)
        logger.info("Processing %d/%d: %s", index + 1, len(items), item.name)
        results.append(
            await process_item(
                pipeline,
                item,
                data_points=data_points,
                custom_question=custom_question,
                retrying=same_model_retrying(
                    attempts=retry_attempts,
                    initial_s=retry_initial_s,
                    max_s=retry_max_s,
                    sleep=sleep,
                ),
            )
        )
    return BatchSummary(tuple(results))


__all__ = [
    "BatchItem",
    "BatchItemResult",
    "BatchSummary",
    "is_transient_failure",
    "process_item",
    "run_batch",
    "same_model_retrying",
]
