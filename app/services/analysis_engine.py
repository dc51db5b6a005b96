"""AI analysis engine.

Builds the analysis prompt and runs it through an ordered chain of models:
each call is bounded by a timeout, transient failures back off and move to
the next model, and the first parseable response is normalized into a
ContractAnalysis. Models are never called concurrently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from app.core.config import Settings, settings as default_settings
from app.core.errors import AnalysisError, ResponseParseError
from app.schemas.domain import AnalysisRequest, ContractAnalysis
from app.services.ai_client import AIProvider, is_retryable_error
from app.services.extraction import truncate_text
from app.services.model_resolver import build_model_chain
from app.services.normalizer import NOT_FOUND, normalize

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", re.IGNORECASE)

SYSTEM_INSTRUCTION = """You are an expert legal contract analyst. Analyze the contract below and extract the key information.

LANGUAGE: Detect the language of the contract and write every text field of your answer (summary, alerts, abusiveClauses, customAnswer, extractedData) in that same language."""

OUTPUT_SCHEMA = """Return a JSON object with exactly these fields:
{
  "contractType": "type of contract (e.g. Service Agreement, Lease, NDA)",
  "effectiveDate": "YYYY-MM-DD",
  "renewalDate": "YYYY-MM-DD (expiration or next renewal date)",
  "noticePeriodDays": number of days of notice required to terminate or not renew,
  "terminationClauseReference": "clause or section that governs termination",
  "summary": "short executive summary of the contract",
  "parties": ["party name", ...],
  "alerts": ["important deadline, obligation or risk to watch", ...],
  "riskScore": integer from 1 (low risk) to 10 (high risk),
  "abusiveClauses": ["clause that is potentially abusive or unusually one-sided", ...]%(extra_fields)s
}"""

CLOSING_RULES = """IMPORTANT RULES:
- Dates must use the YYYY-MM-DD format. If a date is not stated, infer it from the contract terms when possible.
- riskScore must be an integer between 1 and 10.
- Use empty arrays when nothing applies; never omit a field.
- Return ONLY the JSON object, with no explanations, markdown or text before or after it."""


def build_prompt(request: AnalysisRequest, *, max_chars: int = 50_000) -> str:
    """Assemble the analysis prompt for one request."""
    extra_fields = ""
    sections = [SYSTEM_INSTRUCTION]

    if request.data_points:
        extra_fields += (
            ',\n  "extractedData": {"<data point>": "extracted value or \\"%s\\""},'
            '\n  "dataSources": {"<data point>": "verbatim quote from the contract or \\"%s\\""}'
            % (NOT_FOUND, NOT_FOUND)
        )
        points = "\n".join(f"- {point}" for point in request.data_points)
        sections.append(
            "REQUESTED DATA POINTS:\n"
            f"{points}\n"
            "For each data point, put the extracted value in \"extractedData\" and the exact "
            "sentence it came from, quoted verbatim (max 150 characters), in \"dataSources\", "
            f"both keyed by the data point name. Use \"{NOT_FOUND}\" when the contract does not "
            "contain it."
        )

    if request.has_custom_question:
        extra_fields += ',\n  "customAnswer": "answer to the user question"'
        sections.append(
            "USER QUESTION:\n"
            f"{request.custom_question.strip()}\n"
            "Answer it based only on the contract, in the \"customAnswer\" field."
        )

    sections.insert(1, OUTPUT_SCHEMA % {"extra_fields": extra_fields})
    sections.append(f"CONTRACT TEXT:\n---\n{truncate_text(request.text, max_chars)}\n---")
    sections.append(CLOSING_RULES)
    return "\n\n".join(sections)


def parse_json_response(text: str) -> dict[str, Any]:
    """Parse a model response, recovering JSON from a fenced code block.

    Raises:
        ResponseParseError: No JSON object could be recovered.
    """
    candidates = [text.strip()] if text else []
    match = _FENCED_JSON.search(text or "")
    if match:
        candidates.append(match.group(1))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
        raise ResponseParseError(f"expected a JSON object, got {type(data).__name__}")

    raise ResponseParseError(f"response is not valid JSON: {(text or '')[:80]!r}")


@dataclass(frozen=True, slots=True)
class AttemptSuccess:
    """A model call that returned a parseable JSON object."""

    model: str
    data: dict[str, Any]
    elapsed_s: float = 0.0


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    """A model call that failed, timed out or returned unparseable output."""

    model: str
    error: BaseException
    retryable: bool
    elapsed_s: float = 0.0


AttemptResult = Union[AttemptSuccess, AttemptFailure]


@dataclass(frozen=True, slots=True)
class AnalyzerConfig:
    """Read-only engine configuration, safe to share between requests."""

    default_model: str = "gpt-4o"
    fallback_models: tuple[str, ...] = ()
    timeout_s: float = 45.0
    temperature: float = 0.1
    backoff_base_s: float = 1.0
    backoff_max_s: float = 5.0
    retry_on_parse_error: bool = False
    max_text_chars: int = 50_000

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "AnalyzerConfig":
        return cls(
            default_model=settings.AI_MODEL_STANDARD,
            fallback_models=tuple(settings.AI_FALLBACK_MODELS),
            timeout_s=settings.AI_TIMEOUT_S,
            temperature=settings.AI_TEMPERATURE,
            backoff_base_s=settings.AI_BACKOFF_BASE_S,
            backoff_max_s=settings.AI_BACKOFF_MAX_S,
            retry_on_parse_error=settings.AI_RETRY_ON_PARSE_ERROR,
            max_text_chars=settings.MAX_TEXT_CHARS,
        )


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """Successful analysis plus provenance of the model that produced it."""

    analysis: ContractAnalysis
    model_used: str
    provider: str
    attempts: tuple[AttemptResult, ...] = field(default_factory=tuple)


class ContractAnalyzer:
    """Runs an AnalysisRequest through the model fallback chain."""

    def __init__(
        self,
        client: AIProvider,
        config: Optional[AnalyzerConfig] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ):
        self._client = client
        self._config = config or AnalyzerConfig.from_settings()
        self._sleep = sleep
        self._today = today

    @property
    def config(self) -> AnalyzerConfig:
        return self._config

    def backoff_delay(self, index: int) -> float:
        """Delay before moving on from the model at ``index``."""
        return min(self._config.backoff_max_s, self._config.backoff_base_s * 2**index)

    def model_chain(self, request: AnalysisRequest) -> tuple[str, ...]:
        return build_model_chain(
            request.model or self._config.default_model, self._config.fallback_models
        )

    async def attempt(self, prompt: str, model: str) -> AttemptResult:
        """Call one model once. Never raises; failures come back tagged."""
        started = time.monotonic()
        try:
            # wait_for cancels the call on timeout, so a late response is discarded
            text = await asyncio.wait_for(
                self._client.generate(
                    prompt,
                    model,
                    temperature=self._config.temperature,
                    json_response=True,
                ),
                timeout=self._config.timeout_s,
            )
        except Exception as e:
            return AttemptFailure(model, e, is_retryable_error(e), time.monotonic() - started)

        elapsed = time.monotonic() - started
        try:
            data = parse_json_response(text)
        except ResponseParseError as e:
            return AttemptFailure(model, e, self._config.retry_on_parse_error, elapsed)
        return AttemptSuccess(model, data, elapsed)

    async def analyze(
        self,
        request: AnalysisRequest,
        models: Optional[Sequence[str]] = None,
    ) -> AnalysisOutcome:
        """Analyze a contract, falling back across models on transient errors.

        Args:
            request: Contract text, requested data points and optional question.
            models: Explicit fallback chain. Defaults to the request's model
                (or the configured default) followed by configured fallbacks.

        Raises:
            AnalysisError: A non-retryable error occurred, or every model failed.
        """
        if not request.text.strip():
            raise AnalysisError("no contract text to analyze")

        chain = tuple(models) if models else self.model_chain(request)
        if not chain:
            raise AnalysisError("no models configured for analysis")

        prompt = build_prompt(request, max_chars=self._config.max_text_chars)
        attempts: list[AttemptResult] = []

        for index, model in enumerate(chain):
            logger.info("Analyzing contract with %s (attempt %d/%d)", model, index + 1, len(chain))
            result = await self.attempt(prompt, model)
            attempts.append(result)

            if isinstance(result, AttemptSuccess):
                logger.info("Model %s succeeded in %.1fs", model, result.elapsed_s)
                return AnalysisOutcome(
                    analysis=normalize(result.data, request, today=self._today()),
                    model_used=model,
                    provider=getattr(self._client, "name", "unknown"),
                    attempts=tuple(attempts),
                )

            if not result.retryable:
                logger.error("Model %s failed with non-retryable error: %s", model, result.error)
                raise AnalysisError(
                    f"analysis failed on {model}: {result.error}",
                    attempts=attempts,
                    retryable=False,
                )

            if index < len(chain) - 1:
                delay = self.backoff_delay(index)
                logger.warning(
                    "Model %s unavailable (%s), retrying with %s in %.1fs",
                    model,
                    result.error,
                    chain[index + 1],
                    delay,
                )
                await self._sleep(delay)

        logger.error("All %d models failed; last error: %s", len(chain), attempts[-1].error)
        raise AnalysisError(
            f"all {len(chain)} models failed; last error: {attempts[-1].error}",
            attempts=attempts,
            retryable=True,
        )


__all__ = [
    "AnalysisOutcome",
    "AnalyzerConfig",
    "AttemptFailure",
    "AttemptResult",
    "AttemptSuccess",
    "ContractAnalyzer",
    "build_prompt",
    "is_retryable_error",
    "parse_json_response",
]
