"""Normalization of raw AI output into a ContractAnalysis.

The AI response is untrusted: the schema is requested in the prompt but not
enforced by the provider. Every field is validated here and replaced with a
safe default when missing or malformed, so normalize() never raises.
"""

from __future__ import annotations

import json
import math
import re
from datetime import date
from typing import Any, Mapping, Optional

from app.schemas.domain import AnalysisRequest, ContractAnalysis

NOT_FOUND = "Not found"

DEFAULT_CONTRACT_TYPE = "Unknown"
DEFAULT_TERMINATION_REFERENCE = "Standard Termination Clause"
DEFAULT_NOTICE_PERIOD_DAYS = 30
DEFAULT_RISK_SCORE = 5
MIN_RISK_SCORE = 1
MAX_RISK_SCORE = 10

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Keys tried, in order, when the model returns objects instead of strings in a list
_ITEM_TEXT_KEYS = ("clause", "text", "description", "message", "reference", "title", "name")


def add_years(day: date, years: int = 1) -> date:
    """Same calendar day ``years`` later; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def parse_iso_date(value: Any) -> Optional[date]:
    """Strict YYYY-MM-DD that is also a real calendar date, else None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not _ISO_DATE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _item_text(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return _text(item)
    if _is_number(item):
        return str(item)
    if isinstance(item, Mapping):
        for key in _ITEM_TEXT_KEYS:
            text = _text(item.get(key))
            if text:
                return text
    return None


def _string_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(text for text in (_item_text(item) for item in value) if text)


def _string_mapping(value: Any, requested: tuple[str, ...]) -> Optional[dict[str, str]]:
    if not isinstance(value, Mapping):
        return None
    result: dict[str, str] = {}
    for key, item in value.items():
        if isinstance(item, str):
            result[str(key)] = item.strip() or NOT_FOUND
        elif item is None:
            result[str(key)] = NOT_FOUND
        elif isinstance(item, (Mapping, list, tuple)):
            result[str(key)] = json.dumps(item, ensure_ascii=False, default=str)
        else:
            result[str(key)] = str(item)
    for point in requested:
        result.setdefault(point, NOT_FOUND)
    return result


def normalize_notice_period(value: Any) -> int:
    if _is_number(value) and value >= 0:
        return int(round(value))
    return DEFAULT_NOTICE_PERIOD_DAYS


def normalize_risk_score(value: Any) -> int:
    if not _is_number(value):
        return DEFAULT_RISK_SCORE
    return max(MIN_RISK_SCORE, min(MAX_RISK_SCORE, int(round(value))))


def normalize(
    raw: Any,
    request: AnalysisRequest,
    *,
    today: Optional[date] = None,
) -> ContractAnalysis:
    """Coerce a raw AI result into a fully populated ContractAnalysis."""
    today = today or date.today()
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    custom_query = custom_answer = None
    if request.has_custom_question:
        custom_query = request.custom_question.strip()
        custom_answer = _text(data.get("customAnswer")) or NOT_FOUND

    return ContractAnalysis(
        contract_type=_text(data.get("contractType")) or DEFAULT_CONTRACT_TYPE,
        effective_date=parse_iso_date(data.get("effectiveDate")) or today,
        renewal_date=parse_iso_date(data.get("renewalDate")) or add_years(today),
        notice_period_days=normalize_notice_period(data.get("noticePeriodDays")),
        termination_clause_reference=(
            _text(data.get("terminationClauseReference")) or DEFAULT_TERMINATION_REFERENCE
        ),
        summary=_text(data.get("summary")),
        parties=_string_list(data.get("parties")),
        alerts=_string_list(data.get("alerts")),
        risk_score=normalize_risk_score(data.get("riskScore")),
        abusive_clauses=_string_list(data.get("abusiveClauses")),
        custom_query=custom_query,
        custom_answer=custom_answer,
        extracted_data=_string_mapping(data.get("extractedData"), request.data_points),
        data_sources=_string_mapping(data.get("dataSources"), request.data_points),
    )


__all__ = [
    "DEFAULT_CONTRACT_TYPE",
    "DEFAULT_NOTICE_PERIOD_DAYS",
    "DEFAULT_RISK_SCORE",
    "DEFAULT_TERMINATION_REFERENCE",
    "NOT_FOUND",
    "add_years",
    "normalize",
    "normalize_notice_period",
    "normalize_risk_score",
    "parse_iso_date",
]
