"""Domain models for contract analysis."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DetectedFormat(str, enum.Enum):
    """Document format derived from leading bytes, never from the filename."""

    PDF = "pdf"
    DOCX = "docx"
    LEGACY_DOC = "doc"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class RawDocument:
    """Uploaded file held in memory for the duration of one request."""

    data: bytes
    filename: str
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return ext.lower() if dot else ""

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class ExtractedText:
    """Plain text produced from one RawDocument, tagged with its source."""

    filename: str
    text: str
    page_count: Optional[int] = None


class _CamelModel(BaseModel):
    """Immutable model serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict:
        """JSON-ready dict; absent optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AnalysisRequest(BaseModel):
    """Everything the analysis engine needs for one request."""

    model_config = ConfigDict(frozen=True)

    text: str
    custom_question: Optional[str] = None
    data_points: tuple[str, ...] = ()
    model: Optional[str] = None

    @property
    def has_custom_question(self) -> bool:
        return bool(self.custom_question and self.custom_question.strip())


class ContractAnalysis(_CamelModel):
    """Canonical, normalized analysis of a contract."""

    contract_type: str
    effective_date: date
    renewal_date: date
    notice_period_days: int = Field(ge=0)
    termination_clause_reference: str
    summary: Optional[str] = None
    parties: tuple[str, ...] = ()
    alerts: tuple[str, ...] = ()
    risk_score: int = Field(ge=1, le=10)
    abusive_clauses: tuple[str, ...] = ()
    custom_query: Optional[str] = None
    custom_answer: Optional[str] = None
    extracted_data: Optional[dict[str, str]] = None
    data_sources: Optional[dict[str, str]] = None


class TaskPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskCategory(str, enum.Enum):
    HIGH_RISK = "high_risk"
    MEDIUM_RISK = "medium_risk"
    ABUSIVE_CLAUSES = "abusive_clauses"
    RENEWAL_URGENT = "renewal_urgent"
    RENEWAL_SOON = "renewal_soon"
    ALERTS = "alerts"
    TERMINATION = "termination"


class SuggestedTask(_CamelModel):
    """Follow-up action derived from a ContractAnalysis."""

    id: str
    category: TaskCategory
    title: str
    description: str
    priority: TaskPriority
    suggested_due_date: date
