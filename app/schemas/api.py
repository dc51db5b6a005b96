"""API request and response models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.domain import ContractAnalysis, SuggestedTask

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by every /api response."""

    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProcessedContract(ContractAnalysis):
    """Analysis of an uploaded contract plus processing metadata."""

    id: str
    file_name: str
    page_count: int = 0
    provider: str
    model: str
    requested_data_points: list[str] = Field(default_factory=list)
    sector: str
    created_at: datetime
    persisted: bool = True
    suggested_tasks: list[SuggestedTask] = Field(default_factory=list)


class SaveContractRequest(_ApiModel):
    """Client-side save (insert or update) of a processed analysis."""

    id: Optional[str] = None
    file_name: str
    sector: Optional[str] = None
    requested_data_points: list[str] = Field(default_factory=list)
    custom_query: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    page_count: Optional[int] = None
    extracted_text: Optional[str] = None
    analysis: ContractAnalysis


class ContractFileInfo(_ApiModel):
    filename: str
    content_type: str
    file_size: int
    url: Optional[str] = None


class ContractSummary(_ApiModel):
    id: str
    file_name: str
    sector: str
    status: str
    risk_score: Optional[int] = None
    renewal_date: Optional[date] = None
    model_used: Optional[str] = None
    created_at: datetime


class ContractDetail(ContractSummary):
    error_message: Optional[str] = None
    page_count: Optional[int] = None
    provider: Optional[str] = None
    requested_data_points: list[str] = Field(default_factory=list)
    custom_query: Optional[str] = None
    analysis: Optional[ContractAnalysis] = None
    files: list[ContractFileInfo] = Field(default_factory=list)
    updated_at: datetime


class ContractList(_ApiModel):
    items: list[ContractSummary]
    total: int
    page: int
    page_size: int


class TaskList(_ApiModel):
    contract_id: str
    locale: str
    tasks: list[SuggestedTask]


class BatchAccepted(_ApiModel):
    batch_id: str
    workflow_id: str
    contract_ids: list[str]
    status: str = "pending"
