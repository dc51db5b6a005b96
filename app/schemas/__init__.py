"""Domain schemas for contract analysis."""

from app.schemas.domain import (
    AnalysisRequest,
    ContractAnalysis,
    DetectedFormat,
    ExtractedText,
    RawDocument,
    SuggestedTask,
    TaskCategory,
    TaskPriority,
)

__all__ = [
    "AnalysisRequest",
    "ContractAnalysis",
    "DetectedFormat",
    "ExtractedText",
    "RawDocument",
    "SuggestedTask",
    "TaskCategory",
    "TaskPriority",
]
