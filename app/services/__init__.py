"""Business logic services."""

from app.services.analysis_engine import (
    AnalysisOutcome,
    AnalyzerConfig,
    ContractAnalyzer,
    is_retryable_error,
)
from app.services.file_type import detect_format, verify_signature
from app.services.normalizer import normalize
from app.services.pdf_parser import (
    PDFError,
    PDFParseError,
    PDFValidationError,
    PdfText,
    extract_pdf_text,
)
from app.services.pipeline import ContractPipeline, PipelineResult
from app.services.task_suggestions import generate_tasks

__all__ = [
    "AnalysisOutcome",
    "AnalyzerConfig",
    "ContractAnalyzer",
    "ContractPipeline",
    "PDFError",
    "PDFValidationError",
    "PDFParseError",
    "PdfText",
    "PipelineResult",
    "detect_format",
    "extract_pdf_text",
    "generate_tasks",
    "is_retryable_error",
    "normalize",
    "verify_signature",
]
