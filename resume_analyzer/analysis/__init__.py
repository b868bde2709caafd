"""
Analysis subsystem exports.
"""

from .analyzer import LangChainResumeAnalyzer, ResumeAnalyzer, clean_json_string, parse_analysis_response
from .config import AnalysisConfig
from .errors import (
    AnalysisError,
    AnalysisResponseError,
    AnalyzerConfigurationError,
    JobNotFoundError,
    SubmissionValidationError,
    TextExtractionError,
    UnsupportedFileTypeError,
)
from .extraction import DefaultTextExtractor, TextExtractor, resolve_document_format
from .job_queue import AnalysisJobQueue
from .maintenance import JobJanitor
from .models import (
    AnalysisJobRecord,
    AnalysisParameters,
    AnalysisRequest,
    AnalysisResult,
    DocumentFormat,
    ExtractionField,
    FileMetadata,
    JobStatus,
    JobStatusView,
    SubmissionReceipt,
    Tag,
)
from .repository import InMemoryJobRepository, JobRepository, SqlAlchemyJobRepository
from .runtime import AnalysisRuntime, build_runtime
from .service import AnalysisService
from .status import project_status
from .worker import AnalysisWorker

__all__ = [
    "AnalysisConfig",
    "AnalysisError",
    "AnalysisJobQueue",
    "AnalysisJobRecord",
    "AnalysisParameters",
    "AnalysisRequest",
    "AnalysisResponseError",
    "AnalysisResult",
    "AnalysisRuntime",
    "AnalysisService",
    "AnalysisWorker",
    "AnalyzerConfigurationError",
    "DefaultTextExtractor",
    "DocumentFormat",
    "ExtractionField",
    "FileMetadata",
    "InMemoryJobRepository",
    "JobJanitor",
    "JobNotFoundError",
    "JobRepository",
    "JobStatus",
    "JobStatusView",
    "LangChainResumeAnalyzer",
    "ResumeAnalyzer",
    "SqlAlchemyJobRepository",
    "SubmissionReceipt",
    "SubmissionValidationError",
    "Tag",
    "TextExtractionError",
    "TextExtractor",
    "UnsupportedFileTypeError",
    "build_runtime",
    "clean_json_string",
    "parse_analysis_response",
    "project_status",
    "resolve_document_format",
]
