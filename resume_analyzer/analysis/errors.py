"""
Exceptions raised by the analysis subsystem.

Submission errors are raised before a job exists. Extraction and analysis
errors are caught by the worker and recorded on the job as `failed`.
"""

from __future__ import annotations


class AnalysisError(Exception):
    pass


class SubmissionValidationError(AnalysisError, ValueError):
    pass


class UnsupportedFileTypeError(SubmissionValidationError):
    pass


class TextExtractionError(AnalysisError, RuntimeError):
    pass


class AnalyzerConfigurationError(AnalysisError, RuntimeError):
    pass


class AnalysisResponseError(AnalysisError, RuntimeError):
    pass


class JobNotFoundError(AnalysisError, LookupError):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id
