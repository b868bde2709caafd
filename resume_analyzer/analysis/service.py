from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Tuple

from .errors import JobNotFoundError, SubmissionValidationError
from .extraction import resolve_document_format
from .job_queue import AnalysisJobQueue
from .models import (
    AnalysisParameters,
    AnalysisRequest,
    ExtractionField,
    FileMetadata,
    JobStatus,
    JobStatusView,
    SubmissionReceipt,
    Tag,
    utcnow,
)
from .repository import JobRepository
from .status import DEFAULT_ESTIMATED_JOB_SECONDS, project_status

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def parse_extraction_fields(items: Any) -> Tuple[ExtractionField, ...]:
    if not isinstance(items, list) or not items:
        raise SubmissionValidationError("No extraction fields provided")
    fields = []
    seen = set()
    for item in items:
        if not isinstance(item, Mapping) or not str(item.get("key") or "").strip():
            raise SubmissionValidationError("Each extraction field needs a non-empty 'key'")
        key = str(item["key"]).strip()
        if key in seen:
            raise SubmissionValidationError(f"Duplicate extraction field key: {key}")
        seen.add(key)
        fields.append(
            ExtractionField(
                key=key,
                label=str(item.get("label") or key),
                description=item.get("description") or None,
                id=str(item["id"]) if item.get("id") is not None else None,
            )
        )
    return tuple(fields)


def parse_tags(items: Any) -> Tuple[Tag, ...]:
    if not isinstance(items, list) or not items:
        raise SubmissionValidationError("No tags provided")
    tags = []
    for item in items:
        name = item.get("name") if isinstance(item, Mapping) else item
        if not isinstance(name, str) or not name.strip():
            raise SubmissionValidationError("Each tag needs a non-empty 'name'")
        tag_id = item.get("id") if isinstance(item, Mapping) else None
        tags.append(Tag(name=name.strip(), id=str(tag_id) if tag_id is not None else None))
    return tuple(tags)


class AnalysisService:
    """
    Submission and status entry points. Submission validates, records the
    job as queued and hands it to the queue without waiting for processing.
    """

    def __init__(
        self,
        repository: JobRepository,
        queue: AnalysisJobQueue,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        estimated_job_seconds: float = DEFAULT_ESTIMATED_JOB_SECONDS,
        clock: Callable = utcnow,
    ):
        self.repo = repository
        self.queue = queue
        self.max_upload_bytes = max_upload_bytes
        self.estimated_job_seconds = estimated_job_seconds
        self.clock = clock

    def submit(
        self,
        file_name: Optional[str],
        data: bytes,
        content_type: Optional[str],
        fields: Any,
        tags: Any,
    ) -> SubmissionReceipt:
        document_format = resolve_document_format(content_type, file_name)
        if not data:
            raise SubmissionValidationError("Uploaded file is empty")
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise SubmissionValidationError(
                f"File size too large. Please upload a file smaller than {limit_mb}MB."
            )
        parameters = AnalysisParameters(
            fields=parse_extraction_fields(fields),
            tags=parse_tags(tags),
        )
        metadata = FileMetadata(
            name=file_name or "resume",
            size=len(data),
            content_type=content_type or "",
            document_format=document_format,
        )

        job_id = self.repo.create_job(metadata, parameters)
        self.queue.enqueue(
            AnalysisRequest(job_id=job_id, data=data, document_format=document_format, parameters=parameters)
        )
        logger.info("Created analysis job %s for %s (%s bytes)", job_id, metadata.name, metadata.size)
        return SubmissionReceipt(job_id=job_id, status=JobStatus.QUEUED)

    def get_status(self, job_id: str) -> JobStatusView:
        job = self.repo.get_job(job_id)
        if not job:
            raise JobNotFoundError(job_id)
        return project_status(job, now=self.clock(), estimated_job_seconds=self.estimated_job_seconds)
