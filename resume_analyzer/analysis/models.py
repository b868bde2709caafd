from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the SQL store round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Status a job must currently hold for a transition into the key status.
ALLOWED_PREVIOUS_STATUS: Dict[JobStatus, Tuple[JobStatus, ...]] = {
    JobStatus.PROCESSING: (JobStatus.QUEUED, JobStatus.PROCESSING),
    JobStatus.COMPLETED: (JobStatus.PROCESSING,),
    JobStatus.FAILED: (JobStatus.PROCESSING,),
}

ACTIVE_STATUSES: Tuple[JobStatus, ...] = (JobStatus.QUEUED, JobStatus.PROCESSING)


class DocumentFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"


@dataclass(frozen=True)
class ExtractionField:
    key: str
    label: str
    description: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class Tag:
    name: str
    id: Optional[str] = None


@dataclass(frozen=True)
class AnalysisParameters:
    """
    Field definitions and tag vocabulary captured at submission time.
    Later changes to the admin-configured fields never reach a job.
    """

    fields: Tuple[ExtractionField, ...]
    tags: Tuple[Tag, ...]

    def to_dict(self) -> dict:
        return {
            "fields": [
                {"key": f.key, "label": f.label, "description": f.description, "id": f.id}
                for f in self.fields
            ],
            "tags": [{"name": t.name, "id": t.id} for t in self.tags],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisParameters":
        return cls(
            fields=tuple(
                ExtractionField(
                    key=item["key"],
                    label=item.get("label") or item["key"],
                    description=item.get("description"),
                    id=item.get("id"),
                )
                for item in data.get("fields", [])
            ),
            tags=tuple(Tag(name=item["name"], id=item.get("id")) for item in data.get("tags", [])),
        )


@dataclass(frozen=True)
class FileMetadata:
    name: str
    size: int
    content_type: str
    document_format: DocumentFormat


@dataclass
class AnalysisResult:
    summary: str
    extracted_fields: Dict[str, str]
    assigned_tags: List[str]
    analyzed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "extracted_fields": dict(self.extracted_fields),
            "assigned_tags": list(self.assigned_tags),
            "analyzed_at": self.analyzed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        analyzed_at = data.get("analyzed_at")
        return cls(
            summary=data["summary"],
            extracted_fields=dict(data.get("extracted_fields") or {}),
            assigned_tags=list(data.get("assigned_tags") or []),
            analyzed_at=datetime.fromisoformat(analyzed_at) if analyzed_at else utcnow(),
        )


@dataclass
class AnalysisJobRecord:
    id: str
    file: FileMetadata
    parameters: AnalysisParameters
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    result: Optional[AnalysisResult] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class AnalysisRequest:
    """Unit of work handed from the submission path to the worker."""

    job_id: str
    data: bytes = field(repr=False)
    document_format: DocumentFormat
    parameters: AnalysisParameters


@dataclass(frozen=True)
class SubmissionReceipt:
    job_id: str
    status: JobStatus


@dataclass
class JobStatusView:
    job_id: str
    status: JobStatus
    progress: int
    file_name: str
    elapsed_seconds: float
    created_at: datetime
    updated_at: datetime
    estimated_seconds_remaining: Optional[float] = None
    completed_at: Optional[datetime] = None
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
