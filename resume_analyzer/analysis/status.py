from __future__ import annotations

from datetime import datetime

from .models import ACTIVE_STATUSES, AnalysisJobRecord, JobStatus, JobStatusView

DEFAULT_ESTIMATED_JOB_SECONDS = 120.0


def project_status(
    job: AnalysisJobRecord,
    now: datetime,
    estimated_job_seconds: float = DEFAULT_ESTIMATED_JOB_SECONDS,
) -> JobStatusView:
    """
    Client-facing view of a job. Elapsed and remaining time are derived at
    read time; the remaining-time figure is a fixed budget, not a forecast.
    """
    elapsed = max(0.0, (now - job.created_at).total_seconds())
    view = JobStatusView(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        file_name=job.file.name,
        elapsed_seconds=round(elapsed, 3),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )
    if job.status in ACTIVE_STATUSES:
        view.estimated_seconds_remaining = round(max(0.0, estimated_job_seconds - elapsed), 3)
    elif job.status == JobStatus.COMPLETED:
        view.result = job.result
        view.completed_at = job.completed_at
    elif job.status == JobStatus.FAILED:
        view.error = job.error_message
        view.completed_at = job.completed_at
    return view
