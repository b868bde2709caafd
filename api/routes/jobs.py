from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from resume_analyzer.analysis import AnalysisService, JobNotFoundError, JobStatusView

from api.dependencies import get_service

router = APIRouter(tags=["jobs"])


def _status_payload(view: JobStatusView) -> dict:
    payload = {
        "job_id": view.job_id,
        "status": view.status,
        "progress": view.progress,
        "file_name": view.file_name,
        "created_at": view.created_at.isoformat(),
        "updated_at": view.updated_at.isoformat(),
        "elapsed_seconds": view.elapsed_seconds,
    }
    if view.estimated_seconds_remaining is not None:
        payload["estimated_seconds_remaining"] = view.estimated_seconds_remaining
    if view.result is not None:
        payload["result"] = view.result.to_dict()
    if view.error is not None:
        payload["error"] = view.error
    if view.completed_at is not None:
        payload["completed_at"] = view.completed_at.isoformat()
    return payload


@router.get("/analyze-status/{job_id}")
def get_analysis_status(job_id: str, service: AnalysisService = Depends(get_service)):
    try:
        view = service.get_status(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return _status_payload(view)
