from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from resume_analyzer.analysis import AnalysisService, SubmissionValidationError

from api.dependencies import get_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analysis"])


def _load_json_form(raw: str, label: str):
    try:
        return json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} format. Must be valid JSON.")


@router.post("/analyze-async", status_code=202)
async def analyze_async(
    resume: UploadFile = File(...),
    extraction_fields: str = Form(...),
    tags: str = Form(...),
    service: AnalysisService = Depends(get_service),
):
    fields_payload = _load_json_form(extraction_fields, "extraction fields")
    tags_payload = _load_json_form(tags, "tags")
    payload = await resume.read()

    try:
        # submit writes to the job store; keep it off the event loop
        receipt = await run_in_threadpool(
            service.submit,
            file_name=resume.filename,
            data=payload,
            content_type=resume.content_type,
            fields=fields_payload,
            tags=tags_payload,
        )
    except SubmissionValidationError as exc:
        logger.info("Rejected submission of %s: %s", resume.filename, exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        "job_id": receipt.job_id,
        "status": receipt.status,
        "message": "Resume analysis started. Use the job ID to check progress.",
        "check_status_url": f"/analyze-status/{receipt.job_id}",
    }
