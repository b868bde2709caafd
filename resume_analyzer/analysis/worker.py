from __future__ import annotations

import asyncio
import logging

from .analyzer import ResumeAnalyzer
from .errors import TextExtractionError
from .extraction import TextExtractor
from .models import AnalysisRequest, JobStatus, utcnow
from .repository import JobRepository

logger = logging.getLogger(__name__)

# Heuristic milestones reported to pollers, not measured sub-progress.
PROGRESS_STARTED = 10
PROGRESS_EXTRACTED = 30
PROGRESS_ANALYZING = 50
PROGRESS_ANALYZED = 90
PROGRESS_DONE = 100


class AnalysisWorker:
    """
    Drives one analysis job through extraction -> AI analysis -> finalization.
    The worker holds no job state; everything a poller can see lives in the
    repository.
    """

    def __init__(self, repository: JobRepository, extractor: TextExtractor, analyzer: ResumeAnalyzer):
        self.repo = repository
        self.extractor = extractor
        self.analyzer = analyzer

    async def run_job(self, request: AnalysisRequest) -> None:
        job_id = request.job_id
        try:
            if not self.repo.update_job(job_id, status=JobStatus.PROCESSING, progress=PROGRESS_STARTED):
                logger.warning("Skipping job %s: not found or no longer queued", job_id)
                return

            logger.info("Starting processing for job %s", job_id)
            text = await asyncio.to_thread(self.extractor.extract_text, request.data, request.document_format)
            self.repo.update_job(job_id, progress=PROGRESS_EXTRACTED)
            if not text or not text.strip():
                raise TextExtractionError("Could not extract text from the file")
            logger.info("Extracted %s characters for job %s", len(text), job_id)

            self.repo.update_job(job_id, progress=PROGRESS_ANALYZING)
            result = await self.analyzer.analyze(text, request.parameters.fields, request.parameters.tags)
            self.repo.update_job(job_id, progress=PROGRESS_ANALYZED)

            finished = self.repo.update_job(
                job_id,
                status=JobStatus.COMPLETED,
                progress=PROGRESS_DONE,
                result=result,
                completed_at=utcnow(),
            )
            if finished:
                logger.info("Completed processing for job %s", job_id)
            else:
                logger.warning("Result for job %s discarded; job was finalized elsewhere", job_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing job %s", job_id)
            self._record_failure(job_id, str(exc) or "Processing failed")

    def _record_failure(self, job_id: str, message: str) -> None:
        # A pickup write that raised leaves the job queued; failed is only
        # reachable from processing.
        job = self.repo.get_job(job_id)
        if job and job.status == JobStatus.QUEUED:
            self.repo.update_job(job_id, status=JobStatus.PROCESSING)
        self.repo.update_job(job_id, status=JobStatus.FAILED, error_message=message, completed_at=utcnow())
