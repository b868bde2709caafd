from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from .analyzer import LangChainResumeAnalyzer, ResumeAnalyzer
from .config import AnalysisConfig
from .extraction import DefaultTextExtractor, TextExtractor
from .job_queue import AnalysisJobQueue
from .maintenance import JobJanitor
from .repository import JobRepository, SqlAlchemyJobRepository
from .service import AnalysisService
from .worker import AnalysisWorker

logger = logging.getLogger(__name__)


class AnalysisRuntime:
    """
    Owns the single queue, worker and janitor of a process. The submission
    and status entry points are reached through `service`.
    """

    def __init__(
        self,
        repository: JobRepository,
        extractor: TextExtractor,
        analyzer: ResumeAnalyzer,
        config: Optional[AnalysisConfig] = None,
    ):
        self.config = config or AnalysisConfig()
        self.repository = repository
        self.worker = AnalysisWorker(repository=repository, extractor=extractor, analyzer=analyzer)
        self.queue = AnalysisJobQueue(self.worker)
        self.service = AnalysisService(
            repository=repository,
            queue=self.queue,
            max_upload_bytes=self.config.max_upload_bytes,
            estimated_job_seconds=self.config.estimated_job_seconds,
        )
        stale = self.config.stale_job_seconds
        self.janitor = JobJanitor(
            repository,
            retention=timedelta(seconds=self.config.job_retention_seconds),
            stale_after=timedelta(seconds=stale) if stale else None,
            interval_seconds=self.config.cleanup_interval_seconds,
        )

    async def start(self) -> None:
        await self.queue.start()
        await self.janitor.start()

    async def stop(self) -> None:
        await self.janitor.stop()
        await self.queue.stop()


def build_runtime(config: AnalysisConfig) -> AnalysisRuntime:
    """
    Creates all production components from configuration.
    """
    repo = SqlAlchemyJobRepository(config.database_url)
    analyzer = LangChainResumeAnalyzer.from_settings(
        api_key=config.openai_api_key,
        model=config.openai_model,
        temperature=config.temperature,
        max_attempts=config.analysis_max_attempts,
    )
    logger.info("Analysis runtime using %s with model %s", config.database_url, config.openai_model)
    return AnalysisRuntime(repository=repo, extractor=DefaultTextExtractor(), analyzer=analyzer, config=config)
