from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .models import utcnow
from .repository import JobRepository

logger = logging.getLogger(__name__)

STALE_JOB_MESSAGE = "Processing timed out; the job stopped reporting progress"


@dataclass
class SweepReport:
    expired: int = 0
    stale: List[str] = field(default_factory=list)


class JobJanitor:
    """
    Periodic housekeeping over the job store:

    - retention: jobs older than `retention` are deleted whatever their status;
    - staleness: jobs stuck in `processing` without an update for longer than
      `stale_after` are failed, so pollers are not left waiting forever after
      a crash. Jobs left `queued` are not touched and age out via retention.
    """

    def __init__(
        self,
        repository: JobRepository,
        retention: timedelta = timedelta(days=7),
        stale_after: Optional[timedelta] = timedelta(minutes=30),
        interval_seconds: float = 3600.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repository
        self.retention = retention
        self.stale_after = stale_after
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    def sweep(self) -> SweepReport:
        now = self.clock()
        report = SweepReport()
        if self.stale_after is not None:
            report.stale = self.repo.fail_stale_jobs(now - self.stale_after, STALE_JOB_MESSAGE)
            for job_id in report.stale:
                logger.warning("Failed stale job %s", job_id)
        report.expired = self.repo.delete_jobs_created_before(now - self.retention)
        if report.expired:
            logger.info("Removed %s expired job(s)", report.expired)
        return report

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="analysis-job-janitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:  # noqa: BLE001
                logger.exception("Job store sweep failed")
            await asyncio.sleep(self.interval_seconds)
