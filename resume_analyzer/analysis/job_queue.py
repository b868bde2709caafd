from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .models import AnalysisRequest
from .worker import AnalysisWorker

logger = logging.getLogger(__name__)


def _current_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class AnalysisJobQueue:
    """
    In-process FIFO queue drained by a single consumer task. Enqueueing never
    waits for processing; the consumer runs jobs strictly one at a time in
    submission order.
    """

    def __init__(self, worker: AnalysisWorker):
        self.worker = worker
        self._queue: "asyncio.Queue[AnalysisRequest]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, request: AnalysisRequest) -> None:
        # asyncio.Queue is not thread-safe; hop onto the consumer's loop when
        # called from a threadpool request handler.
        loop = self._loop
        if loop is not None and loop.is_running() and _current_loop() is not loop:
            loop.call_soon_threadsafe(self._queue.put_nowait, request)
        else:
            self._queue.put_nowait(request)
        logger.info("Added job %s to queue. Queue length: %s", request.job_id, self._queue.qsize())

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._consumer = asyncio.create_task(self._drain(), name="analysis-job-consumer")
        logger.info("Job processor started")

    async def stop(self) -> None:
        """
        Stop the consumer. The job in flight is cancelled and anything still
        queued is dropped; those records are left to the janitor.
        """
        if self._consumer is None:
            return
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None
        if self._queue.qsize():
            logger.warning("Job processor stopped with %s job(s) still queued", self._queue.qsize())
        else:
            logger.info("Job processor stopped")

    async def join(self) -> None:
        """Wait until every job enqueued so far has reached a terminal state."""
        await self._queue.join()

    async def _drain(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                logger.info("Processing job %s from queue", request.job_id)
                await self.worker.run_job(request)
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Failed to process job %s", request.job_id)
            finally:
                self._queue.task_done()
