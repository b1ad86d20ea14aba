"""Queue consumer: runs markdown jobs with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging

import redis.asyncio as redis

from src.jobs.queue import QueuedJob, RedisJobQueue
from src.writer.models import RunOutcome, RunResult
from src.writer.orchestrator import MarkdownWriter

logger = logging.getLogger(__name__)


class QueueWorker:
    """Consumes queued jobs and maps run outcomes onto queue operations.

    success -> ack, hardfail -> ack (dropped), softfail -> redelivery.
    """

    def __init__(
        self,
        queue: RedisJobQueue,
        writer: MarkdownWriter,
        *,
        concurrency: int = 5,
        poll_interval: float = 1.0,
    ) -> None:
        self._queue = queue
        self._writer = writer
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._poll_interval = poll_interval
        self._stopping = asyncio.Event()
        self._stopped = asyncio.Event()
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    async def handle(self, queued: QueuedJob) -> RunResult | None:
        """Run one job and settle it on the queue."""
        extra = {"job_id": queued.id, "url": queued.job.url, "attempts": queued.attempts}
        try:
            result = await self._writer.run(queued.job)
        except Exception:
            logger.exception("job handling failed", extra=extra)
            await self._queue.retry(queued)
            return None

        if result.outcome is RunOutcome.SUCCESS:
            await self._queue.ack(queued)
            logger.info("job completed", extra=extra)
        elif result.outcome is RunOutcome.HARDFAIL:
            await self._queue.ack(queued)
            logger.warning("job dropped", extra={**extra, "reason": result.message, "status": result.http_status})
        else:
            await self._queue.retry(queued)
            logger.warning("job failed, retry requested", extra={**extra, "reason": result.message})
        return result

    async def drain(self) -> int:
        """Process pending jobs one at a time until the queue is empty."""
        processed = 0
        while (queued := await self._queue.reserve()) is not None:
            await self.handle(queued)
            processed += 1
        return processed

    async def run(self) -> None:
        """Consume jobs until :meth:`stop` is called."""
        self._running = True
        try:
            await self._consume()
        finally:
            self._running = False
            self._stopped.set()
        logger.info("queue worker stopped")

    async def _consume(self) -> None:
        await self._queue.recover_inflight()
        logger.info("queue worker started")
        while not self._stopping.is_set():
            await self._semaphore.acquire()
            if self._stopping.is_set():
                self._semaphore.release()
                break
            try:
                queued = await self._queue.reserve()
            except redis.RedisError:
                self._semaphore.release()
                logger.warning("failed to reserve job", exc_info=True)
                await self._idle()
                continue

            if queued is None:
                self._semaphore.release()
                await self._idle()
                continue

            task = asyncio.create_task(self._handle_and_release(queued))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def stop(self) -> None:
        """Stop consuming and wait for in-flight jobs to settle."""
        self._stopping.set()
        if self._running:
            await self._stopped.wait()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _handle_and_release(self, queued: QueuedJob) -> None:
        try:
            await self.handle(queued)
        except redis.RedisError:
            logger.exception("failed to settle job on queue", extra={"job_id": queued.id})
        finally:
            self._semaphore.release()

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass
