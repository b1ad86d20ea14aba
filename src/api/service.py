"""Service layer: runs or enqueues markdown jobs for the API routes."""

from __future__ import annotations

import logging

from src.api.schemas import JobAccepted, MarkdownJob, RunResponse
from src.config import Settings
from src.jobs.queue import RedisJobQueue
from src.writer.orchestrator import MarkdownWriter

logger = logging.getLogger(__name__)


async def write_markdown_now(
    writer: MarkdownWriter,
    settings: Settings,
    job: MarkdownJob,
) -> tuple[int, RunResponse]:
    """Run *job* synchronously and return ``(http_status, response body)``."""
    logger.info(
        "synchronous markdown request",
        extra={"url": job.url, "model": job.model.value, "additional_prompt": job.additional_prompt[:100]},
    )
    result = await writer.run(job)
    return result.http_status, RunResponse.from_result(result, include_markdown=settings.return_markdown)


async def enqueue_markdown_job(queue: RedisJobQueue, job: MarkdownJob) -> JobAccepted:
    """Queue *job* for the background worker and return the acceptance payload."""
    job_id = await queue.enqueue(job)
    return JobAccepted(job_id=job_id)
