"""Reliable Redis list queue for markdown jobs."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass

import redis.asyncio as redis
from pydantic import ValidationError

from src.api.schemas import MarkdownJob

logger = logging.getLogger(__name__)

KEY_PREFIX = "queue:"


@dataclass(frozen=True)
class QueuedJob:
    """A job reserved from the queue, with the raw envelope used to ack it."""

    id: str
    attempts: int
    job: MarkdownJob
    raw: str


def _envelope(job_id: str, attempts: int, job: MarkdownJob) -> str:
    return json.dumps({
        "id": job_id,
        "attempts": attempts,
        "job": job.model_dump(mode="json", by_alias=True),
    })


class RedisJobQueue:
    """Jobs move from the pending list to a processing list while in flight.

    A job is removed from the processing list when acknowledged, or pushed
    back to the pending list on retry. Once a job has failed more than
    ``max_retries`` times it is parked on the dead-letter list instead.
    """

    def __init__(self, client: redis.Redis, name: str = "create-markdown", max_retries: int = 3) -> None:
        self._client = client
        self._max_retries = max_retries
        self.pending_key = f"{KEY_PREFIX}{name}"
        self.processing_key = f"{KEY_PREFIX}{name}:processing"
        self.dead_letter_key = f"{KEY_PREFIX}{name}:dlq"

    async def enqueue(self, job: MarkdownJob) -> str:
        job_id = uuid.uuid4().hex[:12]
        await self._client.lpush(self.pending_key, _envelope(job_id, 0, job))
        logger.info("job enqueued", extra={"job_id": job_id, "url": job.url})
        return job_id

    async def reserve(self) -> QueuedJob | None:
        """Move the oldest pending job to the processing list, or return ``None``.

        Envelopes that cannot be decoded are dead-lettered and skipped.
        """
        while True:
            raw = await self._client.lmove(self.pending_key, self.processing_key, "RIGHT", "LEFT")
            if raw is None:
                return None
            try:
                data = json.loads(raw)
                queued = QueuedJob(
                    id=str(data["id"]),
                    attempts=int(data.get("attempts", 0)),
                    job=MarkdownJob.model_validate(data["job"]),
                    raw=raw,
                )
            except (ValueError, KeyError, TypeError, ValidationError):
                logger.error("undecodable job envelope, dead-lettering", extra={"envelope": raw[:200]}, exc_info=True)
                await self._move_to_dead_letter(raw, raw)
                continue
            logger.debug("job reserved", extra={"job_id": queued.id, "attempts": queued.attempts})
            return queued

    async def ack(self, queued: QueuedJob) -> None:
        await self._client.lrem(self.processing_key, 1, queued.raw)
        logger.debug("job acknowledged", extra={"job_id": queued.id})

    async def retry(self, queued: QueuedJob) -> bool:
        """Request redelivery of *queued*. Returns ``False`` if it was dead-lettered."""
        attempts = queued.attempts + 1
        envelope = _envelope(queued.id, attempts, queued.job)
        if attempts > self._max_retries:
            logger.warning(
                "job exhausted retries, dead-lettering",
                extra={"job_id": queued.id, "attempts": attempts, "url": queued.job.url},
            )
            await self._move_to_dead_letter(queued.raw, envelope)
            return False

        async with self._client.pipeline(transaction=True) as pipe:
            pipe.lrem(self.processing_key, 1, queued.raw)
            pipe.lpush(self.pending_key, envelope)
            await pipe.execute()
        logger.info("job scheduled for redelivery", extra={"job_id": queued.id, "attempts": attempts})
        return True

    async def recover_inflight(self) -> int:
        """Return jobs left in the processing list (e.g. after a crash) to pending."""
        moved = 0
        while await self._client.lmove(self.processing_key, self.pending_key, "RIGHT", "RIGHT") is not None:
            moved += 1
        if moved:
            logger.info("recovered in-flight jobs", extra={"count": moved})
        return moved

    async def dead_letters(self) -> list[str]:
        return await self._client.lrange(self.dead_letter_key, 0, -1)

    async def pending_count(self) -> int:
        return await self._client.llen(self.pending_key)

    async def _move_to_dead_letter(self, raw: str, envelope: str) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.lrem(self.processing_key, 1, raw)
            pipe.lpush(self.dead_letter_key, envelope)
            await pipe.execute()
