"""Redis-backed rule, page metadata and content stores.

Unlike a cache, these stores are the source of truth for a run, so Redis
errors propagate to the caller instead of being swallowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

import redis.asyncio as redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from src.writer.models import ExtractionRule, PageMetadata
from src.writer.rules import domain_key, parse_rules

logger = logging.getLogger(__name__)

PAGE_KEY_PREFIX = "page:"
PAGE_ID_KEY_PREFIX = "page-id:"
RAW_KEY_PREFIX = "raw:"
KNOWLEDGE_KEY_PREFIX = "knowledge:"


class RuleStore(Protocol):
    async def get_rules(self, hostname: str) -> list[ExtractionRule]: ...


class MetadataStore(Protocol):
    async def get_by_url(self, url: str) -> PageMetadata | None: ...

    async def mark_generated(self, page_id: str) -> None: ...


class ContentStore(Protocol):
    async def get_raw(self, key: str) -> str | None: ...

    async def put_markdown(self, key: str, markdown: str) -> int: ...


class RedisRuleStore:
    """Extraction rules stored as JSON under ``domain:<host>``."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def get_rules(self, hostname: str) -> list[ExtractionRule]:
        key = domain_key(hostname)
        raw = await self._client.get(key)
        if raw is None:
            logger.warning("no html preprocessing rules found", extra={"domain": hostname, "key": key})
            return []
        rules = parse_rules(raw)
        logger.info(
            "fetched html preprocessing rules",
            extra={"domain": hostname, "key": key, "rules": [r.__dict__ for r in rules]},
        )
        return rules

    async def put_rules(self, hostname: str, raw_rules: str) -> None:
        await self._client.set(domain_key(hostname), raw_rules)


class RedisMetadataStore:
    """Page metadata as hashes under ``page:<url>`` with an id index."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def get_by_url(self, url: str) -> PageMetadata | None:
        record = await self._client.hgetall(f"{PAGE_KEY_PREFIX}{url}")
        if not record or "id" not in record or "storage_key" not in record:
            logger.warning("url not found in page metadata", extra={"url": url})
            return None
        return PageMetadata(
            id=str(record["id"]),
            storage_key=str(record["storage_key"]),
            markdown_created_at=record.get("markdown_created_at"),
        )

    async def add(self, url: str, page_id: str, storage_key: str) -> None:
        """Register a page; used by the ingestion side and by tests."""
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(f"{PAGE_KEY_PREFIX}{url}", mapping={"id": page_id, "storage_key": storage_key})
            pipe.set(f"{PAGE_ID_KEY_PREFIX}{page_id}", url)
            await pipe.execute()

    async def mark_generated(self, page_id: str) -> None:
        """Set ``markdown_created_at`` on the page with *page_id* to now (UTC)."""
        url = await self._client.get(f"{PAGE_ID_KEY_PREFIX}{page_id}")
        if url is None:
            raise LookupError(f"page id {page_id!r} is not indexed")
        now = datetime.now(timezone.utc).isoformat()
        await self._client.hset(f"{PAGE_KEY_PREFIX}{url}", "markdown_created_at", now)
        logger.debug("page metadata updated", extra={"page_id": page_id, "markdown_created_at": now})


class RedisContentStore:
    """Raw HTML under ``raw:<key>`` and generated markdown under ``knowledge:<key>``."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def get_raw(self, key: str) -> str | None:
        return await self._client.get(f"{RAW_KEY_PREFIX}{key}")

    async def put_raw(self, key: str, html: str) -> None:
        await self._client.set(f"{RAW_KEY_PREFIX}{key}", html)

    async def put_markdown(self, key: str, markdown: str) -> int:
        """Store *markdown* and return the number of bytes written."""
        await self._client.set(f"{KNOWLEDGE_KEY_PREFIX}{key}", markdown)
        return len(markdown.encode("utf-8"))

    async def get_markdown(self, key: str) -> str | None:
        return await self._client.get(f"{KNOWLEDGE_KEY_PREFIX}{key}")


async def create_redis_client(redis_url: str) -> redis.Redis:
    # Strip credentials for logging (everything before @ if present)
    safe_url = redis_url.split("@")[-1] if "@" in redis_url else redis_url
    logger.info("connecting to redis", extra={"redis_url": safe_url})
    retry = Retry(ExponentialBackoff(), retries=3)
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
        retry=retry,
        retry_on_error=[redis.ConnectionError, redis.TimeoutError],
    )
