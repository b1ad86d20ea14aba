"""Fixtures: fake Redis, stores, queue, settings."""

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from src.config import Settings
from src.jobs.queue import RedisJobQueue
from src.storage.redis import RedisContentStore, RedisMetadataStore, RedisRuleStore


@pytest_asyncio.fixture
async def redis_client():
    """In-memory FakeRedis instance."""
    client = FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def rule_store(redis_client) -> RedisRuleStore:
    return RedisRuleStore(redis_client)


@pytest.fixture
def metadata_store(redis_client) -> RedisMetadataStore:
    return RedisMetadataStore(redis_client)


@pytest.fixture
def content_store(redis_client) -> RedisContentStore:
    return RedisContentStore(redis_client)


@pytest.fixture
def job_queue(redis_client) -> RedisJobQueue:
    return RedisJobQueue(redis_client, name="test-queue", max_retries=2)


@pytest.fixture
def settings() -> Settings:
    return Settings(  # type: ignore[call-arg]
        api_token="test-token",
        cloudflare_account_id="acct",
        cloudflare_api_token="cf-token",
        google_aistudio_api_key="test-google-key",
    )
