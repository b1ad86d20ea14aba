"""FastAPI app entrypoint."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.api.routes import router
from src.config import get_settings
from src.jobs.queue import RedisJobQueue
from src.jobs.worker import QueueWorker
from src.logging_config import setup_logging
from src.storage.redis import (
    RedisContentStore,
    RedisMetadataStore,
    RedisRuleStore,
    create_redis_client,
)
from src.writer.orchestrator import MarkdownWriter, WriterContext, default_strategy_factory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Initialize logging FIRST so all subsequent operations produce JSON logs
    setup_logging(settings.log_level)
    logger.info("starting markdown writer")

    redis_client = await create_redis_client(settings.redis_url)
    context = WriterContext(
        rule_store=RedisRuleStore(redis_client),
        metadata_store=RedisMetadataStore(redis_client),
        content_store=RedisContentStore(redis_client),
        strategy_factory=default_strategy_factory(settings),
    )
    writer = MarkdownWriter(context, settings)
    queue = RedisJobQueue(redis_client, name=settings.queue_name, max_retries=settings.queue_max_retries)

    app.state.settings = settings
    app.state.writer = writer
    app.state.queue = queue

    worker: QueueWorker | None = None
    worker_task: asyncio.Task | None = None
    if settings.worker_enabled:
        worker = QueueWorker(
            queue,
            writer,
            concurrency=settings.worker_concurrency,
            poll_interval=settings.worker_poll_interval,
        )
        worker_task = asyncio.create_task(worker.run())

    logger.info(
        "markdown writer ready",
        extra={
            "ai_model": settings.ai_model,
            "google_ai_model": settings.google_ai_model,
            "queue": settings.queue_name,
            "worker_enabled": settings.worker_enabled,
            "worker_concurrency": settings.worker_concurrency,
        },
    )

    yield

    # Cleanup
    logger.info("shutting down markdown writer")
    if worker is not None and worker_task is not None:
        await worker.stop()
        await worker_task
    await redis_client.aclose()


app = FastAPI(title="Markdown Writer", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
