"""Run orchestrator: metadata -> raw HTML -> chunks -> markdown -> storage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlparse

from src.api.schemas import MarkdownJob
from src.config import Settings
from src.storage.redis import ContentStore, MetadataStore, RuleStore
from src.writer.models import MarkdownModel, RunOutcome, RunResult
from src.writer.strategies import GenerationStrategy, build_strategy

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[MarkdownModel], GenerationStrategy]


@dataclass(frozen=True)
class WriterContext:
    """External service handles a run needs."""

    rule_store: RuleStore
    metadata_store: MetadataStore
    content_store: ContentStore
    strategy_factory: StrategyFactory


def default_strategy_factory(settings: Settings) -> StrategyFactory:
    """Strategies are built on first use and shared by every later run."""
    strategies: dict[MarkdownModel, GenerationStrategy] = {}

    def factory(model: MarkdownModel) -> GenerationStrategy:
        if model not in strategies:
            strategies[model] = build_strategy(model, settings)
        return strategies[model]

    return factory


def _hardfail(message: str, status: int) -> RunResult:
    return RunResult(outcome=RunOutcome.HARDFAIL, http_status=status, message=message)


class MarkdownWriter:
    """Turns one ingested page into a stored markdown document.

    Expected absence (unknown URL, missing HTML) is reported as a hardfail
    result. Any exception raised along the way is reported as a softfail so
    the caller may retry the same job later.
    """

    def __init__(self, context: WriterContext, settings: Settings) -> None:
        self._context = context
        self._settings = settings

    async def run(self, job: MarkdownJob) -> RunResult:
        trace_id = uuid.uuid4().hex
        logger.info(
            "markdown run started",
            extra={
                "trace_id": trace_id,
                "url": job.url,
                "model": job.model.value,
                "max_chunk_size": job.max_chunk_size,
                "max_tokens": job.max_tokens,
            },
        )
        try:
            result = await self._run(job, trace_id)
        except Exception as exc:
            logger.exception("markdown run failed", extra={"trace_id": trace_id, "url": job.url})
            return RunResult(
                outcome=RunOutcome.SOFTFAIL,
                http_status=500,
                message=str(exc) or type(exc).__name__,
            )

        logger.info(
            "markdown run finished",
            extra={
                "trace_id": trace_id,
                "url": job.url,
                "outcome": result.outcome.value,
                "status": result.http_status,
            },
        )
        return result

    async def _run(self, job: MarkdownJob, trace_id: str) -> RunResult:
        ctx = self._context
        log_extra = {"trace_id": trace_id, "url": job.url}

        metadata = await ctx.metadata_store.get_by_url(job.url)
        if metadata is None:
            return _hardfail("URL not found in page metadata", 404)
        log_extra["storage_key"] = metadata.storage_key
        logger.info("fetched page metadata", extra={**log_extra, "page_id": metadata.id})

        html = await ctx.content_store.get_raw(f"{metadata.storage_key}.html")
        if not html:
            return _hardfail("HTML not found in raw content store", 404)
        logger.info("fetched raw html", extra={**log_extra, "length": len(html)})

        strategy = ctx.strategy_factory(job.model)
        rules = []
        if strategy.uses_rules:
            rules = await ctx.rule_store.get_rules(urlparse(job.url).hostname or "")

        max_chunk_size = job.max_chunk_size or self._settings.default_max_chunk_size
        max_tokens = job.max_tokens or self._settings.default_max_tokens

        title, chunks = strategy.preprocess(html, rules, max_chunk_size)
        if not chunks:
            return _hardfail("No usable content extracted from HTML", 404)
        logger.info(
            "html preprocessed",
            extra={**log_extra, "title": title[:100], "chunks": len(chunks), "rules": len(rules)},
        )

        messages = strategy.prompt(title, chunks, job.additional_prompt)
        logger.info(
            "generating markdown",
            extra={**log_extra, "model": job.model.value, "messages": len(messages), "max_tokens": max_tokens},
        )
        markdown = await strategy.invoke(messages, max_tokens)
        if not markdown or not markdown.strip():
            outcome = RunOutcome(self._settings.empty_output_outcome)
            logger.warning("model returned empty markdown", extra={**log_extra, "outcome": outcome.value})
            return RunResult(outcome=outcome, http_status=500, message="Failed to generate markdown")
        logger.info("generated markdown", extra={**log_extra, "length": len(markdown)})

        size = await ctx.content_store.put_markdown(f"{metadata.storage_key}.md", markdown)
        logger.info("saved markdown in knowledge store", extra={**log_extra, "size": size})

        await ctx.metadata_store.mark_generated(metadata.id)

        return RunResult(
            outcome=RunOutcome.SUCCESS,
            http_status=200,
            message="Markdown saved to knowledge store",
            markdown=markdown,
        )
