"""Run orchestrator tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import redis.asyncio as redis

from src.api.schemas import MarkdownJob
from src.writer.models import MarkdownModel, RunOutcome
from src.writer.orchestrator import MarkdownWriter, WriterContext
from src.writer.strategies import (
    GenerationStrategy,
    _chunk_prompt,
    _page_prompt,
    chunked_preprocessor,
    whole_page_preprocess,
)

pytestmark = pytest.mark.asyncio

URL = "https://www.example.com/articles/1"
STORAGE_KEY = "example.com/articles/1"

HTML = """\
<html><head><title>Article One</title><script>track()</script></head>
<body>
<div id="main"><p>First paragraph of the article.</p><div class="ads">Buy things</div>
<p>Second paragraph with more words in it.</p></div>
<footer>Footer text</footer>
</body></html>
"""


def _client(result="# Article One\n\nFirst paragraph.") -> MagicMock:
    client = MagicMock()
    if isinstance(result, Exception):
        client.generate = AsyncMock(side_effect=result)
    else:
        client.generate = AsyncMock(return_value=result)
    return client


def _factory(client: MagicMock):
    def factory(model: MarkdownModel) -> GenerationStrategy:
        if model is MarkdownModel.GEMINI_2_FLASH:
            return GenerationStrategy(
                model=model,
                uses_rules=False,
                preprocess=whole_page_preprocess,
                prompt=_page_prompt,
                client=client,
            )
        return GenerationStrategy(
            model=model,
            uses_rules=True,
            preprocess=chunked_preprocessor("text"),
            prompt=_chunk_prompt,
            client=client,
        )

    return factory


@pytest.fixture
def client() -> MagicMock:
    return _client()


@pytest.fixture
def writer(settings, rule_store, metadata_store, content_store, client) -> MarkdownWriter:
    context = WriterContext(
        rule_store=rule_store,
        metadata_store=metadata_store,
        content_store=content_store,
        strategy_factory=_factory(client),
    )
    return MarkdownWriter(context, settings)


@pytest_asyncio.fixture
async def ingested(metadata_store, content_store):
    await metadata_store.add(URL, "7", STORAGE_KEY)
    await content_store.put_raw(f"{STORAGE_KEY}.html", HTML)


async def test_success_stores_markdown_and_updates_metadata(
    writer, client, ingested, metadata_store, content_store
):
    result = await writer.run(MarkdownJob(url=URL, additional_prompt="Be brief."))

    assert result.outcome is RunOutcome.SUCCESS
    assert result.http_status == 200
    assert result.markdown == "# Article One\n\nFirst paragraph."
    assert await content_store.get_markdown(f"{STORAGE_KEY}.md") == result.markdown
    metadata = await metadata_store.get_by_url(URL)
    assert metadata.markdown_created_at is not None

    messages, max_tokens = client.generate.call_args.args
    assert max_tokens == 1024
    assert messages[0].role == "system"
    assert '"Article One"' in messages[0].content
    assert messages[-1].content.endswith("Be brief.")


async def test_no_rules_sends_single_body_text_chunk(writer, client, ingested):
    await writer.run(MarkdownJob(url=URL))

    messages, _ = client.generate.call_args.args
    assert len(messages) == 3
    chunk = messages[1].content
    assert chunk.startswith("HTML Chunk 1: ")
    assert "Footer text" in chunk
    assert "track()" not in chunk


async def test_domain_rules_are_applied(writer, client, ingested, rule_store):
    await rule_store.put_rules(
        "example.com",
        json.dumps({"rules": [{"type": "css", "selector": "#main", "exclude": ".ads"}]}),
    )
    await writer.run(MarkdownJob(url=URL))

    messages, _ = client.generate.call_args.args
    chunk = messages[1].content
    assert "First paragraph" in chunk
    assert "Buy things" not in chunk
    assert "Footer text" not in chunk


async def test_small_chunk_size_splits_content(writer, client, ingested, rule_store):
    await rule_store.put_rules("example.com", json.dumps({"rules": [{"type": "css", "selector": "#main"}]}))
    result = await writer.run(MarkdownJob(url=URL, max_chunk_size=40, max_tokens=99))

    assert result.outcome is RunOutcome.SUCCESS
    messages, max_tokens = client.generate.call_args.args
    assert max_tokens == 99
    chunk_messages = [m for m in messages if m.content.startswith("HTML Chunk")]
    assert len(chunk_messages) > 2
    assert [m.content.split(":", 1)[0] for m in chunk_messages] == [
        f"HTML Chunk {i}" for i in range(1, len(chunk_messages) + 1)
    ]


async def test_gemini_variant_skips_rule_lookup(writer, client, ingested, rule_store):
    rule_store.get_rules = AsyncMock(return_value=[])
    result = await writer.run(MarkdownJob(url=URL, model=MarkdownModel.GEMINI_2_FLASH))

    assert result.outcome is RunOutcome.SUCCESS
    rule_store.get_rules.assert_not_awaited()
    messages, _ = client.generate.call_args.args
    assert [m.role for m in messages] == ["system", "system", "user"]


async def test_unknown_url_is_hardfail_404(writer, client):
    result = await writer.run(MarkdownJob(url="https://example.com/never-ingested"))

    assert result.outcome is RunOutcome.HARDFAIL
    assert result.http_status == 404
    assert result.markdown is None
    client.generate.assert_not_awaited()


async def test_missing_raw_html_is_hardfail_404(writer, client, metadata_store):
    await metadata_store.add(URL, "7", STORAGE_KEY)
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.HARDFAIL
    assert result.http_status == 404
    client.generate.assert_not_awaited()


async def test_rules_matching_nothing_is_hardfail(writer, client, ingested, rule_store):
    await rule_store.put_rules("example.com", json.dumps({"rules": [{"type": "css", "selector": "#nothing"}]}))
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.HARDFAIL
    client.generate.assert_not_awaited()


async def test_generation_error_is_softfail_without_writes(
    settings, rule_store, metadata_store, content_store, ingested
):
    client = _client(RuntimeError("model overloaded"))
    writer = MarkdownWriter(
        WriterContext(rule_store, metadata_store, content_store, _factory(client)),
        settings,
    )
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.SOFTFAIL
    assert result.http_status == 500
    assert result.message == "model overloaded"
    assert result.markdown is None
    assert await content_store.get_markdown(f"{STORAGE_KEY}.md") is None
    assert (await metadata_store.get_by_url(URL)).markdown_created_at is None


async def test_empty_generation_is_hardfail_by_default(
    settings, rule_store, metadata_store, content_store, ingested
):
    writer = MarkdownWriter(
        WriterContext(rule_store, metadata_store, content_store, _factory(_client("  \n"))),
        settings,
    )
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.HARDFAIL
    assert result.http_status == 500
    assert await content_store.get_markdown(f"{STORAGE_KEY}.md") is None


async def test_empty_generation_policy_is_configurable(
    settings, rule_store, metadata_store, content_store, ingested
):
    settings = settings.model_copy(update={"empty_output_outcome": "softfail"})
    writer = MarkdownWriter(
        WriterContext(rule_store, metadata_store, content_store, _factory(_client(""))),
        settings,
    )
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.SOFTFAIL
    assert result.retryable


async def test_store_error_is_softfail(writer, metadata_store):
    metadata_store.get_by_url = AsyncMock(side_effect=redis.ConnectionError("redis down"))
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.SOFTFAIL
    assert result.http_status == 500
    assert "redis down" in result.message


async def test_metadata_update_failure_after_write_is_softfail(writer, ingested, metadata_store, content_store):
    metadata_store.mark_generated = AsyncMock(side_effect=redis.TimeoutError("slow"))
    result = await writer.run(MarkdownJob(url=URL))

    assert result.outcome is RunOutcome.SOFTFAIL
    assert await content_store.get_markdown(f"{STORAGE_KEY}.md") is not None


async def test_invalid_chunk_size_is_softfail(writer, ingested):
    job = MarkdownJob.model_construct(
        url=URL, additional_prompt="", model=MarkdownModel.LLAMA, max_chunk_size=-1, max_tokens=None
    )
    result = await writer.run(job)

    assert result.outcome is RunOutcome.SOFTFAIL
    assert "max_chunk_size" in result.message
