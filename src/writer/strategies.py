"""Per-model generation strategies.

A strategy bundles how a page is preprocessed into chunks, how the prompt is
assembled and which client generates the markdown. Strategies are selected
by :class:`~src.writer.models.MarkdownModel` at the request boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.config import Settings
from src.writer.extract import FallbackMode, extract_content, strip_to_text
from src.writer.generation import GeminiClient, GenerationClient, WorkersAIClient
from src.writer.models import ExtractionRule, MarkdownModel, PromptMessage
from src.writer.prompts import build_chunk_messages, build_page_messages
from src.writer.split import chunk_fragments

Preprocessor = Callable[[str, list[ExtractionRule], int], tuple[str, list[str]]]
PromptBuilder = Callable[[str, list[str], str], list[PromptMessage]]


@dataclass(frozen=True)
class GenerationStrategy:
    model: MarkdownModel
    uses_rules: bool
    preprocess: Preprocessor
    prompt: PromptBuilder
    client: GenerationClient

    async def invoke(self, messages: list[PromptMessage], max_tokens: int) -> str:
        return await self.client.generate(messages, max_tokens)


def chunked_preprocessor(fallback_mode: FallbackMode = "text") -> Preprocessor:
    """Rule-driven extraction followed by size-bounded chunking."""

    def preprocess(html: str, rules: list[ExtractionRule], max_chunk_size: int) -> tuple[str, list[str]]:
        content = extract_content(html, rules, fallback_mode=fallback_mode)
        return content.title, chunk_fragments(content.fragments, max_chunk_size)

    return preprocess


def whole_page_preprocess(html: str, rules: list[ExtractionRule], max_chunk_size: int) -> tuple[str, list[str]]:
    """Whole-document text as a single chunk; rules and size are not used."""
    title, text = strip_to_text(html)
    return title, [text]


def _chunk_prompt(title: str, chunks: list[str], instruction: str) -> list[PromptMessage]:
    return build_chunk_messages(title, chunks, instruction)


def _page_prompt(title: str, chunks: list[str], instruction: str) -> list[PromptMessage]:
    return build_page_messages(title, "\n\n".join(chunks), instruction)


def build_strategy(model: MarkdownModel, settings: Settings) -> GenerationStrategy:
    """Build the generation strategy for *model* from configuration."""
    if model is MarkdownModel.GEMINI_2_FLASH:
        return GenerationStrategy(
            model=model,
            uses_rules=False,
            preprocess=whole_page_preprocess,
            prompt=_page_prompt,
            client=GeminiClient(
                api_key=settings.google_aistudio_api_key,
                model=settings.google_ai_model,
            ),
        )

    return GenerationStrategy(
        model=MarkdownModel.LLAMA,
        uses_rules=True,
        preprocess=chunked_preprocessor(settings.fragment_fallback_mode),
        prompt=_chunk_prompt,
        client=WorkersAIClient(
            account_id=settings.cloudflare_account_id,
            api_token=settings.cloudflare_api_token,
            model=settings.ai_model,
            api_url=settings.cloudflare_api_url,
            timeout=settings.generation_timeout_seconds,
        ),
    )
