"""Run-scoped data types for the markdown writer pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MarkdownModel(str, Enum):
    """Generation model variants accepted at the request boundary."""

    LLAMA = "llama-3.3"
    GEMINI_2_FLASH = "gemini-2.0-flash-exp"


class RunOutcome(str, Enum):
    SUCCESS = "success"
    HARDFAIL = "hardfail"
    SOFTFAIL = "softfail"


@dataclass(frozen=True)
class ExtractionRule:
    """A domain-scoped instruction selecting part of a page as content."""

    type: str
    selector: str = ""
    exclude: str | None = None


@dataclass(frozen=True)
class ExtractedContent:
    title: str = ""
    fragments: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PromptMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class PageMetadata:
    """Metadata record of a previously ingested page."""

    id: str
    storage_key: str
    markdown_created_at: str | None = None


@dataclass(frozen=True)
class RunResult:
    """Classified outcome of one orchestration call."""

    outcome: RunOutcome
    http_status: int
    message: str
    markdown: str | None = None

    @property
    def retryable(self) -> bool:
        return self.outcome is RunOutcome.SOFTFAIL
