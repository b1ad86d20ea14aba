"""Request/response Pydantic models."""

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.writer.models import MarkdownModel, RunResult

_VALID_SCHEMES = {"http", "https"}


class MarkdownJob(BaseModel):
    """A unit of work: one previously ingested URL to turn into markdown."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    additional_prompt: str = Field(default="", alias="additionalPrompt")
    model: MarkdownModel = MarkdownModel.LLAMA
    max_chunk_size: int | None = Field(default=None, alias="maxChunkSize", gt=0)
    max_tokens: int | None = Field(default=None, alias="maxTokens", gt=0)

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in _VALID_SCHEMES or not parsed.hostname:
            raise ValueError("url must be an absolute http(s) URL")
        return value


class RunResponse(BaseModel):
    message: str
    status: str
    markdown: str | None = None

    @classmethod
    def from_result(cls, result: RunResult, include_markdown: bool = False) -> "RunResponse":
        return cls(
            message=result.message,
            status=result.outcome.value,
            markdown=result.markdown if include_markdown else None,
        )


class JobAccepted(BaseModel):
    status: str = "accepted"
    job_id: str
    message: str = "Job queued. Markdown will be generated asynchronously."
