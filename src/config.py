"""Pydantic Settings: loads configuration from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    api_token: str

    redis_url: str = "redis://localhost:6379"
    return_markdown: bool = False

    ai_model: str = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    cloudflare_account_id: str = ""
    cloudflare_api_token: str = ""
    cloudflare_api_url: str = "https://api.cloudflare.com/client/v4"
    generation_timeout_seconds: float = 120.0

    google_aistudio_api_key: str = ""
    google_ai_model: str = "gemini-2.0-flash-exp"

    default_max_chunk_size: int = 114688
    default_max_tokens: int = 1024
    fragment_fallback_mode: Literal["text", "html"] = "text"
    empty_output_outcome: Literal["hardfail", "softfail"] = "hardfail"

    queue_name: str = "create-markdown"
    queue_max_retries: int = 3
    worker_enabled: bool = True
    worker_concurrency: int = 5
    worker_poll_interval: float = 1.0

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
