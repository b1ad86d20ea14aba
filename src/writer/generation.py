"""Generation service clients: Workers AI (Llama) and Google Gemini."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from google import genai
from google.genai import types

from src.writer.models import PromptMessage

logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    """Protocol for text generation backends."""

    async def generate(self, messages: list[PromptMessage], max_tokens: int) -> str: ...


class WorkersAIClient:
    """Runs chat models through the Cloudflare Workers AI REST API."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str,
        *,
        api_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._account_id = account_id
        self._api_token = api_token
        self._model = model
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def _endpoint(self) -> str:
        return f"{self._api_url}/accounts/{self._account_id}/ai/run/{self._model}"

    async def generate(self, messages: list[PromptMessage], max_tokens: int) -> str:
        """Send the conversation and return the model's response text.

        Raises ``httpx.HTTPError`` on transport or HTTP failures.
        """
        payload = {"messages": [m.to_dict() for m in messages], "max_tokens": max_tokens}
        logger.debug(
            "running workers ai model",
            extra={"model": self._model, "messages": len(messages), "max_tokens": max_tokens},
        )
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._api_token}"},
            transport=self._transport,
        ) as client:
            resp = await client.post(self._endpoint(), json=payload)
            resp.raise_for_status()
            data = resp.json()

        result = data.get("result") or {}
        response = result.get("response") if isinstance(result, dict) else None
        return "" if response is None else str(response)


class GeminiClient:
    """Generates text with a Google Gemini model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        temperature: float = 0.2,
        top_p: float = 0.1,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._top_p = top_p

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, messages: list[PromptMessage], max_tokens: int) -> str:
        """System messages become the system instruction, the rest the user turn."""
        system_parts = [m.content for m in messages if m.role == "system"]
        user_parts = [m.content for m in messages if m.role != "system"]

        config = types.GenerateContentConfig(
            system_instruction=system_parts or None,
            temperature=self._temperature,
            top_p=self._top_p,
            max_output_tokens=max_tokens,
        )
        logger.debug(
            "sending prompt to gemini",
            extra={"model": self._model, "parts": len(user_parts), "max_tokens": max_tokens},
        )
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=user_parts,
            config=config,
        )
        return response.text or ""
