"""Completion clients for the chat assistant.

Two backends share one contract: an OpenAI-compatible chat-completions
endpoint (Groq by default) reached over httpx, and the Anthropic Messages
API through its SDK.
"""

import os
from typing import Protocol

import anthropic
import httpx

from ..config import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_COMPLETION_TIMEOUT,
    DEFAULT_GROQ_API_URL,
    DEFAULT_GROQ_MODEL,
    completion_provider,
    completion_timeout,
)
from ..logging_config import get_logger

logger = get_logger(__name__)


class CompletionError(Exception):
    """The completion service failed or returned a malformed response."""


class ICompletionClient(Protocol):
    """Abstraction over the remote text-completion service."""

    async def complete(
        self,
        messages: list[dict],  # [{"role": "system" | "user" | "assistant", "content": "..."}]
    ) -> str:
        """Return the assistant reply text or raise CompletionError."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class GroqCompletionClient:
    """OpenAI-compatible chat completions over HTTP (Groq by default)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = DEFAULT_COMPLETION_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key or os.getenv("GROQ_API_KEY")
        if not self._api_key:
            raise ValueError("GROQ_API_KEY environment variable not set")

        self._model = model or os.getenv("GROQ_MODEL", DEFAULT_GROQ_MODEL)
        self._api_url = api_url or os.getenv("GROQ_API_URL", DEFAULT_GROQ_API_URL)
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def complete(self, messages: list[dict]) -> str:
        """POST the transcript and return ``choices[0].message.content``."""
        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

        try:
            response = await self._client.post(self._api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            detail = _error_message(response)
            logger.error("Completion API error %s: %s", response.status_code, detail)
            raise CompletionError(detail)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError("Malformed completion response") from e

        if not isinstance(content, str):
            raise CompletionError("Malformed completion response")

        return content

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error envelope when there is one."""
    try:
        envelope = response.json()
    except ValueError:
        envelope = None

    if isinstance(envelope, dict):
        error = envelope.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error

    return f"Completion service returned HTTP {response.status_code}"


class AnthropicCompletionClient:
    """Anthropic Claude API client."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = 1000,
        timeout: float = DEFAULT_COMPLETION_TIMEOUT,
    ):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model
        self._max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=timeout)

    async def complete(self, messages: list[dict]) -> str:
        """Generate completion using Claude API."""
        # System turns go to the dedicated parameter; the conversation must
        # open with a user turn.
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        conversation = [m for m in messages if m["role"] != "system"]
        while conversation and conversation[0]["role"] != "user":
            conversation.pop(0)

        kwargs = {
            "model": self._model,
            "messages": conversation,
            "max_tokens": self._max_tokens,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise CompletionError(f"Completion API error: {e}") from e

        try:
            return response.content[0].text
        except (AttributeError, IndexError) as e:
            raise CompletionError("Malformed completion response") from e

    async def aclose(self) -> None:
        await self._client.close()


def create_completion_client(provider: str | None = None) -> ICompletionClient:
    """Build the completion client selected by COMPLETION_PROVIDER."""
    provider = (provider or completion_provider()).lower()
    timeout = completion_timeout()

    if provider == "groq":
        return GroqCompletionClient(timeout=timeout)
    if provider == "anthropic":
        return AnthropicCompletionClient(timeout=timeout)

    raise ValueError(f"Unknown completion provider: {provider}")
