"""Anthropic LLM client with graceful degradation."""

from __future__ import annotations

import logging
import os
from typing import Any

from outline_search.config import (
    get_anthropic_max_tokens,
    get_anthropic_model,
    get_anthropic_timeout,
)
from outline_search.llm.provider import ModelFamily, resolve_model_family

logger = logging.getLogger(__name__)

# Prefilled assistant turn that forces a JSON object reply
_JSON_PREFILL = "{"


class AnthropicLLMClient:
    """Generates text via the Anthropic Messages API.

    In JSON mode the request runs at temperature 0, and Claude models get an
    assistant turn prefilled with ``{`` that is put back in front of the reply.
    """

    def __init__(self, model: str | None = None) -> None:
        """Initialize with lazy client creation."""
        self._model = model or get_anthropic_model()
        self.family: ModelFamily = resolve_model_family(self._model)
        self._client: Any = None
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Optimistic when the SDK and key are present; generate() confirms it."""
        if self._available is True:
            return True
        if not os.environ.get("ANTHROPIC_API_KEY"):
            logger.warning("ANTHROPIC_API_KEY not set, Anthropic LLM disabled")
            return False
        return self._get_client() is not None

    def _prefills(self, json_output: bool) -> bool:
        return json_output and self.family is ModelFamily.CLAUDE

    def _request(self, prompt: str, system: str | None, json_output: bool) -> dict[str, Any]:
        """Messages API arguments for one prompt."""
        messages: list[dict[str, str]] = [{"role": "user", "content": prompt}]
        if self._prefills(json_output):
            messages.append({"role": "assistant", "content": _JSON_PREFILL})
        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": get_anthropic_max_tokens(),
            "messages": messages,
            "timeout": get_anthropic_timeout(),
        }
        if system is not None:
            request["system"] = system
        if json_output:
            request["temperature"] = 0.0
        return request

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        """Generate text from a prompt. Returns None if unavailable."""
        try:
            client = self._get_client()
            if client is None:
                return None
            response = await client.messages.create(**self._request(prompt, system, json_output))
        except Exception:
            logger.warning("Anthropic generation failed", exc_info=True)
            self._available = None
            return None

        self._available = True
        text = "".join(block.text for block in response.content if block.type == "text")
        if response.stop_reason == "max_tokens":
            logger.warning("Anthropic reply hit the %d token cap", get_anthropic_max_tokens())
        return _JSON_PREFILL + text if self._prefills(json_output) else text

    def _get_client(self) -> Any:
        """Lazily create the AsyncAnthropic client. Returns None if SDK missing."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic

                self._client = AsyncAnthropic(max_retries=2)
            except ImportError:
                logger.warning("anthropic package not installed, Anthropic LLM disabled")
                return None
            except Exception:
                logger.warning("Anthropic client could not be created", exc_info=True)
                return None
        return self._client

    async def close(self) -> None:
        """Close the Anthropic client if open."""
        if self._client is not None:
            await self._client.close()
            self._client = None
