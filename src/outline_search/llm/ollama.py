"""Ollama LLM client with graceful degradation."""

import logging
import re
from typing import Any

import httpx

from outline_search.config import get_llm_model, get_llm_timeout, get_ollama_url
from outline_search.llm.provider import ModelFamily, resolve_model_family

logger = logging.getLogger(__name__)

# Reasoning preamble some open-weights models (qwen3, deepseek-r1) emit before answering
_THINK_RE = re.compile(r"^\s*<think>.*?</think>\s*", re.DOTALL)


class OllamaLLMClient:
    """Generates text via Ollama's /api/generate endpoint."""

    def __init__(
        self, http_client: httpx.AsyncClient | None = None, model: str | None = None
    ) -> None:
        """Initialize with an optional HTTP client."""
        self._http = http_client
        self._model = model or get_llm_model()
        self.family: ModelFamily = resolve_model_family(self._model)
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Check if Ollama is reachable. Only caches success, retries on failure."""
        if self._available is True:
            return True
        try:
            resp = await self._get_client().get(
                f"{get_ollama_url()}/api/tags", timeout=get_llm_timeout()
            )
            resp.raise_for_status()
            self._available = True
        except httpx.HTTPError:
            logger.warning("Ollama not available at %s, LLM disabled", get_ollama_url())
            self._available = None
        return self._available is True

    def _payload(self, prompt: str, system: str | None, json_output: bool) -> dict[str, Any]:
        """Request body for /api/generate.

        JSON mode constrains decoding to a JSON object and turns sampling off.
        """
        payload: dict[str, Any] = {"model": self._model, "prompt": prompt, "stream": False}
        if system is not None:
            payload["system"] = system
        if json_output:
            payload["format"] = "json"
            payload["options"] = {"temperature": 0}
        return payload

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        """Generate text from a prompt. Returns None if unavailable or truncated JSON."""
        if not await self.is_available():
            return None
        try:
            resp = await self._get_client().post(
                f"{get_ollama_url()}/api/generate",
                json=self._payload(prompt, system, json_output),
                timeout=get_llm_timeout(),
            )
            resp.raise_for_status()
            data = resp.json()
            text: str = data["response"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError):
            logger.warning("LLM generation failed", exc_info=True)
            self._available = None
            return None

        if json_output and data.get("done_reason") == "length":
            logger.warning("Ollama JSON reply from %s was cut off, discarding it", self._model)
            return None
        if self.family is ModelFamily.OPEN_WEIGHTS:
            text = _THINK_RE.sub("", text, count=1)
        return text

    def _get_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(transport=httpx.AsyncHTTPTransport(retries=2))
        return self._http

    async def close(self) -> None:
        """Close the HTTP client if open."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
