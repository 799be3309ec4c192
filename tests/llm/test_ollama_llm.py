"""Tests for OllamaLLMClient (mocked HTTP)."""

import json

import httpx
import pytest

from outline_search.llm.ollama import OllamaLLMClient
from outline_search.llm.provider import LLMProvider, ModelFamily


def _default_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/tags":
        return httpx.Response(200, json={"models": []})
    if request.url.path == "/api/generate":
        return httpx.Response(200, json={"response": "test output"})
    return httpx.Response(404)


def _capturing_client(
    captured: list[dict[str, object]],
    reply: str = "ok",
    model: str = "qwen3:8b",
    **fields: object,
) -> OllamaLLMClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})
        if request.url.path == "/api/generate":
            captured.append(json.loads(request.content))
            return httpx.Response(200, json={"response": reply, **fields})
        return httpx.Response(404)

    return OllamaLLMClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), model=model
    )


@pytest.mark.asyncio
async def test_generate_success():
    transport = httpx.MockTransport(_default_handler)
    client = OllamaLLMClient(http_client=httpx.AsyncClient(transport=transport))
    try:
        result = await client.generate("hello")
        assert result == "test output"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_generate_unavailable():
    def fail_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    transport = httpx.MockTransport(fail_handler)
    client = OllamaLLMClient(http_client=httpx.AsyncClient(transport=transport))
    try:
        result = await client.generate("hello")
        assert result is None
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_generate_with_system_prompt():
    """System prompt is included in the request payload."""
    captured: list[dict[str, object]] = []
    client = _capturing_client(captured)
    try:
        await client.generate("hello", system="be helpful")
        assert len(captured) == 1
        assert captured[0]["system"] == "be helpful"
        assert captured[0]["prompt"] == "hello"
        assert "format" not in captured[0]
        assert "options" not in captured[0]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_json_output_sets_format():
    """JSON mode asks Ollama for a JSON-constrained reply."""
    captured: list[dict[str, object]] = []
    client = _capturing_client(captured, reply='{"search_list": "budget"}')
    try:
        result = await client.generate("hello", json_output=True)
        assert captured[0]["format"] == "json"
        assert captured[0]["options"] == {"temperature": 0}
        assert result == '{"search_list": "budget"}'
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_truncated_json_reply_is_discarded():
    """A JSON reply cut off at the length limit cannot be parsed, so it is dropped."""
    captured: list[dict[str, object]] = []
    client = _capturing_client(captured, reply='{"search_list": "bud', done_reason="length")
    try:
        assert await client.generate("hello", json_output=True) is None
        assert await client.generate("hello") == '{"search_list": "bud'
        assert client._available is True
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_reasoning_preamble_stripped_for_open_weights():
    captured: list[dict[str, object]] = []
    reply = '<think>\nThe user wants budgets.\n</think>\n\n{"search_list": "budget"}'
    client = _capturing_client(captured, reply=reply)
    try:
        assert await client.generate("hello", json_output=True) == '{"search_list": "budget"}'
    finally:
        await client.close()

    other = _capturing_client(captured, reply=reply, model="my-custom-model")
    try:
        assert await other.generate("hello") == reply
    finally:
        await other.close()


@pytest.mark.asyncio
async def test_malformed_body_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})
        return httpx.Response(200, json={"error": "model not loaded"})

    transport = httpx.MockTransport(handler)
    client = OllamaLLMClient(http_client=httpx.AsyncClient(transport=transport))
    try:
        assert await client.generate("hello") is None
        assert client._available is None
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_availability_caching():
    """Success is cached; failure resets so next call retries."""
    call_count = 0

    def counting_handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        if request.url.path == "/api/tags":
            call_count += 1
            return httpx.Response(200, json={"models": []})
        if request.url.path == "/api/generate":
            return httpx.Response(200, json={"response": "ok"})
        return httpx.Response(404)

    transport = httpx.MockTransport(counting_handler)
    client = OllamaLLMClient(http_client=httpx.AsyncClient(transport=transport))
    try:
        assert await client.is_available() is True
        assert call_count == 1

        # Second call uses cache
        assert await client.is_available() is True
        assert call_count == 1

        client._available = None
        assert await client.is_available() is True
        assert call_count == 2
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_close_cleans_up():
    transport = httpx.MockTransport(_default_handler)
    client = OllamaLLMClient(http_client=httpx.AsyncClient(transport=transport))
    assert client._http is not None
    await client.close()
    assert client._http is None


def test_family_from_model():
    assert OllamaLLMClient(model="qwen3:8b").family is ModelFamily.OPEN_WEIGHTS
    assert OllamaLLMClient(model="my-custom-model").family is ModelFamily.OTHER


def test_protocol_conformance():
    assert isinstance(OllamaLLMClient(), LLMProvider)
