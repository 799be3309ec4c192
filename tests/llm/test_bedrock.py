"""Tests for the Bedrock LLM client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from outline_search.llm.bedrock import BedrockLLMClient
from outline_search.llm.provider import LLMProvider, ModelFamily

CLAUDE_MODEL = "us.anthropic.claude-haiku-4-5-20251001-v1:0"


@pytest.fixture
def mock_converse_response():
    """Create a mock Bedrock Converse response."""
    content_block = MagicMock()
    content_block.value = "Hello from Bedrock"
    message = MagicMock()
    message.content = [content_block]
    output = MagicMock()
    output.value = message
    response = MagicMock()
    response.output = output
    return response


@pytest.fixture
def mock_bedrock_client(mock_converse_response):
    """Patch _get_client and return the mock client."""
    pytest.importorskip("aws_sdk_bedrock_runtime")
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        client = MagicMock()
        client.converse = AsyncMock(return_value=mock_converse_response)
        mock_get.return_value = client
        yield client


@pytest.mark.asyncio
async def test_generate_success(mock_bedrock_client):
    """Successful generate returns text and sets available."""
    llm = BedrockLLMClient()
    result = await llm.generate("test prompt")
    assert result == "Hello from Bedrock"
    assert llm._available is True


@pytest.mark.asyncio
async def test_generate_with_system_prompt(mock_bedrock_client):
    """System prompt is passed through to the Converse API."""
    llm = BedrockLLMClient()
    await llm.generate("test prompt", system="You are helpful")
    converse_input = mock_bedrock_client.converse.call_args[0][0]
    assert converse_input.system is not None
    assert len(converse_input.system) == 1
    assert converse_input.system[0].value == "You are helpful"


@pytest.mark.asyncio
async def test_generate_without_system_prompt(mock_bedrock_client):
    """No system field when system is None."""
    llm = BedrockLLMClient()
    await llm.generate("test prompt")
    converse_input = mock_bedrock_client.converse.call_args[0][0]
    assert converse_input.system is None


@pytest.mark.asyncio
async def test_json_output_prefills_for_claude(mock_bedrock_client, mock_converse_response):
    mock_converse_response.output.value.content[0].value = '"ids": ["a"]}'
    llm = BedrockLLMClient(model=CLAUDE_MODEL)
    result = await llm.generate("test prompt", json_output=True)

    converse_input = mock_bedrock_client.converse.call_args[0][0]
    assert converse_input.messages[-1].role == "assistant"
    assert converse_input.messages[-1].content[0].value == "{"
    assert result == '{"ids": ["a"]}'


@pytest.mark.asyncio
async def test_no_prefill_for_open_weights(mock_bedrock_client):
    llm = BedrockLLMClient(model="meta.llama3-70b-instruct-v1:0")
    assert llm.family is ModelFamily.OPEN_WEIGHTS
    await llm.generate("test prompt", json_output=True)
    converse_input = mock_bedrock_client.converse.call_args[0][0]
    assert len(converse_input.messages) == 1


@pytest.mark.asyncio
async def test_generate_failure_returns_none():
    """Generate returns None and clears availability on failure."""
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        client = MagicMock()
        client.converse = AsyncMock(side_effect=Exception("AWS error"))
        mock_get.return_value = client

        llm = BedrockLLMClient()
        llm._available = True
        result = await llm.generate("test")
        assert result is None
        assert llm._available is None


@pytest.mark.asyncio
async def test_generate_returns_none_when_client_none():
    """Generate returns None when SDK is not installed."""
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        mock_get.return_value = None

        llm = BedrockLLMClient()
        result = await llm.generate("test")
        assert result is None


@pytest.mark.asyncio
async def test_is_available_caches_success(mock_bedrock_client):
    """After successful generate, is_available returns True."""
    llm = BedrockLLMClient()
    await llm.generate("test")
    assert await llm.is_available() is True


@pytest.mark.asyncio
async def test_is_available_true_with_aws_key():
    """is_available returns True when AWS credentials are set."""
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        mock_get.return_value = MagicMock()
        with patch.dict("os.environ", {"AWS_ACCESS_KEY_ID": "AKIA_TEST"}):
            llm = BedrockLLMClient()
            assert await llm.is_available() is True


@pytest.mark.asyncio
async def test_is_available_false_without_aws_key():
    """is_available returns False when no AWS credentials set."""
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        mock_get.return_value = MagicMock()
        with patch.dict("os.environ", {}, clear=True):
            llm = BedrockLLMClient()
            assert await llm.is_available() is False


@pytest.mark.asyncio
async def test_is_available_false_when_sdk_missing():
    """is_available returns False when SDK is not importable."""
    with patch("outline_search.llm.bedrock.BedrockLLMClient._get_client") as mock_get:
        mock_get.return_value = None

        llm = BedrockLLMClient()
        assert await llm.is_available() is False


@pytest.mark.asyncio
async def test_close_is_noop():
    llm = BedrockLLMClient()
    await llm.close()


def test_protocol_conformance():
    """BedrockLLMClient satisfies LLMProvider protocol."""
    assert isinstance(BedrockLLMClient(), LLMProvider)
