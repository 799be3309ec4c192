"""LLM provider module."""

from outline_search.llm.anthropic import AnthropicLLMClient
from outline_search.llm.bedrock import BedrockLLMClient
from outline_search.llm.ollama import OllamaLLMClient
from outline_search.llm.provider import LLMProvider, ModelFamily, resolve_model_family

__all__ = [
    "AnthropicLLMClient",
    "BedrockLLMClient",
    "LLMProvider",
    "ModelFamily",
    "OllamaLLMClient",
    "resolve_model_family",
]
