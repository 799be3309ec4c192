"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_db_path() -> Path:
    """Return the outline database file path from OUTLINE_DB_PATH."""
    raw = os.environ.get("OUTLINE_DB_PATH", "~/.local/share/outline_search/outline.db")
    return Path(raw).expanduser()


def get_log_level() -> str:
    """Return the logging level from OUTLINE_LOG_LEVEL."""
    return os.environ.get("OUTLINE_LOG_LEVEL", "WARNING")


def get_llm_provider() -> str:
    """Return the language-model provider name from OUTLINE_LLM_PROVIDER."""
    return os.environ.get("OUTLINE_LLM_PROVIDER", "anthropic").lower()


def get_ollama_url() -> str:
    """Return the Ollama API URL from OUTLINE_OLLAMA_URL."""
    return os.environ.get("OUTLINE_OLLAMA_URL", "http://localhost:11434")


def get_llm_model() -> str:
    """Return the Ollama model name from OUTLINE_LLM_MODEL."""
    return os.environ.get("OUTLINE_LLM_MODEL", "qwen3:8b")


def get_llm_timeout() -> float:
    """Return the Ollama generation timeout in seconds from OUTLINE_LLM_TIMEOUT."""
    return float(os.environ.get("OUTLINE_LLM_TIMEOUT", "120.0"))


def get_anthropic_model() -> str:
    """Return the Anthropic model ID from OUTLINE_ANTHROPIC_MODEL."""
    return os.environ.get("OUTLINE_ANTHROPIC_MODEL", "claude-haiku-4-5")


def get_anthropic_timeout() -> float:
    """Return the Anthropic request timeout in seconds from OUTLINE_ANTHROPIC_TIMEOUT."""
    return float(os.environ.get("OUTLINE_ANTHROPIC_TIMEOUT", "60.0"))


def get_anthropic_max_tokens() -> int:
    """Return the Anthropic reply token cap from OUTLINE_ANTHROPIC_MAX_TOKENS."""
    return int(os.environ.get("OUTLINE_ANTHROPIC_MAX_TOKENS", "4096"))


def get_bedrock_model() -> str:
    """Return the Bedrock model ID from OUTLINE_BEDROCK_MODEL."""
    return os.environ.get("OUTLINE_BEDROCK_MODEL", "us.anthropic.claude-haiku-4-5-20251001-v1:0")


def get_bedrock_region() -> str:
    """Return the AWS region for Bedrock from OUTLINE_BEDROCK_REGION."""
    return os.environ.get("OUTLINE_BEDROCK_REGION", "us-east-1")


def get_max_sessions() -> int:
    """Return how many search sessions the server keeps from OUTLINE_MAX_SESSIONS."""
    return int(os.environ.get("OUTLINE_MAX_SESSIONS", "32"))


def get_page_size() -> int:
    """Return the default number of results shown per page from OUTLINE_PAGE_SIZE."""
    return int(os.environ.get("OUTLINE_PAGE_SIZE", "10"))
