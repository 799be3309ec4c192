"""LLM provider protocol for pluggable language model backends."""

from enum import StrEnum
from typing import Protocol, runtime_checkable

_OPEN_WEIGHT_MARKERS = (
    "llama",
    "qwen",
    "mistral",
    "mixtral",
    "gemma",
    "phi",
    "deepseek",
    "gpt-oss",
)


class ModelFamily(StrEnum):
    """Capability class of a model, resolved once per client."""

    CLAUDE = "claude"
    OPEN_WEIGHTS = "open_weights"
    OTHER = "other"


def resolve_model_family(model_id: str) -> ModelFamily:
    """Classify a model id, e.g. ``claude-haiku-4-5`` or ``qwen3:8b``."""
    lowered = model_id.lower()
    if "claude" in lowered:
        return ModelFamily.CLAUDE
    if any(marker in lowered for marker in _OPEN_WEIGHT_MARKERS):
        return ModelFamily.OPEN_WEIGHTS
    return ModelFamily.OTHER


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for language model providers with graceful degradation."""

    family: ModelFamily

    async def is_available(self) -> bool:
        """Check if the LLM backend is reachable."""
        ...

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        """Generate text from a prompt. Returns None if unavailable.

        With ``json_output`` the backend is steered towards a bare JSON object
        where the model family supports it.
        """
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
