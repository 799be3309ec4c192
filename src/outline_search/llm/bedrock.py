"""AWS Bedrock LLM client with graceful degradation."""

from __future__ import annotations

import logging
import os
from typing import Any

from outline_search.config import get_bedrock_model, get_bedrock_region
from outline_search.llm.provider import ModelFamily, resolve_model_family

logger = logging.getLogger(__name__)

_JSON_PREFILL = "{"


def _has_aws_credentials() -> bool:
    """Check if AWS credentials are configured in the environment."""
    return bool(os.environ.get("AWS_ACCESS_KEY_ID"))


class BedrockLLMClient:
    """Generates text via the AWS Bedrock Converse API."""

    def __init__(self, model: str | None = None) -> None:
        """Initialize with lazy client creation."""
        self._model = model or get_bedrock_model()
        self.family: ModelFamily = resolve_model_family(self._model)
        self._client: Any = None
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """Check availability. Only caches success, retries on failure."""
        if self._available is True:
            return True
        try:
            client = self._get_client()
            if client is None:
                return False
            if not _has_aws_credentials():
                logger.warning("AWS_ACCESS_KEY_ID not set, Bedrock LLM disabled")
                return False
            return True
        except Exception:
            return False

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        """Generate text from a prompt. Returns None if unavailable."""
        try:
            client = self._get_client()
            if client is None:
                return None

            from aws_sdk_bedrock_runtime.models import (
                ContentBlockText,
                ConverseInput,
                InferenceConfiguration,
                Message,
                SystemContentBlockText,
            )

            prefill = json_output and self.family is ModelFamily.CLAUDE
            messages = [Message(role="user", content=[ContentBlockText(value=prompt)])]
            if prefill:
                messages.append(
                    Message(role="assistant", content=[ContentBlockText(value=_JSON_PREFILL)])
                )

            converse_input = ConverseInput(
                model_id=self._model,
                messages=messages,
                inference_config=InferenceConfiguration(max_tokens=4096),
            )
            if system is not None:
                converse_input.system = [SystemContentBlockText(value=system)]

            response = await client.converse(converse_input)
            result: str = response.output.value.content[0].value
            self._available = True
            return _JSON_PREFILL + result if prefill else result
        except Exception:
            logger.warning("Bedrock generation failed", exc_info=True)
            self._available = None
            return None

    def _get_client(self) -> Any:
        """Lazily create the BedrockRuntimeClient. Returns None if SDK missing."""
        if self._client is None:
            try:
                from aws_sdk_bedrock_runtime.client import BedrockRuntimeClient
                from aws_sdk_bedrock_runtime.config import Config
                from smithy_aws_core.identity import EnvironmentCredentialsResolver

                config = Config(region=get_bedrock_region())
                resolver = EnvironmentCredentialsResolver()  # type: ignore[no-untyped-call]
                config.aws_credentials_identity_resolver = resolver
                self._client = BedrockRuntimeClient(config)
            except ImportError:
                logger.warning(
                    "aws-sdk-bedrock-runtime package not installed, Bedrock LLM disabled"
                )
                return None
        return self._client

    async def close(self) -> None:
        """No-op, the SDK client needs no explicit cleanup."""
