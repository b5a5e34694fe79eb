"""
Mistral Provider Implementation.

Mistral speaks the chat-completions wire format over plain HTTPS with bearer
authentication; requests are sent with httpx.
"""

from enum import Enum
from typing import Any, Optional

import httpx

from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    BaseLLMProvider,
    RateLimit,
    chat_function_tool,
    chat_messages,
    extract_chat_completion_text,
)

MISTRAL_API_URL = "https://api.mistral.ai/v1/chat/completions"


class MistralModels(str, Enum):
    MISTRAL_TINY = "mistral-tiny"
    MISTRAL_SMALL = "mistral-small"
    MISTRAL_MEDIUM = "mistral-medium"
    MISTRAL_LARGE = "mistral-large-latest"


# https://docs.mistral.ai/platform/endpoints/
_MAX_TOKENS = {
    MistralModels.MISTRAL_TINY: 32_000,
    MistralModels.MISTRAL_SMALL: 32_000,
    MistralModels.MISTRAL_MEDIUM: 32_000,
    MistralModels.MISTRAL_LARGE: 32_000,
}

# Function calling is only offered on the larger models
_FUNCTION_CALL_MODELS = {MistralModels.MISTRAL_SMALL, MistralModels.MISTRAL_LARGE}


class MistralProvider(BaseLLMProvider):
    """
    Mistral chat completions adapter.
    """

    vendor = "mistral"

    def __init__(
        self,
        model: MistralModels = MistralModels.MISTRAL_SMALL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        super().__init__(MistralModels(model), transport=transport, timeout=timeout)

    def identifier(self) -> str:
        return self.model.value

    def default_max_tokens(self) -> int:
        return _MAX_TOKENS[self.model]

    def endpoint(self) -> str:
        return MISTRAL_API_URL

    def build_body(
        self,
        instructions: str,
        json_schema: dict[str, Any],
        function_call: bool,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.identifier(),
            "messages": chat_messages(self, instructions, json_schema, function_call),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if function_call and self.model in _FUNCTION_CALL_MODELS:
            body["tools"] = [chat_function_tool(json_schema)]
            body["tool_choice"] = "any"
        else:
            body["response_format"] = {"type": "json_object"}
        return body

    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        return await self._post_json(api_key, body, debug)

    def extract_text(self, raw_response: str, function_call: bool) -> str:
        response = self._load_json_body(raw_response)
        return extract_chat_completion_text(response, function_call, raw_response)

    def rate_limit(self) -> RateLimit:
        # https://docs.mistral.ai/platform/pricing#rate-limits
        # 5 requests per second and 2M tokens per minute on every model
        return RateLimit(rpm=5 * 60, tpm=2_000_000)
