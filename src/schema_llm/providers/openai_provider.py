"""
OpenAI Provider Implementation.

Uses the official OpenAI Python SDK (``AsyncOpenAI``) for the network
exchange.  The SDK's own retries are disabled; the completion service owns
retry policy.  ``call`` returns the raw chat-completion JSON and
``extract_text`` unwraps either the message content or, in function-call
mode, the tool call arguments.
"""

from enum import Enum
from typing import Any, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    FUNCTION_NAME,
    BaseLLMProvider,
    RateLimit,
    chat_function_tool,
    chat_messages,
    extract_chat_completion_text,
)
from ..errors import HttpStatusError, TransportError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1"


class OpenAIModels(str, Enum):
    GPT3_5_TURBO = "gpt-3.5-turbo"
    GPT4 = "gpt-4"
    GPT4_TURBO = "gpt-4-turbo-preview"
    GPT4O = "gpt-4o"


# https://platform.openai.com/docs/models
_MAX_TOKENS = {
    OpenAIModels.GPT3_5_TURBO: 4_096,
    OpenAIModels.GPT4: 8_192,
    OpenAIModels.GPT4_TURBO: 4_096,
    OpenAIModels.GPT4O: 4_096,
}

# https://platform.openai.com/account/limits
_RATE_LIMITS = {
    OpenAIModels.GPT3_5_TURBO: RateLimit(rpm=10_000, tpm=2_000_000),
    OpenAIModels.GPT4: RateLimit(rpm=10_000, tpm=300_000),
    OpenAIModels.GPT4_TURBO: RateLimit(rpm=10_000, tpm=800_000),
    OpenAIModels.GPT4O: RateLimit(rpm=10_000, tpm=2_000_000),
}

# Models accepting response_format={"type": "json_object"}
_JSON_MODE_MODELS = {
    OpenAIModels.GPT3_5_TURBO,
    OpenAIModels.GPT4_TURBO,
    OpenAIModels.GPT4O,
}


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI chat completions adapter.
    """

    vendor = "openai"

    def __init__(
        self,
        model: OpenAIModels = OpenAIModels.GPT4O,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        base_url: str = OPENAI_API_URL,
    ):
        super().__init__(OpenAIModels(model), transport=transport, timeout=timeout)
        self._base_url = base_url

    def identifier(self) -> str:
        return self.model.value

    def default_max_tokens(self) -> int:
        return _MAX_TOKENS[self.model]

    def endpoint(self) -> str:
        return f"{self._base_url.rstrip('/')}/chat/completions"

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
        if function_call:
            body["tools"] = [chat_function_tool(json_schema)]
            body["tool_choice"] = {"type": "function", "function": {"name": FUNCTION_NAME}}
        elif self.model in _JSON_MODE_MODELS:
            body["response_format"] = {"type": "json_object"}
        return body

    def _client(self, api_key: str) -> AsyncOpenAI:
        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "base_url": self._base_url,
            "timeout": self._timeout,
            "max_retries": 0,
        }
        if self._transport is not None:
            kwargs["http_client"] = httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout
            )
        return AsyncOpenAI(**kwargs)

    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        client = self._client(api_key)
        try:
            completion = await client.chat.completions.create(**body)
        except APITimeoutError as e:
            raise TransportError(f"[{self.get_provider_name()}] Request timed out: {e}") from e
        except APIConnectionError as e:
            raise TransportError(f"[{self.get_provider_name()}] Request failed: {e}") from e
        except APIStatusError as e:
            raise HttpStatusError(e.status_code, e.response.text, self.get_provider_name()) from e
        finally:
            await client.close()

        raw_response = completion.model_dump_json()
        if debug:
            logger.info("[debug][%s] Received response: %s", self.get_provider_name(), raw_response)
        return raw_response

    def extract_text(self, raw_response: str, function_call: bool) -> str:
        response = self._load_json_body(raw_response)
        return extract_chat_completion_text(response, function_call, raw_response)

    def rate_limit(self) -> RateLimit:
        return _RATE_LIMITS[self.model]
