"""
Anthropic Provider Implementation.

Calls the Messages API with httpx.  The three prompt parts are sent as three
text blocks of a single user message.  In function-call mode the output
schema is offered as the ``input_schema`` of a forced tool and
``extract_text`` serializes the tool input.
"""

import json
from enum import Enum
from typing import Any, Optional

import httpx

from .base import (
    DEFAULT_REQUEST_TIMEOUT,
    FUNCTION_NAME,
    BaseLLMProvider,
    RateLimit,
)
from ..errors import ExtractionError

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicModels(str, Enum):
    CLAUDE_3_HAIKU = "claude-3-haiku"
    CLAUDE_3_SONNET = "claude-3-sonnet"
    CLAUDE_3_OPUS = "claude-3-opus"


_WIRE_NAMES = {
    AnthropicModels.CLAUDE_3_HAIKU: "claude-3-haiku-20240307",
    AnthropicModels.CLAUDE_3_SONNET: "claude-3-sonnet-20240229",
    AnthropicModels.CLAUDE_3_OPUS: "claude-3-opus-20240229",
}

# https://docs.anthropic.com/claude/docs/models-overview
_MAX_TOKENS = {
    AnthropicModels.CLAUDE_3_HAIKU: 4_096,
    AnthropicModels.CLAUDE_3_SONNET: 4_096,
    AnthropicModels.CLAUDE_3_OPUS: 4_096,
}

# https://docs.anthropic.com/claude/reference/rate-limits (build tier 1)
_RATE_LIMITS = {
    AnthropicModels.CLAUDE_3_HAIKU: RateLimit(rpm=50, tpm=50_000),
    AnthropicModels.CLAUDE_3_SONNET: RateLimit(rpm=50, tpm=40_000),
    AnthropicModels.CLAUDE_3_OPUS: RateLimit(rpm=50, tpm=20_000),
}


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic Messages API adapter.
    """

    vendor = "anthropic"

    def __init__(
        self,
        model: AnthropicModels = AnthropicModels.CLAUDE_3_HAIKU,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        super().__init__(AnthropicModels(model), transport=transport, timeout=timeout)

    def identifier(self) -> str:
        return _WIRE_NAMES[self.model]

    def default_max_tokens(self) -> int:
        return _MAX_TOKENS[self.model]

    def endpoint(self) -> str:
        return ANTHROPIC_API_URL

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
        }

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
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.base_instructions(function_call)},
                        {"type": "text", "text": self.schema_instructions(json_schema)},
                        {"type": "text", "text": self.user_instructions(instructions)},
                    ],
                }
            ],
        }
        if function_call:
            body["tools"] = [
                {
                    "name": FUNCTION_NAME,
                    "description": "Return the answer as input matching the output schema.",
                    "input_schema": json_schema,
                }
            ]
            body["tool_choice"] = {"type": "tool", "name": FUNCTION_NAME}
        return body

    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        return await self._post_json(api_key, body, debug)

    def extract_text(self, raw_response: str, function_call: bool) -> str:
        response = self._load_json_body(raw_response)
        if not isinstance(response, dict):
            raise ExtractionError(raw_response)
        blocks = response.get("content") or []
        if not isinstance(blocks, list):
            raise ExtractionError(raw_response)
        blocks = [block for block in blocks if isinstance(block, dict)]

        if function_call:
            for block in blocks:
                if block.get("type") == "tool_use" and "input" in block:
                    return json.dumps(block["input"])

        text = "".join(
            block.get("text", "") for block in blocks if block.get("type") == "text"
        )
        if not text:
            raise ExtractionError(raw_response)
        return text

    def rate_limit(self) -> RateLimit:
        return _RATE_LIMITS[self.model]
