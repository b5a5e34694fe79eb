"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import asyncio
import json
from enum import Enum
from typing import Any

import httpx
import pytest

from schema_llm.providers.base import BaseLLMProvider, RateLimit
from schema_llm.services.completion_service import CompletionService
from schema_llm.services.rate_limiter import RateLimitRegistry

COLORS_SCHEMA = {
    "type": "object",
    "properties": {
        "colors": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["colors"],
}


class StubModels(str, Enum):
    STUB = "stub-model"


class StubProvider(BaseLLMProvider):
    """
    Adapter that replays scripted outcomes instead of calling a vendor.

    Each entry of ``outcomes`` is either a string returned by ``call`` or an
    exception raised by it.  The last entry repeats once the script runs out.
    """

    vendor = "stub"

    def __init__(self, outcomes: list, delay: float = 0.0, max_tokens: int = 100):
        super().__init__(StubModels.STUB)
        self.outcomes = list(outcomes)
        self.delay = delay
        self.max_tokens = max_tokens
        self.bodies: list[dict[str, Any]] = []
        self.attempts = 0
        self.cancelled = False

    def identifier(self) -> str:
        return "stub-model"

    def default_max_tokens(self) -> int:
        return self.max_tokens

    def endpoint(self) -> str:
        return "https://stub.invalid/v1/complete"

    def build_body(self, instructions, json_schema, function_call, max_tokens, temperature):
        return {
            "parts": [
                self.base_instructions(function_call),
                self.schema_instructions(json_schema),
                self.user_instructions(instructions),
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        self.attempts += 1
        self.bodies.append(body)
        index = min(self.attempts, len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def rate_limit(self) -> RateLimit:
        return RateLimit(rpm=1_000, tpm=1_000_000)


@pytest.fixture
def colors_schema():
    return dict(COLORS_SCHEMA)


@pytest.fixture
def stub_provider():
    """
    Fixture factory for a scripted adapter.

    Usage:
        provider = stub_provider(['{"colors": []}'])
    """
    return StubProvider


@pytest.fixture
def rate_limits():
    """A fresh rate-limit registry per test."""
    return RateLimitRegistry()


@pytest.fixture
def service(rate_limits):
    """Completion service with zero backoff so retry tests run instantly."""
    return CompletionService(
        rate_limits=rate_limits,
        max_attempts=3,
        initial_wait=0,
        max_wait=0,
        call_timeout=5.0,
    )


def gemini_chunk(text: str, role: str = "model") -> str:
    """One SSE line as streamed by Gemini."""
    payload = {"candidates": [{"content": {"role": role, "parts": [{"text": text}]}}]}
    return "data: " + json.dumps(payload)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


@pytest.fixture
def recording_transport():
    """
    Fixture factory for an httpx transport answering with ``handler``.

    Usage:
        transport = recording_transport(lambda request: httpx.Response(200, json={}))
    """
    return RecordingTransport


@pytest.fixture(name="gemini_chunk")
def gemini_chunk_fixture():
    """The ``gemini_chunk`` line builder, for test modules."""
    return gemini_chunk
