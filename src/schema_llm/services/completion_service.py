"""
Completion Service - Schema-valid JSON answers from any supported vendor.

This service wraps the vendor adapters and adds the logic that turns a
free-text-capable model into one that returns JSON conforming to a schema:
rate-limit accounting, bounded retries with exponential backoff, answer
extraction and schema validation.

Usage:
    from schema_llm.providers import GoogleModels
    from schema_llm.services import CompletionService

    service = CompletionService()
    colors = await service.get_answer(
        GoogleModels.GEMINI_PRO,
        "list two colors",
        {
            "type": "object",
            "properties": {"colors": {"type": "array", "items": {"type": "string"}}},
            "required": ["colors"],
        },
    )
    print(colors)  # {"colors": ["red", "blue"]}
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import EngineSettings
from ..errors import LLMError, RetriesExhausted, TransportError
from ..providers.base import DEFAULT_REQUEST_TIMEOUT, BaseLLMProvider
from ..providers.factory import ModelIdentity, ProviderFactory
from ..utils.logging_config import get_logger
from ._shared import correction_note, should_retry_exception
from .json_extractor import check_schema, parse_structured_output
from .rate_limiter import RateLimitRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompletionRequest:
    """
    Everything needed for one structured completion.

    Attributes:
        model: Model Identity, or an already constructed adapter
        instructions: Natural-language task for the model
        json_schema: JSON Schema the answer must satisfy
        api_key: Vendor API key; looked up from configuration when ``None``
        function_call: Ask the model to answer through a function/tool call
        max_tokens: Overrides the adapter's ``default_max_tokens()``
        temperature: Sampling temperature in the vendor's native range
        debug: Log every raw response/chunk (never changes the result)
    """
    model: Union[ModelIdentity, BaseLLMProvider]
    instructions: str
    json_schema: dict[str, Any]
    api_key: Optional[str] = None
    function_call: bool = False
    max_tokens: Optional[int] = None
    temperature: float = 0.0
    debug: bool = False


@dataclass
class CompletionResult:
    """
    Result of a successful structured completion.

    Attributes:
        output: The parsed, schema-valid JSON value
        provider: Name of the adapter that produced it
        attempts: Number of attempts made, including the successful one
        raw_text: Candidate text the output was extracted from
        latency_ms: Wall time across all attempts in milliseconds
    """
    output: Any
    provider: str
    attempts: int
    raw_text: str
    latency_ms: Optional[float] = None

    def __repr__(self) -> str:
        latency_str = (
            f"{self.latency_ms:.2f}ms" if self.latency_ms is not None else "unknown latency"
        )
        return (
            f"CompletionResult(provider={self.provider}, "
            f"attempts={self.attempts}, {latency_str})"
        )


class CompletionService:
    """
    Core service producing schema-valid JSON from vendor adapters.

    Per attempt: build the body, charge the rate-limit budget, call the
    vendor (bounded by ``call_timeout``), extract the text and validate it.

    Retries on:
    - TransportError (connection failures, timeouts)
    - HttpStatusError with 408, 429 or 5xx
    - MalformedStreamChunk
    - ExtractionError / SchemaMismatchError (the whole call is re-issued,
      with a corrective note appended to the instructions)

    Does NOT retry on:
    - HttpStatusError with other 4xx statuses (auth, invalid request)
    - ConfigurationError

    When every attempt fails, ``RetriesExhausted`` is raised carrying the
    attempt count and the last failure.
    """

    def __init__(
        self,
        factory: Optional[ProviderFactory] = None,
        rate_limits: Optional[RateLimitRegistry] = None,
        max_attempts: Optional[int] = None,
        initial_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
        call_timeout: Optional[float] = None,
        tighten_instructions: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialize the completion service.

        Args:
            factory: Resolves Model Identities to adapters and API keys
            rate_limits: Shared rate-limit registry (a private one by default)
            max_attempts: Retry budget, the maximum number of full attempts
            initial_wait: Initial backoff in seconds
            max_wait: Maximum backoff in seconds between attempts
            call_timeout: Timeout in seconds for a single vendor call
            tighten_instructions: Append a corrective note after a bad answer
            transport: Optional httpx transport handed to created adapters
            settings: Defaults for any of the numeric arguments left as None
        """
        settings = settings or EngineSettings.from_env()
        self.factory = factory or ProviderFactory()
        self.rate_limits = rate_limits or RateLimitRegistry()
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_attempts
        self.initial_wait = initial_wait if initial_wait is not None else settings.initial_wait
        self.max_wait = max_wait if max_wait is not None else settings.max_wait
        self.call_timeout = call_timeout if call_timeout is not None else settings.call_timeout
        self.tighten_instructions = tighten_instructions
        self.transport = transport

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def resolve_provider(self, model: Union[ModelIdentity, BaseLLMProvider]) -> BaseLLMProvider:
        if isinstance(model, BaseLLMProvider):
            return model
        return self.factory.create(
            model,
            transport=self.transport,
            timeout=min(self.call_timeout, DEFAULT_REQUEST_TIMEOUT),
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """
        Run a structured completion with retries.

        Returns:
            CompletionResult whose ``output`` satisfies ``request.json_schema``

        Raises:
            RetriesExhausted: Every attempt failed with a retryable error
            HttpStatusError: Fatal HTTP status (e.g. 400, 401, 403)
            ConfigurationError: Missing API key / environment value, bad schema
        """
        provider = self.resolve_provider(request.model)
        check_schema(request.json_schema)
        api_key = request.api_key or self.factory.api_key_for(provider)
        max_tokens = request.max_tokens or provider.default_max_tokens()

        start_time = time.time()
        last_failure: Optional[BaseException] = None
        result: Optional[CompletionResult] = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_wait,
                min=self.initial_wait,
                max=self.max_wait,
            ),
            retry=retry_if_exception(should_retry_exception),
            before_sleep=self._log_retry(provider),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    try:
                        output, raw_text = await self._attempt(
                            provider, request, api_key, max_tokens, last_failure
                        )
                    except LLMError as e:
                        last_failure = e
                        raise
                    result = CompletionResult(
                        output=output,
                        provider=provider.get_provider_name(),
                        attempts=attempt_number,
                        raw_text=raw_text,
                    )
        except RetryError as e:
            cause = e.last_attempt.exception()
            attempts = e.last_attempt.attempt_number
            logger.error(
                "[%s] Structured completion failed after %d attempt(s): %s",
                provider.get_provider_name(),
                attempts,
                cause,
            )
            raise RetriesExhausted(attempts, cause) from cause

        result.latency_ms = (time.time() - start_time) * 1000
        return result

    async def _attempt(
        self,
        provider: BaseLLMProvider,
        request: CompletionRequest,
        api_key: str,
        max_tokens: int,
        last_failure: Optional[BaseException],
    ) -> tuple[Any, str]:
        instructions = request.instructions
        if self.tighten_instructions and last_failure is not None:
            note = correction_note(last_failure)
            if note:
                instructions = f"{instructions}\n\n{note}"

        body = provider.build_body(
            instructions,
            request.json_schema,
            request.function_call,
            max_tokens,
            request.temperature,
        )

        # Charged per attempt, immediately before dispatch
        await self.rate_limits.acquire(provider.model_key, provider.rate_limit(), max_tokens)

        try:
            raw_response = await asyncio.wait_for(
                provider.call(api_key, body, request.debug),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"[{provider.get_provider_name()}] Call timed out after {self.call_timeout}s"
            ) from e

        text = provider.extract_text(raw_response, request.function_call)
        return parse_structured_output(text, request.json_schema), text

    @staticmethod
    def _log_retry(provider: BaseLLMProvider):
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "[%s] Attempt %d failed (%s: %s); retrying in %.1fs",
                provider.get_provider_name(),
                retry_state.attempt_number,
                type(exc).__name__,
                exc,
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

        return before_sleep

    async def get_answer(
        self,
        model: Union[ModelIdentity, BaseLLMProvider],
        instructions: str,
        json_schema: dict[str, Any],
        api_key: Optional[str] = None,
        function_call: bool = False,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
        debug: bool = False,
    ) -> Any:
        """
        Convenience wrapper returning only the parsed output.

        Example:
            >>> answer = await service.get_answer(
            ...     OpenAIModels.GPT4O,
            ...     "What is 2+2?",
            ...     {"type": "object", "properties": {"result": {"type": "integer"}}},
            ... )
            >>> answer
            {'result': 4}
        """
        result = await self.complete(
            CompletionRequest(
                model=model,
                instructions=instructions,
                json_schema=json_schema,
                api_key=api_key,
                function_call=function_call,
                max_tokens=max_tokens,
                temperature=temperature,
                debug=debug,
            )
        )
        return result.output

    async def complete_batch(self, requests: list[CompletionRequest]) -> list[CompletionResult]:
        """
        Run several requests concurrently, sharing this service's rate limits.

        Results are returned in request order.  The first failure propagates.
        """
        return await asyncio.gather(*(self.complete(request) for request in requests))
