"""
Base classes for LLM provider abstraction.

This module defines the interface that all vendor adapters must implement,
ensuring consistent behavior across different vendors.  An adapter is bound
to exactly one Model Identity at construction time and holds no other state
apart from transport settings, so endpoint, default max tokens and rate limit
are pure functions of that identity.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from ..errors import (
    ExtractionError,
    HttpStatusError,
    MalformedStreamChunk,
    TransportError,
)
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 120.0

# Name of the single tool offered to the model in function-call mode
FUNCTION_NAME = "respond_with_json"

BASE_INSTRUCTIONS = (
    "You are a computer function. You are expected to perform the following tasks: "
    "Step 1: Review and understand the 'instructions' from the *Instructions* section. "
    "Step 2: Package the answer into a JSON object that conforms to the "
    "'Output Json schema' provided. "
    "Do not return any text other than the JSON object. "
    "Do not wrap the JSON object in markdown code fences. "
    "Do not include any explanation, preamble or closing remarks."
)

BASE_INSTRUCTIONS_FUNCTION_CALL = (
    "You are a computer function. You are expected to perform the following tasks: "
    "Step 1: Review and understand the 'instructions' from the *Instructions* section. "
    f"Step 2: Call the '{FUNCTION_NAME}' function with arguments that conform to the "
    "'Output Json schema' provided. "
    "Do not answer with free text."
)


@dataclass(frozen=True)
class RateLimit:
    """
    Static capacity of a Model Identity.

    Attributes:
        rpm: Requests per minute
        tpm: Tokens per minute
    """
    rpm: int
    tpm: int

    def __post_init__(self):
        """Reject non-positive limits."""
        if self.rpm <= 0 or self.tpm <= 0:
            raise ValueError(f"Rate limits must be positive, got rpm={self.rpm} tpm={self.tpm}")


class BaseLLMProvider(ABC):
    """
    Abstract base class for all vendor adapters.

    All adapters (Google, OpenAI, Anthropic, Mistral) must inherit from this
    class and implement its abstract methods.

    The request body for every adapter embeds three independent parts in this
    fixed order: base instructions, the serialized output schema, and the
    caller's instructions.  The three parts are never concatenated into one
    string.

    Retry logic is handled by the service layer, not here.  Adapters raise
    ``TransportError``, ``HttpStatusError`` or ``MalformedStreamChunk`` and
    let the service decide.
    """

    #: Vendor label used for routing, logging and API key lookup
    vendor: str = ""

    def __init__(
        self,
        model: Enum,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Args:
            model: The Model Identity this adapter serves.
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
            timeout: Per-request network timeout in seconds.
        """
        self._model = model
        self._transport = transport
        self._timeout = timeout

    @property
    def model(self) -> Enum:
        return self._model

    @property
    def model_key(self) -> str:
        """Stable key for the Model Identity, e.g. ``google:gemini-pro-vertex``."""
        return f"{self.vendor}:{self._model.value}"

    @abstractmethod
    def identifier(self) -> str:
        """Return the vendor wire name of the model (e.g. ``gemini-pro``)."""

    @abstractmethod
    def default_max_tokens(self) -> int:
        """Return the max-tokens ceiling used when the caller does not override it."""

    @abstractmethod
    def endpoint(self) -> str:
        """
        Return the URL requests are posted to.

        Raises:
            ConfigurationError: If a required environment value is missing
        """

    @abstractmethod
    def build_body(
        self,
        instructions: str,
        json_schema: dict[str, Any],
        function_call: bool,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        """
        Build the vendor request body.

        Must be deterministic: identical inputs give identical output.
        """

    @abstractmethod
    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        """
        Perform the network exchange and return the response text.

        For streaming vendors the returned text is the already reassembled
        model output; for single-response vendors it is the raw response body.

        Raises:
            TransportError: Connection failure or timeout
            HttpStatusError: Non-2xx status
            MalformedStreamChunk: Unparseable chunk or body framing
        """

    @abstractmethod
    def rate_limit(self) -> RateLimit:
        """Return the requests/tokens per minute capacity of the model."""

    def extract_text(self, raw_response: str, function_call: bool) -> str:
        """
        Turn the output of ``call`` into the candidate answer text.

        The default is the identity, for vendors whose ``call`` already
        produces final text.
        """
        return raw_response

    def get_provider_name(self) -> str:
        """Return a readable label, e.g. ``google_gemini-pro-vertex``."""
        return f"{self.vendor}_{self._model.value}"

    # ------------------------------------------------------------------
    # Shared helpers for subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def base_instructions(function_call: bool = False) -> str:
        return BASE_INSTRUCTIONS_FUNCTION_CALL if function_call else BASE_INSTRUCTIONS

    @staticmethod
    def schema_instructions(json_schema: dict[str, Any]) -> str:
        # sort_keys keeps the rendering byte-identical across calls
        schema_string = json.dumps(json_schema, sort_keys=True, separators=(",", ":"))
        return f"'Output Json schema': {schema_string}"

    @staticmethod
    def user_instructions(instructions: str) -> str:
        return f"*Instructions*: {instructions}"

    def headers(self, api_key: str) -> dict[str, str]:
        """HTTP headers for a request; bearer auth unless the vendor overrides."""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def _post_json(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        """POST ``body`` and return the response text of a single JSON response."""
        url = self.endpoint()
        try:
            async with self._http_client() as client:
                response = await client.post(url, headers=self.headers(api_key), json=body)
        except httpx.TimeoutException as e:
            raise TransportError(f"[{self.get_provider_name()}] Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"[{self.get_provider_name()}] Request failed: {e}") from e

        if debug:
            logger.info(
                "[debug][%s] Received response (HTTP %s): %s",
                self.get_provider_name(),
                response.status_code,
                response.text,
            )

        if not response.is_success:
            raise HttpStatusError(response.status_code, response.text, self.get_provider_name())
        return response.text

    def _load_json_body(self, raw_response: str) -> Any:
        try:
            return json.loads(raw_response)
        except json.JSONDecodeError as e:
            raise MalformedStreamChunk(raw_response, f"response body is not valid JSON: {e}") from e


# ----------------------------------------------------------------------
# Chat-completions wire format (shared by OpenAI and Mistral)
# ----------------------------------------------------------------------

def chat_messages(
    provider: BaseLLMProvider,
    instructions: str,
    json_schema: dict[str, Any],
    function_call: bool,
) -> list[dict[str, str]]:
    """The three ordered message entries of a chat-completions request."""
    return [
        {"role": "system", "content": provider.base_instructions(function_call)},
        {"role": "system", "content": provider.schema_instructions(json_schema)},
        {"role": "user", "content": provider.user_instructions(instructions)},
    ]


def chat_function_tool(json_schema: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": FUNCTION_NAME,
            "description": "Return the answer as arguments matching the output schema.",
            "parameters": json_schema,
        },
    }


def extract_chat_completion_text(response: Any, function_call: bool, raw_response: str) -> str:
    """
    Pull the answer out of a decoded chat-completions response.

    In function-call mode the first tool call's arguments are returned when
    present; otherwise the assistant message content.
    """
    try:
        message = response["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as e:
        raise ExtractionError(raw_response) from e

    if function_call:
        for tool_call in message.get("tool_calls") or []:
            arguments = (tool_call.get("function") or {}).get("arguments")
            if arguments:
                return arguments

    content = message.get("content")
    if not content:
        raise ExtractionError(raw_response)
    return content
