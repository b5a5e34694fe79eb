"""
Google Gemini Provider Implementation.

Supports two deployments of the same model:

- ``GoogleModels.GEMINI_PRO``: the public Gemini API (generativelanguage.googleapis.com)
- ``GoogleModels.GEMINI_PRO_VERTEX``: Vertex AI, routed by ``GOOGLE_REGION``
  (default ``us-central1``) and ``GOOGLE_PROJECT_ID`` (required)

Gemini streams its answer as server-sent events.  Each ``data: {...}`` line
is one complete JSON object; the text parts authored by the ``model`` role
are concatenated in arrival order and returned once the stream ends.

Usage:
    from schema_llm.providers.google_provider import GoogleProvider, GoogleModels

    provider = GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX)
    body = provider.build_body("list two colors", schema, False, 1024, 0.2)
    text = await provider.call(access_token, body)
"""

import json
import os
from enum import Enum
from typing import Any, Optional

import httpx

from .base import DEFAULT_REQUEST_TIMEOUT, BaseLLMProvider, RateLimit
from ..config import DEFAULT_GOOGLE_REGION, GOOGLE_PROJECT_ID_ENV, GOOGLE_REGION_ENV
from ..errors import ConfigurationError, HttpStatusError, MalformedStreamChunk, TransportError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "{model}:streamGenerateContent?alt=sse"
)
VERTEX_API_URL = (
    "https://{region}-aiplatform.googleapis.com/v1/projects/{project_id}/"
    "locations/{region}/publishers/google/models/{model}:streamGenerateContent?alt=sse"
)

SSE_DATA_PREFIX = "data:"
MODEL_ROLE = "model"


class GoogleModels(str, Enum):
    # Docs: https://cloud.google.com/vertex-ai/docs/generative-ai/model-reference/gemini
    GEMINI_PRO = "gemini-pro"
    GEMINI_PRO_VERTEX = "gemini-pro-vertex"


_WIRE_NAMES = {
    GoogleModels.GEMINI_PRO: "gemini-pro",
    GoogleModels.GEMINI_PRO_VERTEX: "gemini-pro",
}

_MAX_TOKENS = {
    GoogleModels.GEMINI_PRO: 32_000,
    GoogleModels.GEMINI_PRO_VERTEX: 32_000,
}


def parse_stream_line(line: str) -> Optional[dict[str, Any]]:
    """
    Decode one line of a Gemini SSE stream.

    Returns ``None`` for lines that carry no payload (blank separators,
    comments, non-data fields).

    Raises:
        MalformedStreamChunk: If a data line is not a JSON object
    """
    stripped = line.strip()
    if not stripped or stripped.startswith(":"):
        return None
    if stripped.startswith(SSE_DATA_PREFIX):
        payload = stripped[len(SSE_DATA_PREFIX):].strip()
    elif stripped.startswith("{"):
        # Un-prefixed JSON object, one per line
        payload = stripped
    else:
        # event:, id:, retry: fields carry nothing we need
        return None

    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedStreamChunk(line, f"invalid JSON: {e}") from e
    if not isinstance(chunk, dict):
        raise MalformedStreamChunk(line, "expected a JSON object")
    return chunk


def model_text_from_chunk(chunk: dict[str, Any], line: Optional[str] = None) -> str:
    """
    Concatenate the text parts of every candidate authored by the model role.

    Parts from any other role (user, tool, system) contribute nothing.

    Raises:
        HttpStatusError: The chunk is an in-stream error carrying a status code
        MalformedStreamChunk: The chunk is an error without a code, or does
            not have the candidates/content/parts shape
    """
    raw = line if line is not None else json.dumps(chunk)

    error = chunk.get("error")
    if error is not None:
        code = error.get("code") if isinstance(error, dict) else None
        if isinstance(code, int) and not isinstance(code, bool):
            raise HttpStatusError(code, json.dumps(error))
        raise MalformedStreamChunk(raw, "stream reported an error")

    candidates = chunk.get("candidates")
    if not isinstance(candidates, list):
        raise MalformedStreamChunk(raw, "'candidates' must be a list")

    pieces = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise MalformedStreamChunk(raw, "candidate must be an object")
        # A candidate stopped by a finish reason may carry no content
        content = candidate.get("content")
        if content is None:
            continue
        if not isinstance(content, dict):
            raise MalformedStreamChunk(raw, "'content' must be an object")
        parts = content.get("parts")
        if parts is None:
            parts = []
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise MalformedStreamChunk(raw, "'parts' must be a list of objects")
        if content.get("role") != MODEL_ROLE:
            continue
        for part in parts:
            text = part.get("text")
            if isinstance(text, str):
                pieces.append(text)
    return "".join(pieces)


class GoogleProvider(BaseLLMProvider):
    """
    Google Gemini adapter (public API and Vertex AI deployments).
    """

    vendor = "google"

    def __init__(
        self,
        model: GoogleModels = GoogleModels.GEMINI_PRO,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        super().__init__(GoogleModels(model), transport=transport, timeout=timeout)

    def identifier(self) -> str:
        return _WIRE_NAMES[self.model]

    def default_max_tokens(self) -> int:
        # https://cloud.google.com/vertex-ai/docs/generative-ai/learn/models
        return _MAX_TOKENS[self.model]

    def endpoint(self) -> str:
        if self.model is GoogleModels.GEMINI_PRO:
            return GEMINI_API_URL.format(model=self.identifier())

        region = os.getenv(GOOGLE_REGION_ENV) or DEFAULT_GOOGLE_REGION
        project_id = os.getenv(GOOGLE_PROJECT_ID_ENV)
        if not project_id:
            raise ConfigurationError(
                f"{GOOGLE_PROJECT_ID_ENV} must be set to call {self.get_provider_name()}"
            )
        return VERTEX_API_URL.format(
            region=region, project_id=project_id, model=self.identifier()
        )

    def headers(self, api_key: str) -> dict[str, str]:
        if self.model is GoogleModels.GEMINI_PRO:
            # The public Gemini API takes an API key, not an OAuth token
            return {"Content-Type": "application/json", "x-goog-api-key": api_key}
        return super().headers(api_key)

    def build_body(
        self,
        instructions: str,
        json_schema: dict[str, Any],
        function_call: bool,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        # max_tokens is not sent: default_max_tokens is the context window,
        # which is larger than the output limit the API accepts
        return {
            "contents": {
                "role": "user",
                "parts": [
                    {"text": self.base_instructions(function_call)},
                    {"text": self.schema_instructions(json_schema)},
                    {"text": self.user_instructions(instructions)},
                ],
            },
            "generationConfig": {
                "temperature": temperature,
            },
        }

    async def call(self, api_key: str, body: dict[str, Any], debug: bool = False) -> str:
        """
        Stream a Gemini answer and return the reassembled model text.

        Text accumulated by a failed or cancelled call is discarded with it;
        nothing is returned until the stream completes.
        """
        url = self.endpoint()
        streamed_response = []

        try:
            async with self._http_client() as client:
                async with client.stream(
                    "POST", url, headers=self.headers(api_key), json=body
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        raise HttpStatusError(
                            response.status_code, response.text, self.get_provider_name()
                        )

                    # aiter_lines buffers partial network reads until a full line arrives
                    async for line in response.aiter_lines():
                        if debug:
                            logger.info(
                                "[debug][%s] Received response chunk: %r",
                                self.get_provider_name(),
                                line,
                            )
                        chunk = parse_stream_line(line)
                        if chunk is None:
                            continue
                        streamed_response.append(model_text_from_chunk(chunk, line))
        except httpx.TimeoutException as e:
            raise TransportError(f"[{self.get_provider_name()}] Stream timed out: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"[{self.get_provider_name()}] Stream failed: {e}") from e

        return "".join(streamed_response)

    def rate_limit(self) -> RateLimit:
        # https://ai.google.dev/models/gemini
        # Google only publishes RPM; TPM is derived from it
        rpm = 60
        return RateLimit(rpm=rpm, tpm=rpm * self.default_max_tokens())
