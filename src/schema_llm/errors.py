"""
Exception hierarchy for Schema LLM.

Every failure raised by a provider adapter or by the completion service is an
``LLMError``.  The completion service decides what to retry by looking at the
concrete type (and, for HTTP failures, the status code):

- Retryable: ``TransportError``, ``HttpStatusError`` with 408/429/5xx,
  ``MalformedStreamChunk``, ``ExtractionError``, ``SchemaMismatchError``
- Fatal: ``HttpStatusError`` with any other status, ``ConfigurationError``

When the retry budget runs out the service raises ``RetriesExhausted`` which
wraps the last failure.
"""

from typing import Any, Optional

# Body snippets longer than this are truncated in exception messages
MAX_BODY_SNIPPET = 500


def _snippet(text: str, limit: int = MAX_BODY_SNIPPET) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} more chars]"


class LLMError(RuntimeError):
    """Base error for schema_llm."""


class ConfigurationError(LLMError):
    """A required configuration value (env var, API key) is missing or invalid."""


class TransportError(LLMError):
    """Connection failure or timeout while talking to a vendor."""


class HttpStatusError(LLMError):
    """The vendor answered with a non-2xx HTTP status."""

    RETRYABLE_STATUS_CODES = frozenset({408, 429})

    def __init__(self, status_code: int, body: str, provider: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.provider = provider
        prefix = f"[{provider}] " if provider else ""
        super().__init__(
            f"{prefix}HTTP {status_code} from vendor. Response body: {_snippet(body)!r}"
        )

    @property
    def is_retryable(self) -> bool:
        return (
            self.status_code in self.RETRYABLE_STATUS_CODES
            or 500 <= self.status_code <= 599
        )


class MalformedStreamChunk(LLMError):
    """A streamed chunk could not be decoded according to the vendor framing."""

    def __init__(self, chunk: str, reason: str):
        self.chunk = chunk
        self.reason = reason
        super().__init__(f"Malformed stream chunk ({reason}): {_snippet(chunk)!r}")


class ExtractionError(LLMError):
    """No JSON value could be located in the model's answer."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"No JSON value found in model output: {_snippet(text)!r}")


class SchemaMismatchError(LLMError):
    """JSON was found in the model's answer but it does not satisfy the schema."""

    def __init__(self, message: str, instance: Any = None):
        self.instance = instance
        super().__init__(f"JSON schema validation failed: {message}")


class RetriesExhausted(LLMError):
    """All attempts allowed by the retry budget failed."""

    def __init__(self, attempts: int, last_cause: BaseException):
        self.attempts = attempts
        self.last_cause = last_cause
        super().__init__(
            f"Giving up after {attempts} attempt(s). "
            f"Last failure ({type(last_cause).__name__}): {last_cause}"
        )
