"""Retry classification shared by service-layer classes."""

from __future__ import annotations

from ..errors import (
    ConfigurationError,
    ExtractionError,
    HttpStatusError,
    MalformedStreamChunk,
    SchemaMismatchError,
    TransportError,
)

# Failures of the model's answer rather than of the network
ANSWER_ERRORS = (ExtractionError, SchemaMismatchError)

RETRYABLE_ERRORS = (
    TransportError,
    MalformedStreamChunk,
    TimeoutError,
    ConnectionError,
) + ANSWER_ERRORS


def should_retry_exception(exc: BaseException) -> bool:
    """Return ``True`` if *exc* is a transient failure worth another attempt.

    HTTP failures are retried only for 408, 429 and 5xx; auth and validation
    statuses (400, 401, 403, 404, ...) are fatal.  Configuration errors and
    anything unrecognised are never retried.
    """
    if isinstance(exc, ConfigurationError):
        return False
    if isinstance(exc, HttpStatusError):
        return exc.is_retryable
    return isinstance(exc, RETRYABLE_ERRORS)


def correction_note(exc: BaseException) -> str | None:
    """Extra instructions for the next attempt after the model answered badly."""
    if isinstance(exc, ExtractionError):
        return (
            "Your previous answer did not contain a JSON object. "
            "Respond with the JSON object only, with no surrounding text."
        )
    if isinstance(exc, SchemaMismatchError):
        return (
            "Your previous answer did not conform to the 'Output Json schema' "
            f"({exc}). Respond with a JSON object that satisfies the schema exactly."
        )
    return None
