"""
Schema LLM - Core Package

One interface for asking any supported LLM vendor for a JSON answer that
conforms to a caller-supplied JSON Schema.

This package provides:
- Provider abstraction layer for vendor APIs (Google, OpenAI, Anthropic, Mistral)
- Service layer for retries, rate limiting and structured-output validation
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    ExtractionError,
    HttpStatusError,
    LLMError,
    MalformedStreamChunk,
    RetriesExhausted,
    SchemaMismatchError,
    TransportError,
)
from .providers import BaseLLMProvider, ProviderFactory, RateLimit
from .services import CompletionRequest, CompletionResult, CompletionService

# Explicitly import subpackages to ensure they're discoverable
from . import providers
from . import services
from . import utils

__all__ = [
    "BaseLLMProvider",
    "CompletionRequest",
    "CompletionResult",
    "CompletionService",
    "ConfigurationError",
    "ExtractionError",
    "HttpStatusError",
    "LLMError",
    "MalformedStreamChunk",
    "ProviderFactory",
    "RateLimit",
    "RetriesExhausted",
    "SchemaMismatchError",
    "TransportError",
    "providers",
    "services",
    "utils",
]
