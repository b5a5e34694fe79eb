"""
Business Logic Layer (Services)

This package contains the services that turn vendor adapters into a source
of schema-valid JSON.  Services sit between the caller and the provider layer
(low-level API calls).

Services handle:
- Retry logic with exponential backoff
- Per-model rate-limit accounting
- Locating JSON in free model text and validating it against a schema

All services are vendor-agnostic and work with any BaseLLMProvider implementation.
"""

from .completion_service import CompletionRequest, CompletionResult, CompletionService
from .json_extractor import extract_json, parse_structured_output, validate_json
from .rate_limiter import RateLimitRegistry

__all__ = [
    "CompletionRequest",
    "CompletionResult",
    "CompletionService",
    "RateLimitRegistry",
    "extract_json",
    "parse_structured_output",
    "validate_json",
]
