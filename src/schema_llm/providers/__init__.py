"""
LLM Provider Abstraction Layer

This package provides a unified interface for requesting schema-conformant
JSON from different LLM vendors (Google Gemini, OpenAI, Anthropic, Mistral).

All adapters implement the BaseLLMProvider interface and are bound to one
Model Identity each.
"""

from .base import BaseLLMProvider, RateLimit
from .anthropic_provider import AnthropicModels, AnthropicProvider
from .google_provider import GoogleModels, GoogleProvider
from .mistral_provider import MistralModels, MistralProvider
from .openai_provider import OpenAIModels, OpenAIProvider
from .factory import ModelIdentity, ProviderFactory, all_model_identities

__all__ = [
    "BaseLLMProvider",
    "RateLimit",
    "AnthropicModels",
    "AnthropicProvider",
    "GoogleModels",
    "GoogleProvider",
    "MistralModels",
    "MistralProvider",
    "OpenAIModels",
    "OpenAIProvider",
    "ModelIdentity",
    "ProviderFactory",
    "all_model_identities",
]
