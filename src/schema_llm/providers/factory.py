"""
Provider Factory - Resolves a Model Identity to its vendor adapter.

This factory enables dynamic adapter creation from either a Model Identity
enum member or its string key, without needing to import adapter classes
directly.
"""

from enum import Enum
from typing import Optional, Union

import httpx

from .anthropic_provider import AnthropicModels, AnthropicProvider
from .base import DEFAULT_REQUEST_TIMEOUT, BaseLLMProvider
from .google_provider import GoogleModels, GoogleProvider
from .mistral_provider import MistralModels, MistralProvider
from .openai_provider import OpenAIModels, OpenAIProvider
from ..config import Config

ModelIdentity = Union[GoogleModels, OpenAIModels, AnthropicModels, MistralModels]

_PROVIDERS: dict[type, type[BaseLLMProvider]] = {
    GoogleModels: GoogleProvider,
    OpenAIModels: OpenAIProvider,
    AnthropicModels: AnthropicProvider,
    MistralModels: MistralProvider,
}


class ProviderFactory:
    """
    Factory for creating vendor adapters.

    Usage:
        factory = ProviderFactory()

        # From a Model Identity
        provider = factory.create(GoogleModels.GEMINI_PRO_VERTEX)

        # From a string key ("vendor:model" or just the model)
        provider = factory.create_from_name("openai:gpt-4o")

        # API key for the adapter's vendor, from the environment
        api_key = factory.api_key_for(provider)
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the factory.

        Args:
            config: Optional Config instance. If not provided, creates a new one.
        """
        self.config = config or Config()

    def create(
        self,
        model: ModelIdentity,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> BaseLLMProvider:
        """
        Create the adapter serving ``model``.

        Raises:
            ValueError: If ``model`` is not a known Model Identity
        """
        provider_cls = _PROVIDERS.get(type(model))
        if provider_cls is None:
            raise ValueError(
                f"Unknown model identity: {model!r}. "
                f"Available models: {', '.join(self.get_available_models())}"
            )
        return provider_cls(model, transport=transport, timeout=timeout)

    def create_from_name(
        self,
        name: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> BaseLLMProvider:
        """
        Create an adapter from ``"vendor:model"`` or a bare model key.

        Matching is case-insensitive.
        """
        return self.create(self.resolve_model(name), transport=transport, timeout=timeout)

    @staticmethod
    def resolve_model(name: str) -> ModelIdentity:
        key = name.strip().lower()
        vendor = None
        if ":" in key:
            vendor, key = key.split(":", 1)

        for models, provider_cls in _PROVIDERS.items():
            if vendor is not None and provider_cls.vendor != vendor:
                continue
            for member in models:
                if member.value == key:
                    return member

        raise ValueError(
            f"Unknown model: {name}. "
            f"Available models: {', '.join(ProviderFactory.get_available_models())}"
        )

    @staticmethod
    def get_available_models() -> list[str]:
        """
        Return the ``vendor:model`` key of every supported Model Identity.
        """
        return [
            f"{provider_cls.vendor}:{member.value}"
            for models, provider_cls in _PROVIDERS.items()
            for member in models
        ]

    @staticmethod
    def get_available_providers() -> list[str]:
        """
        Return list of supported vendor names.
        """
        return [provider_cls.vendor for provider_cls in _PROVIDERS.values()]

    def get_configured_providers(self) -> list[str]:
        """
        Return list of vendors that have credentials configured.
        """
        return self.config.get_available_vendors()

    def api_key_for(self, provider: BaseLLMProvider) -> str:
        """
        Return the API key for the adapter's vendor from configuration.

        Raises:
            ConfigurationError: If the key is not set
        """
        return self.config.require_api_key(provider.vendor)


def all_model_identities() -> list[Enum]:
    """Every supported Model Identity, in declaration order."""
    return [member for models in _PROVIDERS for member in models]
