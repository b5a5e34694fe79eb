"""
Configuration management for Schema LLM.

Loads configuration from environment variables (typically from a .env file).
Uses python-dotenv to load .env automatically.

Usage:
    from schema_llm.config import config

    # API key for a vendor
    api_key = config.require_api_key("google")

    # Completion service defaults
    settings = config.engine
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

# Look for .env in project root (parent of src/)
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


# Vendor name -> environment variable holding its API key / access token
API_KEY_ENV_VARS = {
    "google": "GOOGLE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}

# Google deployment routing
GOOGLE_REGION_ENV = "GOOGLE_REGION"
GOOGLE_PROJECT_ID_ENV = "GOOGLE_PROJECT_ID"
DEFAULT_GOOGLE_REGION = "us-central1"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class EngineSettings:
    """Retry and timeout defaults for the completion service."""
    max_attempts: int = 3
    initial_wait: float = 1.0
    max_wait: float = 10.0
    call_timeout: float = 120.0

    def __post_init__(self):
        """Validate ranges."""
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.initial_wait < 0 or self.max_wait < 0:
            raise ConfigurationError("retry waits must not be negative")
        if self.call_timeout <= 0:
            raise ConfigurationError("call_timeout must be positive")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            max_attempts=_env_int("SCHEMA_LLM_MAX_ATTEMPTS", cls.max_attempts),
            initial_wait=_env_float("SCHEMA_LLM_INITIAL_WAIT", cls.initial_wait),
            max_wait=_env_float("SCHEMA_LLM_MAX_WAIT", cls.max_wait),
            call_timeout=_env_float("SCHEMA_LLM_CALL_TIMEOUT", cls.call_timeout),
        )


class Config:
    """
    Application configuration loaded from environment variables.

    Environment variables can be set:
    1. In a .env file in the project root
    2. In the system environment
    3. In a container/deployment environment
    """

    def __init__(self):
        """Load configuration from environment."""
        self.engine = EngineSettings.from_env()

    def get_api_key(self, vendor: str) -> str:
        """
        Get the API key for a vendor, or an empty string if unset.

        Raises:
            ConfigurationError: If the vendor is unknown
        """
        vendor = vendor.lower()
        if vendor not in API_KEY_ENV_VARS:
            raise ConfigurationError(f"Unknown vendor: {vendor}")
        return os.getenv(API_KEY_ENV_VARS[vendor], "")

    def require_api_key(self, vendor: str) -> str:
        """
        Get the API key for a vendor, raising a helpful error if not configured.
        """
        api_key = self.get_api_key(vendor)
        if not api_key:
            raise ConfigurationError(
                f"\n{'='*60}\n"
                f"Vendor '{vendor}' is not configured.\n\n"
                f"To use {vendor}, set these environment variables:\n"
                f"{_get_vendor_instructions(vendor)}\n"
                f"You can set these in a .env file in the project root.\n"
                f"{'='*60}\n"
            )
        return api_key

    def get_available_vendors(self) -> list[str]:
        """
        Get list of vendors that have API keys configured.
        """
        return [vendor for vendor in API_KEY_ENV_VARS if self.get_api_key(vendor)]


# Global config instance
config = Config()


def _get_vendor_instructions(vendor: str) -> str:
    """Get environment variable instructions for a vendor."""
    instructions = {
        "google": """
  GOOGLE_API_KEY=your-api-key-or-access-token
  GOOGLE_PROJECT_ID=your-gcp-project      (Vertex AI only)
  GOOGLE_REGION=us-central1               (Vertex AI only, optional)
        """,
        "openai": """
  OPENAI_API_KEY=your-api-key
        """,
        "anthropic": """
  ANTHROPIC_API_KEY=your-api-key
        """,
        "mistral": """
  MISTRAL_API_KEY=your-api-key
        """,
    }
    return instructions.get(vendor, "  (Unknown vendor)")
