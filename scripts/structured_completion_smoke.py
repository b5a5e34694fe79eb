#!/usr/bin/env python3
"""
Smoke test a structured completion against a live vendor.

Reads API keys from .env (repo root) and asks the chosen model for a small
schema-constrained answer.

Usage:
    python scripts/structured_completion_smoke.py --model google:gemini-pro
    python scripts/structured_completion_smoke.py --model anthropic:claude-3-haiku --function-call
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schema_llm.errors import LLMError
from schema_llm.providers.factory import ProviderFactory
from schema_llm.services.completion_service import CompletionRequest, CompletionService
from schema_llm.utils.logging_config import get_logger, setup_logging

logger = get_logger("scripts.structured_completion_smoke")

COLORS_SCHEMA = {
    "type": "object",
    "properties": {
        "colors": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["colors"],
}


async def run(model_name: str, instructions: str, function_call: bool, debug: bool) -> int:
    factory = ProviderFactory()
    model = factory.resolve_model(model_name)
    service = CompletionService(factory=factory)

    print(f"\n{'='*60}")
    print(f"Model: {model_name}")
    print(f"Configured vendors: {', '.join(factory.get_configured_providers()) or '(none)'}")
    print(f"{'='*60}")

    try:
        result = await service.complete(
            CompletionRequest(
                model=model,
                instructions=instructions,
                json_schema=COLORS_SCHEMA,
                function_call=function_call,
                debug=debug,
            )
        )
    except LLMError as e:
        logger.error("Structured completion failed: %s", e)
        print(f"[FAIL] {type(e).__name__}: {e}")
        return 1

    print(f"[OK] {result!r}")
    print(json.dumps(result.output, indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--model",
        default="google:gemini-pro",
        help=f"vendor:model key, one of: {', '.join(ProviderFactory.get_available_models())}",
    )
    parser.add_argument("--instructions", default="list two colors")
    parser.add_argument("--function-call", action="store_true")
    parser.add_argument("--debug", action="store_true", help="log every raw response chunk")
    args = parser.parse_args()

    setup_logging("DEBUG" if args.debug else None)
    return asyncio.run(run(args.model, args.instructions, args.function_call, args.debug))


if __name__ == "__main__":
    sys.exit(main())
