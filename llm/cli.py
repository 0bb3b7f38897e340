"""Command-line access to the LLM router.

Examples:
    restheal-llm providers
    restheal-llm generate --prompt "List three HTTP verbs" --max-tokens 50
    restheal-llm generate --prompt "Return {\\"ok\\": true}" --json
    restheal-llm clear-cache
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from core.config import get_settings, reset_settings
from core.errors import ConfigError, RestHealError
from core.logging import logger, setup_logging

from .factory import router_from_settings
from .router import LLMRouter
from .types import LLMRequest


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parses command-line arguments."""
    parser = argparse.ArgumentParser(description="Route prompts to the configured LLM providers.")
    parser.add_argument(
        "--env-file",
        default=None,
        help="Optional .env file loaded before reading settings.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("providers", help="List providers that are currently available.")
    sub.add_parser("clear-cache", help="Delete every cached response.")

    gen = sub.add_parser("generate", help="Generate a completion.")
    gen.add_argument("--prompt", required=True)
    gen.add_argument("--system", default=None, help="System prompt.")
    gen.add_argument("--temperature", type=float, default=None)
    gen.add_argument("--max-tokens", type=int, default=None)
    gen.add_argument(
        "--json",
        action="store_true",
        help="Parse the completion as JSON and pretty-print it.",
    )
    return parser.parse_args(argv)


async def _run(router: LLMRouter, args: argparse.Namespace) -> int:
    if args.command == "providers":
        available = await router.get_available_providers()
        for name in router.providers:
            print(f"{name}\t{'available' if name in available else 'unavailable'}")
        return 0

    if args.command == "clear-cache":
        removed = await router.clear_cache()
        print(f"Removed {removed} cached responses")
        return 0

    request = LLMRequest(
        prompt=args.prompt,
        system_prompt=args.system,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    if args.json:
        print(json.dumps(await router.generate_json(request), indent=2, ensure_ascii=False))
        return 0
    response = await router.generate(request)
    print(response.content)
    logger.info(f"Served by {response.source} ({response.tokens_used} tokens)")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main execution function."""
    args = parse_args(argv)
    if args.env_file:
        load_dotenv(args.env_file, override=False)
        reset_settings()

    try:
        settings = get_settings()
    except ConfigError as e:
        setup_logging(logging.INFO)
        logger.critical(f"FATAL: {e}")
        return 1

    setup_logging(logging.DEBUG if args.verbose else settings.LOG_LEVEL, settings.LOG_DIR)

    router = router_from_settings(settings)
    if router is None:
        logger.error("LLM routing is disabled or no provider could be configured.")
        return 1

    try:
        return asyncio.run(_run(router, args))
    except (RestHealError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
