from __future__ import annotations
"""Cache-then-fallback router over an ordered list of providers.

Each ``generate`` call walks ``CacheCheck -> provider 1 -> ... -> provider N``
once.  A cache hit or the first successful provider ends the walk; running
out of providers raises ``AllProvidersFailedError`` carrying every recorded
failure.  Unavailable providers are skipped without being recorded.  Failure
classification is observability metadata only and never changes the order.
"""

import dataclasses
import json
import re
import time
from typing import Any, List, Optional, Sequence

from core import metrics
from core.errors import (
    AllProvidersFailedError,
    ProviderFailure,
    ResponseParseError,
    classify_error,
)
from core.logging import logger, snippet

from .cache import ResponseCache
from .providers import BaseProvider
from .types import LLMRequest, LLMResponse

__all__ = ["LLMRouter"]

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL | re.IGNORECASE)


class LLMRouter:
    def __init__(self, providers: Sequence[BaseProvider], cache: Optional[ResponseCache] = None) -> None:
        names = [p.name for p in providers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate provider names: {', '.join(duplicates)}")
        self._providers: tuple = tuple(providers)
        self._cache = cache if cache is not None else ResponseCache()
        self._last_provider = ""

    @property
    def providers(self) -> List[str]:
        return [p.name for p in self._providers]

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def last_provider(self) -> str:
        """Source of the most recently resolved request.

        Approximate and for logging only: concurrent callers overwrite it.
        Use ``LLMResponse.source`` for per-call provenance.
        """
        return self._last_provider

    # ------------------------------------------------------------------
    async def generate(self, request: LLMRequest) -> LLMResponse:
        started = time.perf_counter()
        logger.debug(
            f"[LLMRouter] Generate request: {snippet(request.prompt)}",
            extra={"context": {
                "system_prompt": snippet(request.system_prompt, 60),
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            }},
        )

        cached = await self._cache.get(request)
        if cached is not None:
            self._last_provider = cached.source
            logger.debug(f"[LLMRouter] Cache HIT ({cached.provider}, {cached.tokens_used} tokens)")
            return cached
        logger.debug("[LLMRouter] Cache MISS - trying providers")

        failures: List[ProviderFailure] = []
        for provider in self._providers:
            attempt_started = time.perf_counter()
            try:
                if not await provider.is_available():
                    logger.debug(f"[LLMRouter] Provider {provider.name} not available, skipping")
                    metrics.record_attempt(provider.name, "unavailable")
                    continue

                logger.info(f"[LLMRouter] Trying provider: {provider.name}")
                response = await provider.generate(request)
            except Exception as exc:
                error_type = classify_error(exc)
                message = str(exc) or type(exc).__name__
                latency = time.perf_counter() - attempt_started
                logger.warning(
                    f"[LLMRouter] Provider {provider.name} FAILED ({error_type.value}): {message[:200]}",
                    extra={"context": {"latency_ms": int(latency * 1000)}},
                )
                metrics.record_attempt(provider.name, error_type.value.lower(), latency)
                failures.append(ProviderFailure(provider.name, message, error_type))
                continue

            latency = time.perf_counter() - attempt_started
            metrics.record_attempt(provider.name, "success", latency)
            await self._cache.set(request, response)
            response = dataclasses.replace(response, cached=False, fallback_errors=tuple(failures))
            self._last_provider = response.source
            logger.info(
                f"[LLMRouter] Success via {provider.name}",
                extra={"context": {
                    "tokens_used": response.tokens_used,
                    "latency_ms": int(latency * 1000),
                    "total_time_ms": int((time.perf_counter() - started) * 1000),
                    "failed_before": [f.provider for f in failures],
                }},
            )
            return response

        metrics.record_exhausted()
        logger.error(
            "[LLMRouter] ALL providers failed",
            extra={"context": {
                "providers_attempted": [f.provider for f in failures],
                "errors": [{"provider": f.provider, "error": f.message[:150]} for f in failures],
                "total_time_ms": int((time.perf_counter() - started) * 1000),
            }},
        )
        raise AllProvidersFailedError(failures)

    async def generate_json(self, request: LLMRequest) -> Any:
        """Generate and decode a JSON document, tolerating a Markdown code fence around it."""
        response = await self.generate(request)
        text = response.content.strip()
        fenced = _CODE_FENCE.match(text)
        if fenced:
            text = fenced.group(1).strip()
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ResponseParseError(
                f"Failed to parse JSON response from {response.provider}: {snippet(response.content, 200)}"
            ) from e

    async def get_available_providers(self) -> List[str]:
        available = []
        for provider in self._providers:
            try:
                if await provider.is_available():
                    available.append(provider.name)
            except Exception as exc:
                logger.warning(f"[LLMRouter] Availability check for {provider.name} failed: {exc}")
        return available

    async def clear_cache(self) -> int:
        return await self._cache.clear()
