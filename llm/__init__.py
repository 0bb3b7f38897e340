"""LLM routing layer: providers, response cache and fallback router.

The public API is intentionally small: build a router with
``router_from_settings()`` (or ``LLMRouter`` directly) and call
``generate`` / ``generate_json``.
"""

from __future__ import annotations

from .cache import CacheLookup, CacheMiss, ResponseCache
from .factory import (
    ProviderName,
    SUPPORTED_PROVIDERS,
    create_chain_router,
    create_llm_router,
    create_provider,
    router_from_settings,
)
from .providers import (
    AnthropicProvider,
    BaseProvider,
    CustomProvider,
    GroqProvider,
    LocalProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
)
from .router import LLMRouter
from .types import GenerationDefaults, LLMRequest, LLMResponse, resolve_params

__all__ = [
    "CacheLookup",
    "CacheMiss",
    "ResponseCache",
    "ProviderName",
    "SUPPORTED_PROVIDERS",
    "create_chain_router",
    "create_llm_router",
    "create_provider",
    "router_from_settings",
    "AnthropicProvider",
    "BaseProvider",
    "CustomProvider",
    "GroqProvider",
    "LocalProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "LLMRouter",
    "GenerationDefaults",
    "LLMRequest",
    "LLMResponse",
    "resolve_params",
]
