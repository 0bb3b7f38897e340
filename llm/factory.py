"""Construction of providers and routers from configuration.

The set of provider names is closed (``ProviderName``) and checked once here;
nothing downstream switches on provider names.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Type

from core.config import LLMSettings, get_settings
from core.logging import logger

from .cache import ResponseCache
from .providers import (
    AnthropicProvider,
    BaseProvider,
    CustomProvider,
    GroqProvider,
    LocalProvider,
    OpenAIProvider,
)
from .router import LLMRouter

__all__ = [
    "ProviderName",
    "SUPPORTED_PROVIDERS",
    "create_provider",
    "create_llm_router",
    "create_chain_router",
    "router_from_settings",
]


class ProviderName(str, Enum):
    GROQ = "groq"
    OPENAI = "openai"
    CUSTOM = "custom"
    ANTHROPIC = "anthropic"
    LOCAL = "local"


_PROVIDER_CLASSES: Dict[ProviderName, Type[BaseProvider]] = {
    ProviderName.GROQ: GroqProvider,
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.CUSTOM: CustomProvider,
    ProviderName.ANTHROPIC: AnthropicProvider,
    ProviderName.LOCAL: LocalProvider,
}

SUPPORTED_PROVIDERS = tuple(p.value for p in ProviderName)


def _parse_name(name: str) -> Optional[ProviderName]:
    try:
        return ProviderName(name.strip().lower())
    except ValueError:
        return None


def create_provider(name: str, settings: Optional[LLMSettings] = None) -> BaseProvider:
    """Create a provider instance by name; raises ValueError for unknown names."""
    provider_name = _parse_name(name)
    if provider_name is None:
        raise ValueError(f"Unknown provider type: {name} (supported: {', '.join(SUPPORTED_PROVIDERS)})")
    settings = settings or get_settings()
    return _PROVIDER_CLASSES[provider_name].from_settings(settings)


def _try_create(name: str, settings: LLMSettings) -> Optional[BaseProvider]:
    try:
        return create_provider(name, settings)
    except Exception as e:
        logger.error(f"[LLMFactory] Error creating provider {name}: {e}")
        return None


def create_llm_router(
    enabled: bool,
    provider: str,
    settings: Optional[LLMSettings] = None,
) -> Optional[LLMRouter]:
    """Single-provider router, or None when disabled or the provider cannot be built."""
    if not enabled:
        logger.info("[LLMFactory] LLM features disabled")
        return None

    if _parse_name(provider) is None:
        logger.error(f"[LLMFactory] Unknown provider: \"{provider}\" (supported: {', '.join(SUPPORTED_PROVIDERS)})")
        return None

    settings = settings or get_settings()
    instance = _try_create(provider, settings)
    if instance is None:
        return None

    logger.info(f"[LLMFactory] LLM provider initialized: {instance.name}")
    return LLMRouter([instance], ResponseCache.from_settings(settings))


def create_chain_router(names: Iterable[str], settings: Optional[LLMSettings] = None) -> Optional[LLMRouter]:
    """Fallback router over ``names`` in order; unknown or repeated names are skipped."""
    settings = settings or get_settings()
    providers: List[BaseProvider] = []
    for name in names:
        provider_name = _parse_name(name)
        if provider_name is None:
            logger.error(f"[LLMFactory] Unknown provider in chain: \"{name}\", skipping")
            continue
        if any(p.name == provider_name.value for p in providers):
            logger.warning(f"[LLMFactory] Provider \"{name}\" listed twice in chain, keeping first")
            continue
        instance = _try_create(provider_name.value, settings)
        if instance is not None:
            providers.append(instance)

    if not providers:
        logger.error("[LLMFactory] No usable providers in chain")
        return None

    logger.info(f"[LLMFactory] LLM fallback chain initialized: {' -> '.join(p.name for p in providers)}")
    return LLMRouter(providers, ResponseCache.from_settings(settings))


def router_from_settings(settings: Optional[LLMSettings] = None) -> Optional[LLMRouter]:
    """Chain router when LLM_PROVIDER_CHAIN is set, single-provider router otherwise."""
    settings = settings or get_settings()
    if not settings.LLM_ENABLED:
        logger.info("[LLMFactory] LLM features disabled")
        return None
    if settings.provider_chain:
        return create_chain_router(settings.provider_chain, settings)
    return create_llm_router(True, settings.LLM_PROVIDER, settings)
