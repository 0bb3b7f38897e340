"""Value objects shared by providers, the response cache and the router."""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.errors import ProviderFailure


@dataclass(frozen=True)
class LLMRequest:
    """A single generation request.

    Also the input of the cache key, so two requests with equal fields are
    interchangeable. ``temperature`` is stored as a float and ``schema`` as a
    private deep copy, so neither ``0`` vs ``0.0`` nor later mutation of the
    caller's dict can move a request to a different key.
    """
    prompt: str
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    schema: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise ValueError("prompt must be a non-empty string")
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if self.temperature is not None:
            object.__setattr__(self, "temperature", float(self.temperature))
        if self.schema is not None:
            object.__setattr__(self, "schema", copy.deepcopy(self.schema))


@dataclass(frozen=True)
class LLMResponse:
    """Generated content plus its provenance."""
    content: str
    provider: str
    tokens_used: int = 0
    cached: bool = False
    # Failures seen before `provider` succeeded. Never persisted.
    fallback_errors: Tuple[ProviderFailure, ...] = field(default=(), compare=False)

    def __post_init__(self):
        if self.tokens_used < 0:
            raise ValueError("tokens_used must be non-negative")

    @property
    def source(self) -> str:
        return f"{self.provider} (cached)" if self.cached else self.provider


@dataclass(frozen=True)
class GenerationDefaults:
    temperature: float = 0.3
    max_tokens: int = 2000


def resolve_params(request: LLMRequest, defaults: GenerationDefaults) -> Tuple[float, int]:
    """Return the (temperature, max_tokens) pair a provider should send upstream."""
    temperature = defaults.temperature if request.temperature is None else request.temperature
    max_tokens = defaults.max_tokens if request.max_tokens is None else request.max_tokens
    return temperature, max_tokens
