"""LLM provider adapters for the remote and local backends."""
import json
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from core.errors import ErrorType, ProviderError
from core.logging import logger

from .types import GenerationDefaults, LLMRequest, LLMResponse, resolve_params

__all__ = [
    "BaseProvider",
    "OpenAICompatibleProvider",
    "GroqProvider",
    "OpenAIProvider",
    "CustomProvider",
    "AnthropicProvider",
    "LocalProvider",
]

JSON_INSTRUCTION = "Respond only with valid JSON that matches this JSON schema:"


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human readable reason from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return json.dumps(body)[:200]


class BaseProvider(ABC):
    """Base class for LLM providers.

    Subclasses set ``name`` (the routing, cache and log key), ``label`` (used
    in error messages) and ``env_prefix`` (which settings fields configure the
    provider), and implement ``generate``.
    """

    name: str = ""
    label: str = ""
    env_prefix: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "",
        base_url: str = "",
        timeout: float = 120.0,
        defaults: Optional[GenerationDefaults] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.defaults = defaults or GenerationDefaults()

    @classmethod
    def from_settings(cls, settings) -> "BaseProvider":
        """Build the provider from the <PREFIX>_API_KEY/_MODEL/_BASE_URL settings."""
        prefix = cls.env_prefix
        return cls(
            api_key=getattr(settings, f"{prefix}_API_KEY", None),
            model=getattr(settings, f"{prefix}_MODEL"),
            base_url=getattr(settings, f"{prefix}_BASE_URL"),
            timeout=settings.LLM_TIMEOUT_SECONDS,
            defaults=GenerationDefaults(
                temperature=settings.LLM_DEFAULT_TEMPERATURE,
                max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
            ),
        )

    async def is_available(self) -> bool:
        """Remote backends are usable as soon as a credential is configured."""
        available = bool(self.api_key)
        logger.debug(f"[{self.label}] is_available: {available} (model={self.model})")
        return available

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate a completion or raise ProviderError."""
        pass

    # Helpers ---------------------------------------------------------------
    def _error(
        self,
        message: str,
        error_type: ErrorType = ErrorType.API_ERROR,
        status_code: Optional[int] = None,
    ) -> ProviderError:
        return ProviderError(
            f"{self.label} API error: {message}",
            provider=self.name,
            error_type=error_type,
            status_code=status_code,
        )

    def _require_key(self) -> None:
        if not self.api_key:
            raise self._error(
                f"client not initialized. Check {self.env_prefix}_API_KEY environment variable."
            )

    def _system_prompt(self, request: LLMRequest) -> Optional[str]:
        """System prompt with the JSON schema instruction appended when a schema is requested."""
        if request.schema is None:
            return request.system_prompt
        instruction = f"{JSON_INSTRUCTION}\n{json.dumps(request.schema)}"
        if request.system_prompt:
            return f"{request.system_prompt}\n\n{instruction}"
        return instruction

    def _connect_error(self, exc: httpx.ConnectError) -> ProviderError:
        return self._error(f"connection failed: {exc}")

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        """POST ``payload`` and return the decoded JSON body, mapping failures to ProviderError."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as e:
                raise self._error(f"request timed out after {self.timeout}s", ErrorType.TIMEOUT) from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                error_type = ErrorType.RATE_LIMIT if status == 429 else ErrorType.API_ERROR
                raise self._error(f"{status} {_error_detail(e.response)}", error_type, status) from e
            except httpx.ConnectError as e:
                raise self._connect_error(e) from e
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise self._error(str(e) or type(e).__name__) from e
            except ValueError as e:
                raise self._error("malformed response body (not JSON)") from e

    def _log_success(self, tokens_used: int, started: float, content: str, **context: Any) -> None:
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"[{self.label}] Response received: {tokens_used} tokens in {latency_ms}ms",
            extra={"context": {
                "model": self.model,
                "tokens_used": tokens_used,
                "latency_ms": latency_ms,
                "response_length": len(content),
                **context,
            }},
        )


class OpenAICompatibleProvider(BaseProvider):
    """Shared implementation of the OpenAI ``/chat/completions`` protocol."""

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _messages(self, request: LLMRequest) -> List[Dict[str, str]]:
        messages = []
        system_prompt = self._system_prompt(request)
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def _unwrap(self, data: Any) -> Any:
        return data

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self._require_key()
        temperature, max_tokens = resolve_params(request, self.defaults)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(request),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if request.schema is not None:
            payload["response_format"] = {"type": "json_object"}

        url = f"{self.base_url}/chat/completions"
        logger.debug(f"[{self.label}] POST {url} (model={self.model}, max_tokens={max_tokens})")
        started = time.perf_counter()

        try:
            data = await self._post(url, payload, self._headers())
        except ProviderError as e:
            logger.error(f"[{self.label}] Request failed: {str(e)[:200]}")
            raise

        body = self._unwrap(data)
        try:
            choice = body["choices"][0]
            content = choice["message"]["content"]
        except (KeyError, IndexError, TypeError):
            choice, content = {}, None
        usage = body.get("usage") if isinstance(body, dict) else None
        tokens_used = int((usage or {}).get("total_tokens") or 0)

        if not content:
            self._log_unexpected_shape(data)
            raise self._error("empty content in response (unexpected response shape)")

        self._log_success(tokens_used, started, content, finish_reason=choice.get("finish_reason"))
        return LLMResponse(content=content, provider=self.name, tokens_used=tokens_used)

    def _log_unexpected_shape(self, data: Any) -> None:
        keys = sorted(data.keys()) if isinstance(data, dict) else type(data).__name__
        logger.warning(f"[{self.label}] Empty content - unexpected response shape, top-level keys: {keys}")


class GroqProvider(OpenAICompatibleProvider):
    """Groq inference API (fast, low-cost LLaMA/Mixtral hosting)."""
    name = "groq"
    label = "Groq"
    env_prefix = "GROQ"


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI API provider (GPT-4, GPT-3.5, etc.)."""
    name = "openai"
    label = "OpenAI"
    env_prefix = "OPENAI"


class CustomProvider(OpenAICompatibleProvider):
    """OpenAI-compatible gateway that may wrap the completion in a transaction envelope.

    Observed shape: ``{"message": "...", "transaction": {"response": {choices, usage, ...}}}``.
    The envelope is specific to this gateway; a bare completion is accepted too.
    """
    name = "custom"
    label = "Custom"
    env_prefix = "CUSTOM"

    def _unwrap(self, data: Any) -> Any:
        if isinstance(data, dict):
            transaction = data.get("transaction")
            if isinstance(transaction, dict) and transaction.get("response"):
                return transaction["response"]
        return data

    def _log_unexpected_shape(self, data: Any) -> None:
        transaction = data.get("transaction") if isinstance(data, dict) else None
        logger.warning(
            f"[{self.label}] Empty content - unexpected response shape",
            extra={"context": {
                "top_level_keys": sorted(data.keys()) if isinstance(data, dict) else None,
                "has_transaction": transaction is not None,
                "has_response": isinstance(transaction, dict) and "response" in transaction,
            }},
        )


class AnthropicProvider(BaseProvider):
    """Anthropic Messages API provider (Claude models)."""
    name = "anthropic"
    label = "Anthropic"
    env_prefix = "ANTHROPIC"

    API_VERSION = "2023-06-01"

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self._require_key()
        temperature, max_tokens = resolve_params(request, self.defaults)

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        system_prompt = self._system_prompt(request)
        if system_prompt:
            payload["system"] = system_prompt

        url = f"{self.base_url}/messages"
        logger.debug(f"[{self.label}] POST {url} (model={self.model}, max_tokens={max_tokens})")
        started = time.perf_counter()

        try:
            data = await self._post(url, payload, headers)
        except ProviderError as e:
            logger.error(f"[{self.label}] Request failed: {str(e)[:200]}")
            raise

        blocks = data.get("content") if isinstance(data, dict) else None
        content = ""
        for block in blocks or []:
            if isinstance(block, dict) and block.get("type") == "text":
                content = block.get("text") or ""
                break
        usage = (data.get("usage") if isinstance(data, dict) else None) or {}
        tokens_used = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)

        if not content:
            logger.warning(f"[{self.label}] No text block in response (stop_reason={data.get('stop_reason') if isinstance(data, dict) else None})")
            raise self._error("empty content in response (no text block)")

        self._log_success(tokens_used, started, content)
        return LLMResponse(content=content, provider=self.name, tokens_used=tokens_used)


class LocalProvider(BaseProvider):
    """Ollama running on a loopback endpoint. Free but slower; used as last resort."""
    name = "local"
    label = "Local"
    env_prefix = "OLLAMA"

    def __init__(self, *args, probe_timeout: float = 2.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.probe_timeout = probe_timeout

    @classmethod
    def from_settings(cls, settings) -> "LocalProvider":
        provider = super().from_settings(settings)
        provider.probe_timeout = settings.LOCAL_PROBE_TIMEOUT_SECONDS
        return provider

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.get(f"{self.base_url}/api/tags")
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.debug(f"[{self.label}] is_available: False (Ollama not running at {self.base_url})")
            return False
        available = response.status_code == 200
        logger.debug(f"[{self.label}] is_available: {available} (model={self.model})")
        return available

    def _connect_error(self, exc: httpx.ConnectError) -> ProviderError:
        return ProviderError(
            "Ollama is not running. Start it with: ollama serve",
            provider=self.name,
            error_type=ErrorType.API_ERROR,
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        temperature, max_tokens = resolve_params(request, self.defaults)
        system_prompt = self._system_prompt(request)
        full_prompt = f"{system_prompt}\n\n{request.prompt}" if system_prompt else request.prompt

        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": full_prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if request.schema is not None:
            payload["format"] = "json"

        url = f"{self.base_url}/api/generate"
        logger.debug(f"[{self.label}] POST {url} (model={self.model}, prompt_length={len(full_prompt)})")
        started = time.perf_counter()

        try:
            data = await self._post(url, payload)
        except ProviderError as e:
            logger.error(f"[{self.label}] Request failed: {str(e)[:200]}")
            raise

        content = data.get("response") if isinstance(data, dict) else None
        if not content:
            logger.warning(f"[{self.label}] Empty 'response' field from Ollama")
            raise self._error("empty content in response")

        # Ollama does not report usage consistently; estimate at ~4 chars per token.
        tokens_used = math.ceil((len(content) + len(full_prompt)) / 4)
        self._log_success(tokens_used, started, content)
        return LLMResponse(content=content, provider=self.name, tokens_used=tokens_used)
