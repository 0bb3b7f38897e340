"""Shared fixtures for the LLM routing tests."""
from typing import Optional

import pytest

from core.config import LLMSettings, reset_settings
from llm import BaseProvider, LLMRequest, LLMResponse, ResponseCache


class StubProvider(BaseProvider):
    """In-memory provider with scripted availability and outcome."""

    def __init__(
        self,
        name: str,
        content: str = "pong",
        tokens: int = 2,
        available: bool = True,
        error: Optional[Exception] = None,
    ):
        super().__init__(api_key="stub-key", model="stub-model")
        self.name = name
        self.label = name
        self._content = content
        self._tokens = tokens
        self._available = available
        self._error = error
        self.calls = 0
        self.availability_checks = 0

    async def is_available(self) -> bool:
        self.availability_checks += 1
        return self._available

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return LLMResponse(content=self._content, provider=self.name, tokens_used=self._tokens)


@pytest.fixture
def cache(tmp_path):
    """Enabled response cache rooted in a temporary directory."""
    return ResponseCache(cache_dir=tmp_path / "llm-cache", enabled=True)


@pytest.fixture
def disabled_cache(tmp_path):
    return ResponseCache(cache_dir=tmp_path / "llm-cache", enabled=False)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's .env and environment."""
    return LLMSettings(
        _env_file=None,
        LLM_CACHE_DIR=tmp_path / "settings-cache",
        GROQ_API_KEY="gsk-test",
        OPENAI_API_KEY="sk-test",
        CUSTOM_API_KEY="custom-test",
        ANTHROPIC_API_KEY="ant-test",
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()
