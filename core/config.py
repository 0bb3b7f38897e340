import logging
from pathlib import Path
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError

logger = logging.getLogger(__name__)

# --- Environment-based Settings ---

class LLMSettings(BaseSettings):
    """
    Settings for the LLM routing layer, loaded from environment variables.
    The .env file is loaded automatically by pydantic-settings.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # --- General & Core ---
    LOG_LEVEL: str = Field("INFO", description="Log level (e.g., DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: Optional[Path] = Field(None, description="Optional: directory for the rotating JSON log file.")

    # --- Routing ---
    LLM_ENABLED: bool = Field(True, description="Master switch for LLM features.")
    LLM_PROVIDER: str = Field("groq", description="Single provider used when no chain is configured.")
    LLM_PROVIDER_CHAIN: Optional[str] = Field(None, description="Optional: comma-separated fallback order, e.g. 'groq,openai,local'.")
    LLM_TIMEOUT_SECONDS: float = Field(120.0, gt=0, description="Per-call timeout applied by each remote provider.")
    LLM_DEFAULT_TEMPERATURE: float = Field(0.3, ge=0, le=2)
    LLM_DEFAULT_MAX_TOKENS: int = Field(2000, ge=1)

    # --- Response Cache ---
    LLM_CACHE_ENABLED: bool = Field(True)
    LLM_CACHE_DIR: Path = Field(Path(".cache/llm"), description="Directory holding one JSON file per cached response.")

    # --- Groq ---
    GROQ_API_KEY: Optional[str] = Field(None)
    GROQ_MODEL: str = Field("llama-3.1-70b-versatile")
    GROQ_BASE_URL: str = Field("https://api.groq.com/openai/v1")

    # --- OpenAI ---
    OPENAI_API_KEY: Optional[str] = Field(None)
    OPENAI_MODEL: str = Field("gpt-3.5-turbo")
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1")

    # --- Custom OpenAI-compatible gateway ---
    CUSTOM_API_KEY: Optional[str] = Field(None)
    CUSTOM_MODEL: str = Field("gpt-4o-mini")
    CUSTOM_BASE_URL: str = Field("https://api.testleaf.com/ai/v1")

    # --- Anthropic ---
    ANTHROPIC_API_KEY: Optional[str] = Field(None)
    ANTHROPIC_MODEL: str = Field("claude-3-5-sonnet-20241022")
    ANTHROPIC_BASE_URL: str = Field("https://api.anthropic.com/v1")

    # --- Ollama / Local LLMs ---
    OLLAMA_BASE_URL: str = Field("http://localhost:11434", description="The full URL of your Ollama server.")
    OLLAMA_MODEL: str = Field("codellama")
    LOCAL_PROBE_TIMEOUT_SECONDS: float = Field(2.0, gt=0)

    @field_validator("LLM_PROVIDER")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def provider_chain(self) -> List[str]:
        """Configured fallback order, lowercased, empty when unset."""
        if not self.LLM_PROVIDER_CHAIN:
            return []
        return [name.strip().lower() for name in self.LLM_PROVIDER_CHAIN.split(",") if name.strip()]

# --- Global Settings Instance ---
_settings_instance: Optional[LLMSettings] = None

def load_settings(**overrides) -> LLMSettings:
    """Builds a fresh settings object, converting validation failures into ConfigError."""
    try:
        return LLMSettings(**overrides)
    except ValidationError as e:
        logger.critical(f"Configuration validation error: {e}")
        raise ConfigError(f"Invalid LLM configuration: {e}") from e

def get_settings() -> LLMSettings:
    """
    Returns a singleton instance of the settings object.
    Settings are loaded on first use rather than at import, which keeps the
    modules importable by tests without a configured environment.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = load_settings()
    return _settings_instance

def reset_settings() -> None:
    """Drops the cached singleton so the next get_settings() re-reads the environment."""
    global _settings_instance
    _settings_instance = None
