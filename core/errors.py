from enum import Enum
from typing import List, NamedTuple, Optional


class ErrorType(str, Enum):
    """Classification of a failed provider call."""
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    API_ERROR = "API_ERROR"


class ProviderFailure(NamedTuple):
    """One failed attempt recorded while walking the fallback chain."""
    provider: str
    message: str
    error_type: ErrorType = ErrorType.API_ERROR


class RestHealError(Exception):
    """Base exception class for the restheal LLM layer."""
    pass


class ConfigError(RestHealError):
    """Raised when the environment configuration is invalid."""
    pass


class ProviderError(RestHealError):
    """Raised by a provider when a generation call cannot produce content."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_type: ErrorType = ErrorType.API_ERROR,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.error_type = error_type
        self.status_code = status_code


class AllProvidersFailedError(RestHealError):
    """Raised when every provider in the chain was unavailable or failed."""

    def __init__(self, failures: List[ProviderFailure]):
        self.failures = list(failures)
        if self.failures:
            details = "; ".join(f"{f.provider}: {f.message}" for f in self.failures)
        else:
            details = "none (no provider was available)"
        super().__init__(f"All LLM providers failed. Errors: {details}")


class ResponseParseError(RestHealError):
    """Raised when a JSON generation returns content that is not valid JSON."""
    pass


_RATE_LIMIT_MARKERS = ("429", "rate_limit", "rate limit")
_TIMEOUT_MARKERS = ("timeout", "timed out", "etimedout")


def classify_error(error: BaseException) -> ErrorType:
    """Map an exception raised by a provider onto an ErrorType."""
    if isinstance(error, ProviderError):
        return error.error_type
    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorType.RATE_LIMIT
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return ErrorType.TIMEOUT
    return ErrorType.API_ERROR
