import json
import logging

from core.errors import AllProvidersFailedError, ErrorType, ProviderFailure
from core.logging import JsonFormatter, setup_logging, snippet


def _record(msg, **extra):
    record = logging.LogRecord("restheal", logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context():
    line = JsonFormatter().format(_record("provider failed", context={"provider": "groq", "latency_ms": 12}))
    payload = json.loads(line)

    assert payload["level"] == "WARNING"
    assert payload["message"] == "provider failed"
    assert payload["context"] == {"provider": "groq", "latency_ms": 12}


def test_json_formatter_without_context():
    payload = json.loads(JsonFormatter().format(_record("plain")))
    assert "context" not in payload


def test_setup_logging_writes_json_file(tmp_path):
    pkg_logger = setup_logging("DEBUG", tmp_path / "logs")
    try:
        pkg_logger.info("hello", extra={"context": {"k": "v"}})
        for handler in pkg_logger.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "llm.log").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["context"] == {"k": "v"}
        assert pkg_logger.level == logging.DEBUG
    finally:
        for handler in list(pkg_logger.handlers):
            handler.close()
        pkg_logger.handlers.clear()


def test_snippet_truncates_and_flattens():
    assert snippet("a\nb") == "a b"
    assert snippet("x" * 100, 10) == "x" * 10 + "..."
    assert snippet(None) == ""


def test_aggregate_error_message():
    error = AllProvidersFailedError([
        ProviderFailure("groq", "429 slow down", ErrorType.RATE_LIMIT),
        ProviderFailure("openai", "boom"),
    ])
    assert str(error) == "All LLM providers failed. Errors: groq: 429 slow down; openai: boom"
    assert error.failures[1].error_type is ErrorType.API_ERROR
