"""Tests for the restheal-llm command line."""
import logging
from unittest.mock import patch

import pytest

from conftest import StubProvider
from core.errors import ProviderError
from core.logging import LOGGER_NAME
from llm import LLMRouter, ResponseCache
from llm import cli


@pytest.fixture(autouse=True)
def _detach_handlers():
    yield
    logging.getLogger(LOGGER_NAME).handlers.clear()


@pytest.fixture
def stub_router(tmp_path, settings):
    router = LLMRouter(
        [StubProvider("groq", content='{"ok": true}', tokens=3), StubProvider("local", available=False)],
        ResponseCache(tmp_path / "cli-cache"),
    )
    with patch("llm.cli.get_settings", return_value=settings), \
            patch("llm.cli.router_from_settings", return_value=router):
        yield router


def test_providers(stub_router, capsys):
    assert cli.main(["providers"]) == 0
    out = capsys.readouterr().out
    assert "groq\tavailable" in out
    assert "local\tunavailable" in out


def test_generate(stub_router, capsys):
    assert cli.main(["generate", "--prompt", "ping", "--max-tokens", "4"]) == 0
    assert '{"ok": true}' in capsys.readouterr().out


def test_generate_json(stub_router, capsys):
    assert cli.main(["generate", "--prompt", "ping", "--json"]) == 0
    assert '"ok": true' in capsys.readouterr().out


def test_clear_cache(stub_router, capsys):
    cli.main(["generate", "--prompt", "ping"])
    assert cli.main(["clear-cache"]) == 0
    assert "Removed 1 cached responses" in capsys.readouterr().out


def test_all_failed_exit_code(tmp_path, settings):
    router = LLMRouter([StubProvider("groq", error=ProviderError("down"))], ResponseCache(tmp_path / "c"))
    with patch("llm.cli.get_settings", return_value=settings), \
            patch("llm.cli.router_from_settings", return_value=router):
        assert cli.main(["generate", "--prompt", "ping"]) == 1


def test_disabled_exit_code(settings):
    with patch("llm.cli.get_settings", return_value=settings), \
            patch("llm.cli.router_from_settings", return_value=None):
        assert cli.main(["providers"]) == 1
