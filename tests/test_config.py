"""Tests for configuration, logging and the entry point."""

import json
from unittest.mock import patch

import pytest

from oss_advisor import main
from oss_advisor.utils import config as config_module
from oss_advisor.utils.config import get_config, load_config, reset_config
from oss_advisor.utils.errors import ConfigError
from oss_advisor.utils.logger import Logger, LogLevel, parse_log_level

REQUIRED = {
    "OPENAI_API_KEY": "sk-test",
    "VECTOR_STORE_URL": "https://demo.supabase.co",
    "VECTOR_STORE_KEY": "service-key",
    "GITHUB_TOKEN": "ghp_test",
}

OPTIONAL = (
    "OPENAI_MODEL", "OPENAI_TEMPERATURE", "AGENT_MAX_ATTEMPTS", "AGENT_TIMEOUT_SECONDS",
    "AGENT_MEMORY_K", "AGENT_MAX_TOOL_ROUNDS", "CIRCUIT_FAILURE_THRESHOLD",
    "CIRCUIT_RESET_TIMEOUT_SECONDS", "HOST", "PORT", "LOG_LEVEL",
)


@pytest.fixture
def env(monkeypatch):
    """A clean environment with only the required variables set."""
    monkeypatch.setattr(config_module, "load_dotenv", lambda: False)
    for name in OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    reset_config()
    yield monkeypatch
    reset_config()


class TestLoadConfig:
    """Tests for load_config and get_config."""

    def test_defaults(self, env):
        config = load_config()

        assert config.openai.api_key == "sk-test"
        assert config.openai.model == "gpt-4o-mini"
        assert config.openai.embedding_model == "text-embedding-3-small"
        assert config.vector_store.table_name == "conversation_memory"
        assert config.agent.max_attempts == 3
        assert config.agent.timeout_seconds == 30.0
        assert config.agent.memory_k == 6
        assert config.circuit_breaker.failure_threshold == 5
        assert config.circuit_breaker.reset_timeout_seconds == 30.0
        assert config.server.port == 3001

    @pytest.mark.parametrize("name", list(REQUIRED))
    def test_missing_required_variable(self, env, name):
        env.delenv(name)

        with pytest.raises(ConfigError, match=name):
            load_config()

    def test_blank_required_variable(self, env):
        env.setenv("GITHUB_TOKEN", "   ")

        with pytest.raises(ConfigError, match="GITHUB_TOKEN"):
            load_config()

    def test_overrides(self, env):
        env.setenv("OPENAI_MODEL", "gpt-4o")
        env.setenv("AGENT_TIMEOUT_SECONDS", "12.5")
        env.setenv("CIRCUIT_FAILURE_THRESHOLD", "2")
        env.setenv("PORT", "8080")

        config = load_config()

        assert config.openai.model == "gpt-4o"
        assert config.agent.timeout_seconds == 12.5
        assert config.circuit_breaker.failure_threshold == 2
        assert config.server.port == 8080

    def test_invalid_numbers_fall_back(self, env):
        env.setenv("PORT", "not-a-port")
        env.setenv("OPENAI_TEMPERATURE", "warm")

        config = load_config()

        assert config.server.port == 3001
        assert config.openai.temperature == 0.3

    def test_get_config_is_cached(self, env):
        first = get_config()
        env.setenv("OPENAI_MODEL", "changed")

        assert get_config() is first

        reset_config()
        assert get_config().openai.model == "changed"


class TestMain:

    def test_invalid_configuration_exits(self, env):
        env.delenv("OPENAI_API_KEY")

        with patch.object(main.uvicorn, "run") as uvicorn_run:
            with pytest.raises(SystemExit) as exc_info:
                main.run()

        assert exc_info.value.code == 1
        uvicorn_run.assert_not_called()

    def test_serves_app_with_configured_address(self, env, tmp_path):
        env.setenv("VECTOR_STORE_URL", f"file://{tmp_path}")
        env.setenv("PORT", "4000")
        env.setenv("LOG_LEVEL", "warn")

        with patch.object(main.uvicorn, "run") as uvicorn_run:
            main.run()

        kwargs = uvicorn_run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 4000
        assert kwargs["log_level"] == "warning"


class TestLogger:
    """Tests for the Logger utility."""

    def test_parse_log_level(self):
        assert parse_log_level("debug") == LogLevel.DEBUG
        assert parse_log_level("WARN") == LogLevel.WARNING
        assert parse_log_level("nonsense") == LogLevel.INFO
        assert parse_log_level(None) == LogLevel.INFO

    def test_level_filtering(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("LOG_FORMAT", "pretty")
        logger = Logger("Memory")

        logger.info("hidden")
        logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "[WARN] [Memory] shown" in out

    def test_json_format_with_error(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "json")
        logger = Logger("Agent").child("Retry")

        logger.error("Attempt failed", RuntimeError("503"), {"attempt": 2})

        record = json.loads(capsys.readouterr().err.strip())
        assert record["level"] == "error"
        assert record["context"] == "Agent:Retry"
        assert record["data"] == {
            "attempt": 2,
            "error_type": "RuntimeError",
            "error_message": "503",
        }
