"""
Configuration Management
========================

All environment variables are read, validated and typed here.

Required settings (startup aborts without them):
- OPENAI_API_KEY:   key for the chat and embedding models
- VECTOR_STORE_URL: https://<project>.supabase.co, or file:///path for a
                    local numpy-backed store
- VECTOR_STORE_KEY: service key for the vector store
- GITHUB_TOKEN:     personal access token for the GitHub REST API

Usage:
    from oss_advisor.utils.config import get_config

    config = get_config()
    print(config.openai.model)
    print(config.agent.timeout_seconds)
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from oss_advisor.utils.errors import ConfigError
from oss_advisor.utils.logger import Logger

logger = Logger("Config")

# Fixed constants for the memory layer
EMBEDDING_MODEL = "text-embedding-3-small"
MEMORY_TABLE_NAME = "conversation_memory"


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ConfigError: If the variable is unset or empty
    """
    value = os.getenv(name)
    if not value or not value.strip():
        raise ConfigError(
            f"Missing required environment variable: {name}. "
            f"Please ensure {name} is set in your .env file."
        )
    return value.strip()


def _optional(name: str, default: str) -> str:
    return os.getenv(name) or default


def _optional_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"{name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"{name} is not a valid number, using default: {default}")
        return default


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class OpenAIConfig:
    """Chat and embedding model settings."""
    api_key: str
    model: str
    temperature: float
    embedding_model: str = EMBEDDING_MODEL


@dataclass(frozen=True)
class VectorStoreConfig:
    """Conversation memory backend."""
    url: str
    key: str
    table_name: str = MEMORY_TABLE_NAME


@dataclass(frozen=True)
class GitHubConfig:
    """GitHub REST API access."""
    token: str


@dataclass(frozen=True)
class AgentConfig:
    """Orchestrator limits."""
    max_attempts: int
    timeout_seconds: float
    memory_k: int
    max_tool_rounds: int


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """When to stop calling the model, and for how long."""
    failure_threshold: int
    reset_timeout_seconds: float


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.github.token
        config.circuit_breaker.failure_threshold
    """
    openai: OpenAIConfig
    vector_store: VectorStoreConfig
    github: GitHubConfig
    agent: AgentConfig
    circuit_breaker: CircuitBreakerConfig
    server: ServerConfig
    log_level: str


def load_config() -> Config:
    """
    Load and validate all configuration from the environment.

    The .env file is loaded first; real environment variables win.

    Raises:
        ConfigError: If required configuration is missing
    """
    load_dotenv()

    return Config(
        openai=OpenAIConfig(
            api_key=_required("OPENAI_API_KEY"),
            model=_optional("OPENAI_MODEL", "gpt-4o-mini"),
            temperature=_optional_float("OPENAI_TEMPERATURE", 0.3),
        ),
        vector_store=VectorStoreConfig(
            url=_required("VECTOR_STORE_URL"),
            key=_required("VECTOR_STORE_KEY"),
        ),
        github=GitHubConfig(
            token=_required("GITHUB_TOKEN"),
        ),
        agent=AgentConfig(
            max_attempts=_optional_int("AGENT_MAX_ATTEMPTS", 3),
            timeout_seconds=_optional_float("AGENT_TIMEOUT_SECONDS", 30.0),
            memory_k=_optional_int("AGENT_MEMORY_K", 6),
            max_tool_rounds=_optional_int("AGENT_MAX_TOOL_ROUNDS", 3),
        ),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=_optional_int("CIRCUIT_FAILURE_THRESHOLD", 5),
            reset_timeout_seconds=_optional_float("CIRCUIT_RESET_TIMEOUT_SECONDS", 30.0),
        ),
        server=ServerConfig(
            host=_optional("HOST", "0.0.0.0"),
            port=_optional_int("PORT", 3001),
        ),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """Get the process-wide configuration, loading it on first access."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
