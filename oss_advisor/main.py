"""
Open Source Advisor - Main Entry Point
======================================

This is the main entry point for the backend. It:
1. Loads and validates configuration (exits if anything required is missing)
2. Builds the shared components (memory, GitHub tools, model, circuit breaker)
3. Creates the FastAPI app
4. Serves it with uvicorn

Run with:
    python -m oss_advisor.main

Or after installing:
    oss-advisor
"""

import sys

import uvicorn
from fastapi import FastAPI
from openai import AsyncOpenAI

from oss_advisor.agent import AgentOrchestrator, OpenAIToolModel
from oss_advisor.api import create_app
from oss_advisor.memory import EmbeddingGenerator, MemoryStore, create_vector_store
from oss_advisor.resilience import CircuitBreaker, RetryPolicy
from oss_advisor.tools import ToolRegistry
from oss_advisor.tools.github_client import GitHubClient
from oss_advisor.tools.github_tools import register_github_tools
from oss_advisor.utils.config import Config, get_config
from oss_advisor.utils.errors import ConfigError
from oss_advisor.utils.logger import Logger, parse_log_level

main_logger = Logger("Main")


def build_agent(config: Config) -> AgentOrchestrator:
    """
    Wire up the process-wide components.

    Everything built here is created once and shared by all requests.
    """
    main_logger.info("Initializing memory...")
    openai_client = AsyncOpenAI(api_key=config.openai.api_key)
    memory = MemoryStore(
        vector_store=create_vector_store(config.vector_store),
        embedder=EmbeddingGenerator(model=config.openai.embedding_model, client=openai_client),
    )

    main_logger.info("Setting up tools...")
    registry = ToolRegistry()
    register_github_tools(registry, GitHubClient(token=config.github.token))

    main_logger.info(f"Creating agent with model: {config.openai.model}")
    model = OpenAIToolModel(
        client=openai_client,
        model=config.openai.model,
        registry=registry,
        max_tool_rounds=config.agent.max_tool_rounds,
        temperature=config.openai.temperature,
    )

    return AgentOrchestrator(
        model=model,
        memory=memory,
        circuit_breaker=CircuitBreaker(
            failure_threshold=config.circuit_breaker.failure_threshold,
            reset_timeout=config.circuit_breaker.reset_timeout_seconds,
        ),
        retry_policy=RetryPolicy(max_attempts=config.agent.max_attempts),
        timeout_seconds=config.agent.timeout_seconds,
        memory_k=config.agent.memory_k,
    )


def build_app() -> FastAPI:
    """Application factory for uvicorn (`--factory`)."""
    return create_app(build_agent(get_config()))


def run():
    """
    Synchronous entry point.

    This is called when running with the `oss-advisor` command.
    """
    main_logger.info("Starting Open Source Advisor...")

    try:
        config = get_config()
    except ConfigError as e:
        main_logger.error("FATAL: invalid configuration", e)
        sys.exit(1)

    app = create_app(build_agent(config))

    main_logger.info(f"Server running at http://{config.server.host}:{config.server.port}")
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=parse_log_level(config.log_level).name.lower(),
    )


if __name__ == "__main__":
    run()
