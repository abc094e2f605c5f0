"""
Agent System
============

The agent answers a chat message. It:
1. Recalls relevant turns from memory
2. Extracts what it knows about the user
3. Calls the model with GitHub tools, behind a circuit breaker and retries
4. Saves the exchange back to memory

This module provides:
- AgentOrchestrator: the per-request control loop
- ContextExtractor / ContextAssembler: user facts and model messages
- OpenAIToolModel: model invocation with tool-call resolution
- ToolExecutor: runs the tool calls the model asks for
"""

from oss_advisor.agent.core import AgentOrchestrator, AgentRun, APOLOGY_TEMPLATE
from oss_advisor.agent.context import (
    ContextAssembler,
    ContextExtractor,
    ExperienceLevel,
    UserContext,
    annotate_input,
)
from oss_advisor.agent.model import OpenAIToolModel, ToolCallingModel
from oss_advisor.agent.tools_executor import ToolExecutor

__all__ = [
    "AgentOrchestrator",
    "AgentRun",
    "APOLOGY_TEMPLATE",
    "ContextAssembler",
    "ContextExtractor",
    "ExperienceLevel",
    "UserContext",
    "annotate_input",
    "OpenAIToolModel",
    "ToolCallingModel",
    "ToolExecutor",
]
