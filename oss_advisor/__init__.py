"""
Open Source Advisor - Conversational GitHub Assistant
=====================================================

A chat backend that routes user messages to a tool-using LLM agent, which
can search GitHub repositories, issues and profiles, while remembering the
conversation in a vector store.

This package provides:
- Agent orchestration with retries, backoff and a circuit breaker
- Conversation memory with similarity search and user-fact extraction
- GitHub tools following the MCP pattern
- A FastAPI HTTP endpoint (POST /api/chat)
"""

__version__ = "1.0.0"
