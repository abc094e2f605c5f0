"""
HTTP API
========

FastAPI application exposing POST /api/chat.
"""

from oss_advisor.api.app import create_app, parse_chat_request

__all__ = ["create_app", "parse_chat_request"]
