"""
Logger Utility
==============

Context-aware logging for the advisor backend.

Every component gets its own named logger so a request can be followed
through the agent, the memory layer and the GitHub tools:

    [2024-05-02T10:30:00] [INFO] [Agent] Running agent (chat: abc123)
    [2024-05-02T10:30:01] [INFO] [Tools:github_issue_search] Resolved facebook/react

Two output formats are supported:
- pretty: colored, human-readable lines (default, colors only on a TTY)
- json:   one JSON object per line, for log collectors (LOG_FORMAT=json)

Usage:
    from oss_advisor.utils.logger import Logger

    logger = Logger("Memory")
    logger.info("Saved turn", {"conversation_id": "abc123"})
    logger.error("Search failed", error)
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, TextIO


class LogLevel(IntEnum):
    """Log levels; higher values are more severe."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVEL_NAMES = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}

_LEVEL_COLORS = {
    LogLevel.DEBUG: Colors.DEBUG,
    LogLevel.INFO: Colors.INFO,
    LogLevel.WARNING: Colors.WARNING,
    LogLevel.ERROR: Colors.ERROR,
}


def parse_log_level(value: str | None) -> LogLevel:
    """
    Parse a level name such as "debug" or "WARN".

    Unknown or empty values fall back to INFO.
    """
    if not value:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(value.strip().upper(), LogLevel.INFO)


def _format_from_env() -> str:
    value = os.getenv("LOG_FORMAT", "pretty").strip().lower()
    return "json" if value == "json" else "pretty"


class Logger:
    """
    A named logger with optional structured data.

    The minimum level and output format are read from LOG_LEVEL and
    LOG_FORMAT when the logger is created.

    Example:
        logger = Logger("Agent")
        logger.info("Attempt succeeded", {"attempt": 2})

        tool_logger = logger.child("ToolExec")   # [Agent:ToolExec]
        tool_logger.warning("Tool returned an error")
    """

    def __init__(self, context: str = ""):
        """
        Args:
            context: Component name shown in every line (e.g. "Memory")
        """
        self.context = context
        self._min_level = parse_log_level(os.getenv("LOG_LEVEL"))
        self._format = _format_from_env()

    def child(self, child_context: str) -> "Logger":
        """Create a logger whose context is nested under this one."""
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self._min_level

    def _render_pretty(
        self,
        level: LogLevel,
        message: str,
        data: dict[str, Any] | None,
        stream: TextIO
    ) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""
        level_name = "WARN" if level == LogLevel.WARNING else level.name

        use_color = getattr(stream, "isatty", lambda: False)()
        if use_color:
            color = _LEVEL_COLORS[level]
            line = (
                f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
                f"{color}[{level_name}]{Colors.RESET} "
                f"{context_str}{message}"
            )
        else:
            line = f"[{timestamp}] [{level_name}] {context_str}{message}"

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            line += f"\n{Colors.DIM}{data_str}{Colors.RESET}" if use_color else f"\n{data_str}"
        return line

    def _render_json(self, level: LogLevel, message: str, data: dict[str, Any] | None) -> str:
        record: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(timespec="milliseconds"),
            "level": level.name.lower(),
            "context": self.context,
            "message": message,
        }
        if data:
            record["data"] = data
        return json.dumps(record, default=str)

    def _log(
        self,
        level: LogLevel,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if not self.is_enabled_for(level):
            return

        # Errors go to stderr so they survive stdout redirection
        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout

        if self._format == "json":
            line = self._render_json(level, message, data)
        else:
            line = self._render_pretty(level, message, data, stream)

        print(line, file=stream, flush=True)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Detailed diagnostics, shown only with LOG_LEVEL=debug."""
        self._log(LogLevel.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Normal operational events."""
        self._log(LogLevel.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Recoverable problems: a failed attempt, a skipped memory write."""
        self._log(LogLevel.WARNING, message, data)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        data: dict[str, Any] | None = None
    ) -> None:
        """
        Log an error, optionally with the exception that caused it.

        Args:
            message: What failed
            error: The exception; its type and message are included
            data: Extra structured fields
        """
        payload = dict(data) if data else {}
        if error is not None:
            payload["error_type"] = type(error).__name__
            payload["error_message"] = str(error)
        self._log(LogLevel.ERROR, message, payload or None)


# Default logger for process-level messages
logger = Logger("Advisor")
