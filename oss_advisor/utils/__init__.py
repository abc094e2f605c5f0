"""
Utilities Module
================

Common utilities shared across the application:
- logger: Context-aware logging with levels and structured data
- config: Centralized, validated configuration
- errors: Application exception hierarchy
"""

from oss_advisor.utils.logger import Logger, logger
from oss_advisor.utils.config import get_config, Config
from oss_advisor.utils.errors import AdvisorError, ConfigError

__all__ = ["Logger", "logger", "get_config", "Config", "AdvisorError", "ConfigError"]
