"""Utility modules for AWS client management, configuration and logging."""

from ggtest.utils.aws_client import AWSClientManager, ErrorCategory, classify_error
from ggtest.utils.config import ConfigurationError, HarnessConfig
from ggtest.utils.logging import ActionType, LogEntry, LogLevel, ResourceLogger

__all__ = [
    "AWSClientManager",
    "ErrorCategory",
    "classify_error",
    "ConfigurationError",
    "HarnessConfig",
    "ActionType",
    "LogEntry",
    "LogLevel",
    "ResourceLogger",
]
