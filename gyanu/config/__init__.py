"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    ConfigurationError,
    ErrorCode,
    GateTimeoutError,
    GyanuError,
    LLMError,
    RetrievalError,
    ServiceUnavailableError,
    WebSearchError,
    WorkflowError,
)
from .settings import BreakerConfig, Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "BreakerConfig",
    "get_settings",
    # Errors
    "ErrorCode",
    "GyanuError",
    "ServiceUnavailableError",
    "GateTimeoutError",
    "LLMError",
    "RetrievalError",
    "WebSearchError",
    "WorkflowError",
    "ConfigurationError",
]
