"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from gyanu.config.errors import ErrorCode, GyanuError

    raise GyanuError(ErrorCode.RETRIEVAL_FAILED, "Vector store unreachable")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Resilience errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATE_TIMEOUT = "GATE_TIMEOUT"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"
    LLM_AUTH_FAILED = "LLM_AUTH_FAILED"

    # Knowledge acquisition errors
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"
    WEB_SEARCH_FAILED = "WEB_SEARCH_FAILED"

    # Workflow errors
    WORKFLOW_INVALID_TRANSITION = "WORKFLOW_INVALID_TRANSITION"
    WORKFLOW_INVALID_STATE = "WORKFLOW_INVALID_STATE"

    # Configuration errors
    CONFIG_MISSING = "CONFIG_MISSING"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"


class GyanuError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ServiceUnavailableError(GyanuError):
    """A model role is refusing calls because its circuit is open."""

    def __init__(self, service: str, details: dict[str, Any] | None = None) -> None:
        self.service = service
        super().__init__(
            ErrorCode.SERVICE_UNAVAILABLE,
            f"The {service} service is temporarily unavailable. Please try again shortly.",
            {"service": service, **(details or {})},
        )


class GateTimeoutError(GyanuError):
    """No concurrency slot became free within the wait bound."""

    def __init__(self, timeout: float, details: dict[str, Any] | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            ErrorCode.GATE_TIMEOUT,
            f"Too many concurrent requests; no slot freed within {timeout:g}s",
            {"timeout": timeout, **(details or {})},
        )


# Domain-specific exceptions for cleaner imports
class LLMError(GyanuError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class RetrievalError(GyanuError):
    """Curriculum retrieval errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.RETRIEVAL_FAILED, message, details)


class WebSearchError(GyanuError):
    """Web search errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.WEB_SEARCH_FAILED, message, details)


class WorkflowError(GyanuError):
    """Malformed graph definitions, transitions or state updates."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.WORKFLOW_INVALID_TRANSITION, message, details)


class ConfigurationError(GyanuError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.CONFIG_MISSING, message, details)
