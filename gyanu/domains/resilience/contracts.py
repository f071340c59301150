"""
Resilience Contracts - Interfaces for the protected invocation layer.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import ModelResponse


@runtime_checkable
class ChatModel(Protocol):
    """Contract for a single model role's endpoint."""

    @property
    def model_name(self) -> str:
        """Model identifier used for cost attribution."""
        ...

    async def invoke(self, messages: list[dict[str, str]]) -> ModelResponse:
        """
        Send a chat conversation to the model.

        Args:
            messages: Role/content dicts, system prompt first

        Returns:
            Model response with token counts
        """
        ...


@runtime_checkable
class CostTracker(Protocol):
    """Contract for usage accounting."""

    async def track_cost(
        self,
        query: str,
        response: str,
        model_name: str,
        user_id: str | None = None,
        *,
        conversation_id: str | None = None,
        chapter_id: str | None = None,
        is_cached: bool = False,
    ) -> Any:
        """Record a completed model call."""
        ...


@runtime_checkable
class ResponseCache(Protocol):
    """Contract for response caching."""

    async def get(self, key: str) -> Any | None:
        """Get a cached value, or None when absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Cache a value."""
        ...

    async def invalidate(self, pattern: str) -> int:
        """Invalidate entries matching a regex pattern."""
        ...
