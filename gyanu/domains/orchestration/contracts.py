"""
Orchestration Contracts - Interfaces for the orchestration domain.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from .models import ChatMessage, TutorResult, UserContext
from .streaming import StreamEvent


@runtime_checkable
class Tutor(Protocol):
    """Contract for answering learner messages."""

    async def run(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        user_context: UserContext | None = None,
    ) -> TutorResult:
        """
        Answer a message.

        Args:
            message: The learner's latest message
            history: Earlier turns, oldest first
            user_context: Grade, subject, chapter and ids

        Returns:
            Final answer with routing metadata and step timings
        """
        ...

    def stream(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        user_context: UserContext | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Answer a message as a sequence of progress events."""
        ...
