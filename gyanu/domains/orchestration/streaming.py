"""
Stream Translator - Workflow step events to client-facing progress events.

Wire format (Server-Sent Events):
    event: status\\ndata: {"phase": ..., "message": ...}\\n\\n
    event: token\\ndata: {"content": ...}\\n\\n
    event: done\\ndata: {"metadata": {...}} or {"error": ...}\\n\\n
    event: error\\ndata: {"error": ...}\\n\\n
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .models import OrchestrationState

if TYPE_CHECKING:
    from .graph import StepEvent

logger = logging.getLogger(__name__)

__all__ = [
    "StreamEvent",
    "StreamPhase",
    "convert_stream_events",
    "error_frame",
    "to_sse",
]


class StreamPhase(str, Enum):
    ROUTING = "routing"
    TEXTBOOK_RETRIEVAL = "textbook_retrieval"
    WEB_SEARCH = "web_search"
    HEAVY_REASONING = "heavy_reasoning"
    SYNTHESIS = "synthesis"
    DONE = "done"


STEP_PHASES: dict[str, StreamPhase] = {
    "route": StreamPhase.ROUTING,
    "textbook_retrieval": StreamPhase.TEXTBOOK_RETRIEVAL,
    "web_search": StreamPhase.WEB_SEARCH,
    "heavy_reasoning": StreamPhase.HEAVY_REASONING,
    "synthesize": StreamPhase.SYNTHESIS,
}

PHASE_MESSAGES: dict[StreamPhase, str] = {
    StreamPhase.ROUTING: "Analyzing your question...",
    StreamPhase.TEXTBOOK_RETRIEVAL: "Searching textbook for relevant content...",
    StreamPhase.WEB_SEARCH: "Searching the web for current information...",
    StreamPhase.HEAVY_REASONING: "Thinking deeply about this problem...",
    StreamPhase.SYNTHESIS: "Generating response...",
    StreamPhase.DONE: "Response completed",
}


class StreamEvent(BaseModel):
    """One progress event for the client."""

    event: str  # status, token, done, error
    phase: StreamPhase
    message: str | None = None
    content: str | None = None
    error: str | None = None
    metadata: dict[str, Any] | None = None

    model_config = {"frozen": True}

    def payload(self) -> dict[str, Any]:
        if self.event == "status":
            return {"phase": self.phase.value, "message": self.message}
        if self.event == "token":
            return {"content": self.content}
        if self.error is not None:
            return {"error": self.error}
        return {"metadata": self.metadata} if self.metadata else {}


async def convert_stream_events(
    events: AsyncIterator[StepEvent[OrchestrationState]],
) -> AsyncIterator[StreamEvent]:
    """
    Translate graph step events.

    Emits a status event as each step begins, token events for reasoning
    and synthesis output, and a terminal done event. On failure a done
    event carrying the error is emitted before the exception is re-raised.
    """
    state: OrchestrationState | None = None
    try:
        async for step_event in events:
            state = step_event.state
            phase = STEP_PHASES.get(step_event.step)
            if phase is None:
                continue

            if step_event.kind == "start":
                yield StreamEvent(event="status", phase=phase, message=PHASE_MESSAGES[phase])
                continue

            if phase is StreamPhase.HEAVY_REASONING and step_event.update.get("reasoning_result"):
                yield StreamEvent(event="token", phase=phase, content=step_event.update["reasoning_result"])
            elif phase is StreamPhase.SYNTHESIS and state.answer:
                yield StreamEvent(event="token", phase=phase, content=state.answer)

        metadata = None
        if state is not None:
            routing = state.routing_metadata
            metadata = {
                "intent": routing.intent.value,
                "confidence": routing.confidence,
                "timestamp": routing.timestamp.isoformat(),
            }
        yield StreamEvent(
            event="done",
            phase=StreamPhase.DONE,
            message=PHASE_MESSAGES[StreamPhase.DONE],
            metadata=metadata,
        )
    except Exception as e:
        logger.error("Stream failed: %s", e)
        yield StreamEvent(event="done", phase=StreamPhase.DONE, error=str(e) or "An error occurred during streaming")
        raise


def to_sse(event: StreamEvent) -> str:
    """Render an event as an SSE frame."""
    return f"event: {event.event}\ndata: {json.dumps(event.payload())}\n\n"


def error_frame(message: str) -> str:
    return f"event: error\ndata: {json.dumps({'error': message})}\n\n"
