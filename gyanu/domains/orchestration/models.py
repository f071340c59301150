"""
Orchestration Models - Data types for the tutoring workflow.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class Intent(str, Enum):
    """Router classifications of a learner's message."""

    TEXTBOOK = "textbook"
    WEB_SEARCH = "web_search"
    HEAVY_REASONING = "heavy_reasoning"
    FOLLOW_UP = "follow_up"
    GREETING = "greeting"
    OFF_TOPIC = "off_topic"
    UNROUTED = "unrouted"  # Before the router has run

    @property
    def acquires_knowledge(self) -> bool:
        return self in (Intent.TEXTBOOK, Intent.WEB_SEARCH, Intent.HEAVY_REASONING)


class Persona(str, Enum):
    """Synthesis instruction templates."""

    GREETING = "greeting"
    OFF_TOPIC = "off_topic"
    KNOWLEDGE = "knowledge"


# Synthesis persona per intent; anything unlisted answers from knowledge
PERSONA_BY_INTENT: dict[Intent, Persona] = {
    Intent.GREETING: Persona.GREETING,
    Intent.OFF_TOPIC: Persona.OFF_TOPIC,
}


def persona_for(intent: Intent) -> Persona:
    return PERSONA_BY_INTENT.get(intent, Persona.KNOWLEDGE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoutingMetadata(BaseModel):
    """Router decision for the current turn."""

    intent: Intent = Intent.UNROUTED
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=_utcnow)
    reason: str = ""
    query: str | None = None  # Extracted search query or reasoning prompt

    model_config = {"frozen": True}


class UserContext(BaseModel):
    """Who is asking, and where in the curriculum they are."""

    grade: int | None = None
    subject: str | None = None
    chapter: str | None = None
    user_id: str | None = None
    conversation_id: str | None = None

    model_config = {"frozen": True}


class ChatMessage(BaseModel):
    """Single conversation turn."""

    role: Literal["system", "user", "assistant"]
    content: str

    model_config = {"frozen": True}

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class OrchestrationState(BaseModel):
    """Per-request workflow state, updated only by merging step outputs."""

    messages: list[ChatMessage] = Field(default_factory=list)
    user_context: UserContext = Field(default_factory=UserContext)
    requires_heavy_reasoning: bool = False
    routing_metadata: RoutingMetadata = Field(default_factory=RoutingMetadata)
    retrieved_context: str = ""
    web_search_context: str = ""
    reasoning_result: str = ""

    @property
    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return ""

    @property
    def answer(self) -> str:
        """Latest assistant turn, if synthesis has run."""
        if self.messages and self.messages[-1].role == "assistant":
            return self.messages[-1].content
        return ""


class StepRecord(BaseModel):
    """Timing of a single workflow step."""

    name: str
    status: str  # completed, failed
    duration_ms: float = 0.0
    error: str | None = None


class TutorResult(BaseModel):
    """Outcome of one tutoring turn."""

    answer: str
    routing: RoutingMetadata
    state: OrchestrationState
    steps: list[StepRecord] = Field(default_factory=list)
    total_duration_ms: float = 0.0

    def metadata(self) -> dict[str, Any]:
        return {
            "intent": self.routing.intent.value,
            "confidence": self.routing.confidence,
            "timestamp": self.routing.timestamp.isoformat(),
        }
