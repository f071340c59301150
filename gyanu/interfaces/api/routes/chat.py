"""
Chat Routes - Tutoring conversation and usage endpoints.

The JSON endpoint returns the full answer once the workflow finishes; the
stream endpoint sends progress as Server-Sent Events.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from gyanu.config.errors import ErrorCode, GyanuError
from gyanu.domains.orchestration import ChatMessage, TutorPipeline, UserContext
from gyanu.domains.orchestration.streaming import error_frame, to_sse
from gyanu.domains.resilience.models import CostSummary
from gyanu.interfaces.api.deps import get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_FAILURE_MESSAGE = "Something went wrong while preparing your answer. Please try again."


class ChatTurn(BaseModel):
    """One message of the conversation so far."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=4000)


class ChatRequest(BaseModel):
    """Chat request body."""

    messages: list[ChatTurn] = Field(..., min_length=1, max_length=50)
    grade: int | None = Field(default=None, ge=1, le=12)
    subject: str | None = None
    chapter: str | None = None
    user_id: str | None = None
    conversation_id: str | None = None


class StepTiming(BaseModel):
    name: str
    duration_ms: float


class ChatResponse(BaseModel):
    """Chat response."""

    answer: str
    metadata: dict[str, Any]
    steps: list[StepTiming]
    duration_ms: float


class UsageResponse(BaseModel):
    summary: CostSummary
    daily: list[dict[str, Any]]


def _unpack(request: ChatRequest) -> tuple[str, list[ChatMessage], UserContext]:
    """Split a request into the new message, prior turns and learner context."""
    *history, last = request.messages
    if last.role != "user":
        raise GyanuError(
            ErrorCode.VALIDATION_ERROR,
            "The last message must come from the user",
            {"role": last.role},
        )
    context = UserContext(
        grade=request.grade,
        subject=request.subject,
        chapter=request.chapter,
        user_id=request.user_id,
        conversation_id=request.conversation_id,
    )
    return last.content, [ChatMessage(role=t.role, content=t.content) for t in history], context


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    pipeline: TutorPipeline = Depends(get_pipeline),
) -> ChatResponse:
    """
    Answer the learner's latest message.

    - **messages**: Conversation so far, ending with the user's message
    - **grade / subject / chapter**: Curriculum context for retrieval
    - **conversation_id**: Enables per-conversation answer caching
    """
    message, history, context = _unpack(request)
    result = await pipeline.run(message, history=history, user_context=context)

    return ChatResponse(
        answer=result.answer,
        metadata=result.metadata(),
        steps=[StepTiming(name=s.name, duration_ms=round(s.duration_ms, 2)) for s in result.steps],
        duration_ms=round(result.total_duration_ms, 2),
    )


@router.post("/chat/stream")
async def chat_stream(
    request: ChatRequest,
    pipeline: TutorPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    """
    Answer the learner's latest message as Server-Sent Events.

    Emits ``status`` events per phase, ``token`` events for reasoning and
    the final answer, then ``done``. Failures add a trailing ``error`` event.
    """
    message, history, context = _unpack(request)

    async def events() -> AsyncIterator[str]:
        try:
            async for event in pipeline.stream(message, history=history, user_context=context):
                yield to_sse(event)
        except GyanuError as e:
            logger.warning("Stream ended with %s: %s", e.code.value, e.message)
            yield error_frame(e.message)
        except Exception:
            logger.exception("Stream failed")
            yield error_frame(STREAM_FAILURE_MESSAGE)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/usage", response_model=UsageResponse)
async def usage(
    days: int = Query(default=7, ge=1, le=90),
    pipeline: TutorPipeline = Depends(get_pipeline),
) -> UsageResponse:
    """Model usage and estimated cost since startup."""
    tracker = pipeline.cost_tracker
    if tracker is None:
        return UsageResponse(summary=CostSummary(), daily=[])
    return UsageResponse(summary=tracker.summary(), daily=tracker.daily_costs(days))
