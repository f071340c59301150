"""
Tests for the stream translator and SSE framing.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import pytest

from gyanu.config.errors import ServiceUnavailableError

from .graph import StepEvent
from .models import ChatMessage, Intent, OrchestrationState, RoutingMetadata
from .streaming import StreamEvent, StreamPhase, convert_stream_events, error_frame, to_sse


def _state(**update: object) -> OrchestrationState:
    return OrchestrationState(messages=[ChatMessage(role="user", content="2+2?")]).model_copy(update=update)


async def _events(*items: StepEvent[OrchestrationState], fail: Exception | None = None) -> AsyncIterator:
    for item in items:
        yield item
    if fail is not None:
        raise fail


async def test_status_token_and_done_in_order() -> None:
    """Test phases, reasoning and answer tokens, then done with metadata."""
    routed = _state(routing_metadata=RoutingMetadata(intent=Intent.HEAVY_REASONING, confidence=0.9))
    reasoned = routed.model_copy(update={"reasoning_result": "x = 4"})
    answered = reasoned.model_copy(
        update={"messages": [*reasoned.messages, ChatMessage(role="assistant", content="It is 4!")]}
    )
    source = _events(
        StepEvent("start", "route", _state()),
        StepEvent("end", "route", routed, {"routing_metadata": routed.routing_metadata}),
        StepEvent("start", "heavy_reasoning", routed),
        StepEvent("end", "heavy_reasoning", reasoned, {"reasoning_result": "x = 4"}),
        StepEvent("start", "synthesize", reasoned),
        StepEvent("end", "synthesize", answered, {"messages": answered.messages[-1:]}),
    )

    events = [e async for e in convert_stream_events(source)]

    assert [(e.event, e.phase) for e in events] == [
        ("status", StreamPhase.ROUTING),
        ("status", StreamPhase.HEAVY_REASONING),
        ("token", StreamPhase.HEAVY_REASONING),
        ("status", StreamPhase.SYNTHESIS),
        ("token", StreamPhase.SYNTHESIS),
        ("done", StreamPhase.DONE),
    ]
    assert events[0].message == "Analyzing your question..."
    assert events[2].content == "x = 4"
    assert events[4].content == "It is 4!"
    assert events[-1].metadata["intent"] == "heavy_reasoning"
    assert events[-1].metadata["confidence"] == 0.9


async def test_error_emits_done_then_reraises() -> None:
    """Test failures end with an error-carrying done event and propagate."""
    source = _events(
        StepEvent("start", "route", _state()),
        fail=ServiceUnavailableError("reasoner"),
    )
    received: list[StreamEvent] = []

    with pytest.raises(ServiceUnavailableError):
        async for event in convert_stream_events(source):
            received.append(event)

    assert received[0].event == "status"
    assert received[-1].event == "done"
    assert "reasoner" in received[-1].error


def test_sse_frames() -> None:
    status = StreamEvent(event="status", phase=StreamPhase.ROUTING, message="Analyzing your question...")
    assert to_sse(status) == (
        'event: status\ndata: {"phase": "routing", "message": "Analyzing your question..."}\n\n'
    )

    token = StreamEvent(event="token", phase=StreamPhase.SYNTHESIS, content="Hi")
    assert to_sse(token) == 'event: token\ndata: {"content": "Hi"}\n\n'

    done = StreamEvent(event="done", phase=StreamPhase.DONE, metadata={"intent": "greeting"})
    assert json.loads(to_sse(done).split("data: ", 1)[1]) == {"metadata": {"intent": "greeting"}}

    assert error_frame("boom") == 'event: error\ndata: {"error": "boom"}\n\n'
