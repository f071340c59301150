"""
Tests for the tutor steps, run end to end through the workflow graph.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from gyanu.config.errors import ServiceUnavailableError
from gyanu.domains.resilience.breaker import CircuitBreakerRegistry
from gyanu.domains.resilience.cache import ResponseCacheImpl
from gyanu.domains.resilience.gate import ConcurrencyGate
from gyanu.domains.resilience.invoker import ProtectedInvoker
from gyanu.domains.resilience.models import ModelResponse, ModelRole
from gyanu.domains.search.models import ChunkResult, WebResult

from .models import ChatMessage, Intent, OrchestrationState, RoutingMetadata, UserContext
from .pipeline import TutorPipeline
from .steps import (
    NO_TEXTBOOK_CONTENT,
    RETRIEVAL_FAILED,
    WEB_SEARCH_FAILED,
    TutorSteps,
    cache_scope,
    parse_routing,
    select_branch,
)


class ScriptedModel:
    """Returns a fixed reply and records the messages it was sent."""

    def __init__(self, name: str, reply: str) -> None:
        self.model_name = name
        self.reply = reply
        self.calls: list[list[dict[str, str]]] = []

    async def invoke(self, messages: list[dict[str, str]]) -> ModelResponse:
        self.calls.append(messages)
        return ModelResponse(content=self.reply, model=self.model_name)


def _router_reply(intent: str, confidence: float = 0.9, query: str | None = None) -> str:
    return json.dumps({"intent": intent, "confidence": confidence, "query": query, "reason": "test"})


def _models(router_reply: str) -> dict[ModelRole, ScriptedModel]:
    return {
        ModelRole.ROUTER: ScriptedModel("qwen:3.5", router_reply),
        ModelRole.REASONER: ScriptedModel("deepseek-v3.1:671b-cloud", "Step 1: x = 4"),
        ModelRole.SYNTHESIS: ScriptedModel("qwen:3.5", "Here you go! 🐘"),
    }


def _pipeline(
    models: dict[ModelRole, ScriptedModel],
    retriever: AsyncMock | None = None,
    web: AsyncMock | None = None,
    breakers: CircuitBreakerRegistry | None = None,
) -> TutorPipeline:
    invoker = ProtectedInvoker(
        models=models,  # type: ignore[arg-type]
        gate=ConcurrencyGate(capacity=5, timeout=1.0),
        breakers=breakers or CircuitBreakerRegistry(),
        cache=ResponseCacheImpl(),
    )
    return TutorPipeline(invoker, retriever=retriever, web_search_engine=web)


CONTEXT = UserContext(grade=7, subject="Science", user_id="student-1", conversation_id="conv-1")


def _synthesis_system_prompt(models: dict[ModelRole, ScriptedModel]) -> str:
    return models[ModelRole.SYNTHESIS].calls[-1][0]["content"]


# --- Scenarios ---


async def test_greeting_uses_greeting_persona() -> None:
    """Test a greeting skips acquisition and synthesizes a greeting."""
    models = _models(_router_reply("greeting", 0.95))
    retriever = AsyncMock()
    result = await _pipeline(models, retriever=retriever).run("Hello Gyanu!", user_context=CONTEXT)

    state = result.state
    assert result.routing.intent is Intent.GREETING
    assert result.routing.confidence == 0.95
    assert state.requires_heavy_reasoning is False
    assert state.retrieved_context == ""
    assert state.web_search_context == ""
    assert state.reasoning_result == ""
    retriever.search.assert_not_called()
    assert "greeting you" in _synthesis_system_prompt(models)
    assert result.answer == "Here you go! 🐘"
    assert [s.name for s in result.steps] == ["route", "textbook_retrieval", "synthesize"]


async def test_textbook_chunks_reach_synthesis() -> None:
    """Test retrieved chunks are formatted and handed to the knowledge persona."""
    models = _models(_router_reply("textbook", 0.8, "photosynthesis"))
    retriever = AsyncMock()
    retriever.search.return_value = [
        ChunkResult(content="Plants make food using sunlight.", heading_hierarchy=["Nutrition", "Photosynthesis"]),
        ChunkResult(content="Chlorophyll traps light energy.", heading_hierarchy=["Nutrition"]),
    ]

    result = await _pipeline(models, retriever=retriever).run("How do plants eat?", user_context=CONTEXT)

    context = result.state.retrieved_context
    assert "[1] (Nutrition > Photosynthesis): Plants make food using sunlight." in context
    assert "[2] (Nutrition): Chlorophyll traps light energy." in context
    query, top_k, filters = retriever.search.await_args.args
    assert query == "photosynthesis"
    assert top_k == 5
    assert (filters.subject, filters.grade, filters.chapter) == ("Science", 7, None)

    system = _synthesis_system_prompt(models)
    assert "KNOWLEDGE PAYLOAD" in system
    assert "Plants make food using sunlight." in system
    assert "Chlorophyll traps light energy." in system


async def test_open_reasoner_breaker_propagates() -> None:
    """Test an open reasoner circuit escapes the workflow naming the reasoner."""
    models = _models(_router_reply("heavy_reasoning", 0.9, "Solve x^2 = 16"))
    breakers = CircuitBreakerRegistry()
    breakers.force_open(ModelRole.REASONER)

    with pytest.raises(ServiceUnavailableError) as exc_info:
        await _pipeline(models, breakers=breakers).run("Solve x^2 = 16", user_context=CONTEXT)

    assert exc_info.value.service == "reasoner"
    assert models[ModelRole.SYNTHESIS].calls == []


async def test_web_search_unconfigured_placeholder() -> None:
    """Test a missing search endpoint yields a labeled placeholder and still synthesizes."""
    models = _models(_router_reply("web_search", 0.7, "Chandrayaan-3 landing date"))
    result = await _pipeline(models).run("When did Chandrayaan-3 land?", user_context=CONTEXT)

    assert "Chandrayaan-3 landing date" in result.state.web_search_context
    assert "not configured" in result.state.web_search_context
    assert result.steps[-1].name == "synthesize"
    assert result.answer


async def test_heavy_reasoning_result_reaches_synthesis() -> None:
    models = _models(_router_reply("heavy_reasoning", 0.9, "Solve x + 2 = 6"))
    result = await _pipeline(models).run("Solve x + 2 = 6", user_context=CONTEXT)

    assert result.state.requires_heavy_reasoning is True
    assert result.state.reasoning_result == "Step 1: x = 4"
    assert "Expert Reasoning Result:\nStep 1: x = 4" in _synthesis_system_prompt(models)
    reasoner_messages = models[ModelRole.REASONER].calls[0]
    assert "step-by-step" in reasoner_messages[0]["content"]
    assert reasoner_messages[-1] == {"role": "user", "content": "Solve x + 2 = 6"}


async def test_off_topic_persona() -> None:
    models = _models(_router_reply("off_topic", 0.85))
    result = await _pipeline(models).run("Which video game is best?", user_context=CONTEXT)

    assert result.state.retrieved_context == ""
    assert "not about their studies" in _synthesis_system_prompt(models)


async def test_unparseable_router_output_defaults_to_textbook() -> None:
    models = _models("I think this is about plants")
    retriever = AsyncMock()
    retriever.search.return_value = []

    result = await _pipeline(models, retriever=retriever).run("plants?", user_context=CONTEXT)

    assert result.routing.intent is Intent.TEXTBOOK
    assert result.state.retrieved_context == NO_TEXTBOOK_CONTENT
    assert retriever.search.await_args.args[0] == "plants?"


# --- Sentinels ---


def _textbook_state() -> OrchestrationState:
    return TutorPipeline.initial_state("What is light?", user_context=CONTEXT).model_copy(
        update={"routing_metadata": RoutingMetadata(intent=Intent.TEXTBOOK, confidence=0.9, query="light")}
    )


async def test_retrieval_failure_sentinel_is_idempotent() -> None:
    """Test repeated failures always give the same sentinel and never raise."""
    retriever = AsyncMock()
    retriever.search.side_effect = ConnectionError("vector store down")
    steps = TutorSteps(AsyncMock(), retriever=retriever)

    outputs = [await steps.textbook_retrieval(_textbook_state()) for _ in range(3)]

    assert outputs == [{"retrieved_context": RETRIEVAL_FAILED}] * 3


async def test_retrieval_without_store_degrades() -> None:
    steps = TutorSteps(AsyncMock())
    assert await steps.textbook_retrieval(_textbook_state()) == {"retrieved_context": RETRIEVAL_FAILED}


async def test_retrieval_skipped_for_follow_up() -> None:
    retriever = AsyncMock()
    steps = TutorSteps(AsyncMock(), retriever=retriever)
    state = _textbook_state().model_copy(update={"routing_metadata": RoutingMetadata(intent=Intent.FOLLOW_UP)})

    assert await steps.textbook_retrieval(state) == {}
    retriever.search.assert_not_called()


async def test_web_search_failure_sentinel_is_idempotent() -> None:
    web = AsyncMock()
    web.search.side_effect = ConnectionError("search engine down")
    steps = TutorSteps(AsyncMock(), web_search_engine=web)
    state = _textbook_state()

    outputs = [await steps.web_search(state) for _ in range(3)]

    assert outputs == [{"web_search_context": WEB_SEARCH_FAILED}] * 3


async def test_web_search_ranks_truncates_and_caches() -> None:
    """Test results are ranked, cut to three and reused from the short-lived cache."""
    web = AsyncMock()
    web.search.return_value = [
        WebResult(title=f"Site {i}", content="text", url=f"https://site{i}.com") for i in range(4)
    ] + [WebResult(title="Wiki", content="Light is energy.", url="https://en.wikipedia.org/wiki/Light")]
    steps = TutorSteps(AsyncMock(), web_search_engine=web)
    state = _textbook_state()

    first = await steps.web_search(state)
    second = await steps.web_search(state)

    text = first["web_search_context"]
    assert text.splitlines()[1].startswith("- Wiki")
    assert text.count("\n- ") == 3
    assert second == first
    web.search.assert_awaited_once_with("light", ["general", "science"])


# --- Helpers ---


def test_select_branch() -> None:
    state = OrchestrationState()
    for intent, expected in [
        (Intent.WEB_SEARCH, "web_search"),
        (Intent.HEAVY_REASONING, "heavy_reasoning"),
        (Intent.TEXTBOOK, "textbook_retrieval"),
        (Intent.GREETING, "textbook_retrieval"),
        (Intent.OFF_TOPIC, "textbook_retrieval"),
        (Intent.FOLLOW_UP, "textbook_retrieval"),
    ]:
        routed = state.model_copy(update={"routing_metadata": RoutingMetadata(intent=intent)})
        assert select_branch(routed) == expected


def test_parse_routing_clamps_and_fills_query() -> None:
    routing = parse_routing('```json\n{"intent": "TEXTBOOK", "confidence": 3}\n```', "what is light")
    assert routing.intent is Intent.TEXTBOOK
    assert routing.confidence == 1.0
    assert routing.query == "what is light"


def test_parse_routing_unknown_label_falls_back() -> None:
    routing = parse_routing('{"intent": "homework"}', "q")
    assert routing.intent is Intent.TEXTBOOK
    assert routing.confidence == 0.0


def test_cache_scope() -> None:
    """Test first turns share curriculum scope and follow-ups are per conversation."""
    first = TutorPipeline.initial_state("hi", user_context=UserContext(grade=7, subject="Science"))
    assert cache_scope(first) == "grade:7:science"

    chapter = TutorPipeline.initial_state("hi", user_context=UserContext(chapter="ch-2", conversation_id="c"))
    assert cache_scope(chapter) == "chapter:ch-2"

    later = TutorPipeline.initial_state(
        "why?",
        history=first.messages,
        user_context=UserContext(chapter="ch-2", conversation_id="c"),
    )
    assert cache_scope(later).startswith("conversation:c:")

    anonymous = TutorPipeline.initial_state("why?", history=first.messages, user_context=UserContext(chapter="ch-2"))
    assert cache_scope(anonymous).startswith("history:")


class HistoryEchoModel:
    """Answers about whatever the conversation started with."""

    model_name = "qwen:3.5"

    def __init__(self) -> None:
        self.calls = 0

    async def invoke(self, messages: list[dict[str, str]]) -> ModelResponse:
        self.calls += 1
        return ModelResponse(content=f"answer about {messages[1]['content']}", model=self.model_name)


async def test_follow_ups_without_conversation_id_do_not_share_answers() -> None:
    """Test identical follow-ups after different histories are answered separately."""
    models = _models(_router_reply("follow_up", 0.9))
    synthesis = HistoryEchoModel()
    models[ModelRole.SYNTHESIS] = synthesis  # type: ignore[assignment]
    pipeline = _pipeline(models)
    context = UserContext(grade=7, chapter="ch1")

    def history(topic: str) -> list[ChatMessage]:
        return [ChatMessage(role="user", content=topic), ChatMessage(role="assistant", content="Sure!")]

    alice = await pipeline.run("why?", history=history("photosynthesis"), user_context=context)
    bob = await pipeline.run("why?", history=history("volcanoes"), user_context=context)

    assert alice.answer == "answer about photosynthesis"
    assert bob.answer == "answer about volcanoes"
    assert synthesis.calls == 2
    assert len(models[ModelRole.ROUTER].calls) == 2
