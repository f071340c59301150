"""
Tests for pipeline assembly, configuration wiring and streaming.
"""

from __future__ import annotations

import json

from gyanu.config.settings import Settings
from gyanu.domains.resilience.models import ModelResponse, ModelRole
from gyanu.domains.search.formatting import WebResultCache

from .graph import END
from .models import ChatMessage, UserContext
from .pipeline import TutorPipeline, build_tutor_graph
from .steps import TutorSteps


class EchoModel:
    def __init__(self, name: str, reply: str) -> None:
        self.model_name = name
        self.reply = reply

    async def invoke(self, messages: list[dict[str, str]]) -> ModelResponse:
        return ModelResponse(content=self.reply, model=self.model_name)


def test_graph_shape() -> None:
    """Test the tutor graph validates and ends after synthesis."""
    graph = build_tutor_graph(TutorSteps(invoker=None, web_cache=WebResultCache()))  # type: ignore[arg-type]
    graph.validate()
    assert graph._edges["synthesize"] == END
    assert graph._edges["heavy_reasoning"] == "synthesize"


def test_from_settings_without_optional_services() -> None:
    """Test a pipeline builds with no vector store or search endpoint."""
    settings = Settings(_env_file=None, supabase_url=None, searxng_url=None, max_concurrent_llm_calls=2)
    pipeline = TutorPipeline.from_settings(settings)

    assert pipeline.invoker.gate.capacity == 2
    assert pipeline.invoker.model_name(ModelRole.REASONER) == "deepseek-v3.1:671b-cloud"
    assert pipeline.cost_tracker is not None


def test_initial_state_appends_message() -> None:
    history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]
    state = TutorPipeline.initial_state("what is light?", history, UserContext(grade=6))

    assert [m.content for m in state.messages] == ["hi", "hello", "what is light?"]
    assert state.user_context.grade == 6


async def test_stream_end_to_end() -> None:
    """Test the pipeline streams phases and the final answer."""
    settings = Settings(_env_file=None, supabase_url=None, searxng_url=None)
    pipeline = TutorPipeline.from_settings(settings)
    pipeline.invoker._models = {
        ModelRole.ROUTER: EchoModel("r", json.dumps({"intent": "greeting", "confidence": 0.99})),
        ModelRole.REASONER: EchoModel("d", "unused"),
        ModelRole.SYNTHESIS: EchoModel("s", "Namaste! 🐘"),
    }

    events = [e async for e in pipeline.stream("Hi!", user_context=UserContext(grade=5))]
    await pipeline.close()

    assert [e.event for e in events] == ["status", "status", "status", "token", "done"]
    assert events[3].content == "Namaste! 🐘"
    assert events[-1].metadata["intent"] == "greeting"
