"""
Tutor Pipeline - Wires the workflow graph to its collaborators.

Graph:
    route -> {textbook_retrieval | web_search | heavy_reasoning} -> synthesize -> END

The gate, breakers, response cache and cost tracker are created once per
pipeline and shared by every request it serves.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from gyanu.adapters.ollama.client import OllamaChatModel, OllamaClient
from gyanu.adapters.searxng.client import SearXNGClient
from gyanu.adapters.supabase.client import SupabaseChunkStore
from gyanu.config.settings import Settings, get_settings
from gyanu.domains.resilience.breaker import CircuitBreakerRegistry
from gyanu.domains.resilience.cache import ResponseCacheImpl
from gyanu.domains.resilience.cost import InMemoryCostTracker
from gyanu.domains.resilience.gate import ConcurrencyGate
from gyanu.domains.resilience.invoker import ProtectedInvoker
from gyanu.domains.resilience.models import ModelRole
from gyanu.domains.search.formatting import WebResultCache, validate_search_url

from .graph import END, WorkflowGraph
from .models import ChatMessage, OrchestrationState, StepRecord, TutorResult, UserContext
from .state import merge_state
from .steps import TutorSteps, select_branch
from .streaming import StreamEvent, convert_stream_events

if TYPE_CHECKING:
    from gyanu.domains.search.contracts import SimilaritySearch, WebSearchEngine

logger = logging.getLogger(__name__)

__all__ = ["TutorPipeline", "build_tutor_graph"]


def build_tutor_graph(steps: TutorSteps) -> WorkflowGraph[OrchestrationState]:
    """Assemble the routing workflow."""
    graph: WorkflowGraph[OrchestrationState] = WorkflowGraph(merge_state)
    graph.add_step("route", steps.route)
    graph.add_step("textbook_retrieval", steps.textbook_retrieval)
    graph.add_step("web_search", steps.web_search)
    graph.add_step("heavy_reasoning", steps.heavy_reasoning)
    graph.add_step("synthesize", steps.synthesize)

    graph.set_entry("route")
    graph.add_conditional_edges(
        "route",
        select_branch,
        {
            "textbook_retrieval": "textbook_retrieval",
            "web_search": "web_search",
            "heavy_reasoning": "heavy_reasoning",
        },
    )
    graph.add_edge("textbook_retrieval", "synthesize")
    graph.add_edge("web_search", "synthesize")
    graph.add_edge("heavy_reasoning", "synthesize")
    graph.add_edge("synthesize", END)
    graph.validate()
    return graph


class TutorPipeline:
    """
    Main tutoring pipeline.

    Coordinates:
    - Intent routing
    - Curriculum retrieval, web search or heavy reasoning
    - Persona-driven answer synthesis
    - Streaming progress events
    """

    def __init__(
        self,
        invoker: ProtectedInvoker,
        retriever: SimilaritySearch | None = None,
        web_search_engine: WebSearchEngine | None = None,
        cost_tracker: InMemoryCostTracker | None = None,
        top_k: int = 5,
        web_max_results: int = 3,
        web_cache_ttl: float = 300.0,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            invoker: Protected model invoker shared by all steps
            retriever: Curriculum similarity search (None disables retrieval)
            web_search_engine: Web search (None yields a placeholder result)
            cost_tracker: Usage accounting exposed to the API
            top_k: Chunks retrieved per textbook query
            web_max_results: Web hits kept for synthesis
            web_cache_ttl: Seconds to reuse raw web results
        """
        self.invoker = invoker
        self.cost_tracker = cost_tracker
        self._closables: list = []
        self._steps = TutorSteps(
            invoker,
            retriever=retriever,
            web_search_engine=web_search_engine,
            web_cache=WebResultCache(web_cache_ttl),
            top_k=top_k,
            web_max_results=web_max_results,
        )
        self._graph = build_tutor_graph(self._steps)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TutorPipeline:
        """Build a pipeline with concrete adapters from configuration."""
        settings = settings or get_settings()

        client = OllamaClient(settings.ollama_url, api_key=settings.ollama_api_key, timeout=settings.ollama_timeout)
        models = {
            ModelRole.ROUTER: OllamaChatModel(
                client, settings.router_model, settings.router_temperature, json_format=True
            ),
            ModelRole.REASONER: OllamaChatModel(client, settings.reasoner_model, settings.reasoner_temperature),
            ModelRole.SYNTHESIS: OllamaChatModel(client, settings.synthesis_model, settings.synthesis_temperature),
        }
        cost_tracker = InMemoryCostTracker()
        invoker = ProtectedInvoker(
            models=models,
            gate=ConcurrencyGate(settings.max_concurrent_llm_calls, settings.gate_timeout_seconds),
            breakers=CircuitBreakerRegistry.from_settings(settings),
            cache=ResponseCacheImpl(max_size=settings.cache_max_size, default_ttl=settings.cache_ttl_router),
            cost_tracker=cost_tracker,
            ttls={role: settings.cache_ttl(role.value) for role in ModelRole},
        )

        retriever = None
        if settings.supabase_url:
            retriever = SupabaseChunkStore(
                settings.supabase_url,
                settings.supabase_key,
                embedder=client,
                embedding_model=settings.embedding_model,
            )
        else:
            logger.warning("SUPABASE_URL not set; textbook retrieval will degrade to general knowledge")

        web = None
        valid, message = validate_search_url(settings.searxng_url)
        if valid:
            web = SearXNGClient(
                settings.searxng_url,  # type: ignore[arg-type]
                timeout=settings.web_search_timeout,
                duckduckgo_fallback=settings.duckduckgo_fallback,
            )
        else:
            logger.warning(message)

        pipeline = cls(
            invoker,
            retriever=retriever,
            web_search_engine=web,
            cost_tracker=cost_tracker,
            top_k=settings.retrieval_top_k,
            web_max_results=settings.web_search_max_results,
            web_cache_ttl=settings.web_search_cache_ttl,
        )
        pipeline._closables = [c for c in (client, retriever, web) if c is not None]
        return pipeline

    @staticmethod
    def initial_state(
        message: str,
        history: list[ChatMessage] | None = None,
        user_context: UserContext | None = None,
    ) -> OrchestrationState:
        """Fresh per-request state: prior turns plus the new user message."""
        messages = [*(history or []), ChatMessage(role="user", content=message)]
        return OrchestrationState(messages=messages, user_context=user_context or UserContext())

    async def run(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        user_context: UserContext | None = None,
    ) -> TutorResult:
        """
        Answer one learner message.

        Raises:
            ServiceUnavailableError: A required model role's circuit is open
            GateTimeoutError: The model concurrency gate stayed full
        """
        start_time = time.time()
        state = self.initial_state(message, history, user_context)
        steps: list[StepRecord] = []
        step_start = start_time

        try:
            async for event in self._graph.stream(state):
                if event.kind == "start":
                    step_start = time.time()
                    continue
                state = event.state
                steps.append(
                    StepRecord(
                        name=event.step,
                        status="completed",
                        duration_ms=(time.time() - step_start) * 1000,
                    )
                )
        except Exception as e:
            logger.error("Tutor pipeline failed after %d steps: %s", len(steps), e)
            raise

        total = (time.time() - start_time) * 1000
        logger.info(
            "Answered %s query in %.0fms (%s)",
            state.routing_metadata.intent.value,
            total,
            " -> ".join(s.name for s in steps),
        )
        return TutorResult(
            answer=state.answer,
            routing=state.routing_metadata,
            state=state,
            steps=steps,
            total_duration_ms=total,
        )

    async def stream(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        user_context: UserContext | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Answer one learner message as a sequence of stream events."""
        state = self.initial_state(message, history, user_context)
        async for event in convert_stream_events(self._graph.stream(state)):
            yield event

    async def close(self) -> None:
        """Flush background work and close HTTP clients."""
        await self.invoker.drain()
        for closable in self._closables:
            await closable.close()
