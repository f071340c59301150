"""
Tutor Steps - The workflow's route, acquisition and synthesis steps.

Acquisition steps (textbook retrieval, web search) never raise: collaborator
failures become fixed sentinel strings so synthesis can still answer. Model
calls go through the protected invoker, whose service-unavailable and gate
timeout errors are left to propagate to the workflow's caller.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Any

from gyanu.domains.resilience.models import InvocationOptions, ModelRole
from gyanu.domains.search.formatting import (
    WebResultCache,
    categories_for_subject,
    format_chunks,
    format_web_results,
)
from gyanu.domains.search.models import SearchFilters

from .models import ChatMessage, Intent, OrchestrationState, RoutingMetadata, persona_for
from .prompts import REASONER_PROMPT, build_knowledge_payload, router_prompt, synthesis_prompt

if TYPE_CHECKING:
    from gyanu.domains.resilience.invoker import ProtectedInvoker
    from gyanu.domains.search.contracts import SimilaritySearch, WebSearchEngine

logger = logging.getLogger(__name__)

__all__ = [
    "NO_TEXTBOOK_CONTENT",
    "RETRIEVAL_FAILED",
    "WEB_SEARCH_FAILED",
    "TutorSteps",
    "cache_scope",
    "select_branch",
    "web_search_placeholder",
]

NO_TEXTBOOK_CONTENT = "No relevant textbook content found for this query."
RETRIEVAL_FAILED = "Textbook retrieval encountered an error. Proceed with general knowledge."
WEB_SEARCH_FAILED = "Web search failed. Proceed with general knowledge."

ROUTER_HISTORY_TURNS = 5

_BRANCHES = {
    Intent.WEB_SEARCH: "web_search",
    Intent.HEAVY_REASONING: "heavy_reasoning",
}


def web_search_placeholder(query: str) -> str:
    return f"[Web search not configured] No live results are available for: {query}"


def select_branch(state: OrchestrationState) -> str:
    """Conditional edge after routing; every non-search, non-reasoning intent takes the retrieval slot."""
    return _BRANCHES.get(state.routing_metadata.intent, "textbook_retrieval")


def cache_scope(state: OrchestrationState) -> str:
    """
    Cache partition for this turn's model calls.

    Turns that depend on earlier conversation are keyed by a digest of that
    history (under the conversation id when there is one), so answers never
    leak between learners. First turns share a curriculum scope.
    """
    ctx = state.user_context
    turns = [m for m in state.messages if m.role != "system"]
    if len(turns) > 1:
        digest = _history_digest(turns[:-1])
        if ctx.conversation_id:
            return f"conversation:{ctx.conversation_id}:{digest}"
        return f"history:{digest}"
    if ctx.chapter:
        return f"chapter:{ctx.chapter}"
    subject = (ctx.subject or "any").lower()
    return f"grade:{ctx.grade or 'any'}:{subject}"


def _history_digest(turns: list[ChatMessage]) -> str:
    hasher = hashlib.sha256()
    for turn in turns:
        hasher.update(f"{turn.role}\x00{turn.content}\x1e".encode())
    return hasher.hexdigest()[:16]


def parse_routing(raw: str, fallback_query: str) -> RoutingMetadata:
    """Parse router JSON, defaulting to textbook retrieval when unclear."""
    try:
        data = _extract_json(raw)
        intent = Intent(str(data.get("intent", "")).strip().lower())
        if intent is Intent.UNROUTED:
            raise ValueError("router returned the unrouted sentinel")
    except (ValueError, TypeError) as e:
        logger.warning("Unparseable routing output, defaulting to textbook: %s", e)
        return RoutingMetadata(
            intent=Intent.TEXTBOOK,
            confidence=0.0,
            reason=f"fallback: {e}",
            query=fallback_query,
        )

    try:
        confidence = min(1.0, max(0.0, float(data.get("confidence", 0.5))))
    except (TypeError, ValueError):
        confidence = 0.5

    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        query = fallback_query if intent.acquires_knowledge else None

    return RoutingMetadata(
        intent=intent,
        confidence=confidence,
        reason=str(data.get("reason") or ""),
        query=query,
    )


def _extract_json(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        start = raw.find("{")
        end = raw.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError(f"no JSON object in {raw[:80]!r}") from None
        data = json.loads(raw[start:end])
    if not isinstance(data, dict):
        raise ValueError("routing output is not a JSON object")
    return data


class TutorSteps:
    """Step functions bound to their collaborators."""

    def __init__(
        self,
        invoker: ProtectedInvoker,
        retriever: SimilaritySearch | None = None,
        web_search_engine: WebSearchEngine | None = None,
        web_cache: WebResultCache | None = None,
        top_k: int = 5,
        web_max_results: int = 3,
    ) -> None:
        self._invoker = invoker
        self._retriever = retriever
        self._web = web_search_engine
        self._web_cache = web_cache or WebResultCache()
        self._top_k = top_k
        self._web_max_results = web_max_results

    async def route(self, state: OrchestrationState) -> dict[str, Any]:
        user_message = state.last_user_message
        history = [m.to_dict() for m in state.messages if m.role != "system"][-ROUTER_HISTORY_TURNS:]
        messages = [{"role": "system", "content": router_prompt(state.user_context)}, *history]

        response = await self._invoker.invoke(
            ModelRole.ROUTER,
            messages,
            self._options(state, user_message),
        )
        routing = parse_routing(response.content, user_message)
        logger.info(
            "Routed to %s (confidence %.2f): %s",
            routing.intent.value,
            routing.confidence,
            routing.reason,
        )
        return {
            "routing_metadata": routing,
            "requires_heavy_reasoning": routing.intent is Intent.HEAVY_REASONING,
        }

    async def textbook_retrieval(self, state: OrchestrationState) -> dict[str, Any]:
        routing = state.routing_metadata
        # Greeting, off-topic and follow-up turns pass through without retrieval
        if routing.intent is not Intent.TEXTBOOK:
            return {}

        if self._retriever is None:
            logger.warning("Textbook retrieval requested but no vector store is configured")
            return {"retrieved_context": RETRIEVAL_FAILED}

        ctx = state.user_context
        query = routing.query or state.last_user_message
        try:
            chunks = await self._retriever.search(
                query,
                self._top_k,
                SearchFilters(subject=ctx.subject, grade=ctx.grade, chapter=ctx.chapter),
            )
        except Exception as e:
            logger.error("Textbook retrieval failed: %s", e)
            return {"retrieved_context": RETRIEVAL_FAILED}

        if not chunks:
            return {"retrieved_context": NO_TEXTBOOK_CONTENT}
        return {"retrieved_context": format_chunks(chunks)}

    async def web_search(self, state: OrchestrationState) -> dict[str, Any]:
        query = state.routing_metadata.query or state.last_user_message

        if self._web is None:
            return {"web_search_context": web_search_placeholder(query)}

        cached = self._web_cache.get(query)
        if cached is not None:
            return {"web_search_context": format_web_results(cached, self._web_max_results)}

        try:
            results = await self._web.search(query, categories_for_subject(state.user_context.subject))
        except Exception as e:
            logger.error("Web search failed: %s", e)
            return {"web_search_context": WEB_SEARCH_FAILED}

        self._web_cache.set(query, results)
        return {"web_search_context": format_web_results(results, self._web_max_results)}

    async def heavy_reasoning(self, state: OrchestrationState) -> dict[str, Any]:
        problem = state.routing_metadata.query or state.last_user_message
        messages = [{"role": "system", "content": REASONER_PROMPT}]
        messages.extend(m.to_dict() for m in state.messages if m.role != "system")

        response = await self._invoker.invoke(
            ModelRole.REASONER,
            messages,
            self._options(state, problem),
        )
        return {"reasoning_result": response.content}

    async def synthesize(self, state: OrchestrationState) -> dict[str, Any]:
        persona = persona_for(state.routing_metadata.intent)
        knowledge = build_knowledge_payload(
            state.reasoning_result,
            state.retrieved_context,
            state.web_search_context,
        )
        system = synthesis_prompt(persona, state.user_context, knowledge)
        messages = [{"role": "system", "content": system}]
        messages.extend(m.to_dict() for m in state.messages if m.role != "system")

        response = await self._invoker.invoke(
            ModelRole.SYNTHESIS,
            messages,
            self._options(state, state.last_user_message, suffix=persona.value),
        )
        logger.debug("Synthesized %d chars with %s persona", len(response.content), persona.value)
        return {"messages": [ChatMessage(role="assistant", content=response.content)]}

    def _options(self, state: OrchestrationState, query: str, suffix: str | None = None) -> InvocationOptions:
        ctx = state.user_context
        scope = cache_scope(state)
        if suffix:
            scope = f"{scope}:{suffix}"
        return InvocationOptions(
            scope=scope,
            query=query,
            user_id=ctx.user_id,
            conversation_id=ctx.conversation_id,
            chapter_id=ctx.chapter,
        )
