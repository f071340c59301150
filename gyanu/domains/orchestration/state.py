"""
State Reducers - How step outputs fold into the orchestration state.

Each state field has exactly one reducer:
- messages: append (the conversation never shrinks)
- user_context: shallow merge (non-null fields overwrite, others persist)
- everything else: last write wins
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from gyanu.config.errors import WorkflowError

from .models import ChatMessage, OrchestrationState, UserContext

__all__ = ["REDUCERS", "append", "merge_state", "overwrite", "shallow_merge"]

Reducer = Callable[[Any, Any], Any]


def append(current: list[ChatMessage], update: list[ChatMessage]) -> list[ChatMessage]:
    return [*current, *update]


def shallow_merge(current: UserContext, update: UserContext | Mapping[str, Any]) -> UserContext:
    fields = update.model_dump() if isinstance(update, UserContext) else dict(update)
    changes = {k: v for k, v in fields.items() if v is not None}
    unknown = set(changes) - set(UserContext.model_fields)
    if unknown:
        raise WorkflowError(f"Unknown user_context fields: {sorted(unknown)}")
    return current.model_copy(update=changes)


def overwrite(current: Any, update: Any) -> Any:
    return update


REDUCERS: dict[str, Reducer] = {
    "messages": append,
    "user_context": shallow_merge,
    "requires_heavy_reasoning": overwrite,
    "routing_metadata": overwrite,
    "retrieved_context": overwrite,
    "web_search_context": overwrite,
    "reasoning_result": overwrite,
}


def merge_state(state: OrchestrationState, update: Mapping[str, Any]) -> OrchestrationState:
    """
    Apply a step's partial update.

    Raises:
        WorkflowError: The update names a field the state does not have
    """
    unknown = set(update) - set(REDUCERS)
    if unknown:
        raise WorkflowError(f"Step returned unknown state fields: {sorted(unknown)}")

    changes = {field: REDUCERS[field](getattr(state, field), value) for field, value in update.items()}
    return state.model_copy(update=changes)
