"""
Workflow Graph - A small directed-graph runner for async steps.

Steps are async callables taking the current state and returning a partial
update. The runner folds each update into the state with a reducer and
follows plain or conditional edges until it reaches END. Steps run strictly
one at a time in topological order.

Example:
    >>> graph = WorkflowGraph(merge_state)
    >>> graph.add_step("route", steps.route)
    >>> graph.add_conditional_edges("route", select_branch, {"web_search": "web_search"})
    >>> graph.set_entry("route")
    >>> final = await graph.invoke(initial_state)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from gyanu.config.errors import WorkflowError

logger = logging.getLogger(__name__)

__all__ = ["END", "StepEvent", "WorkflowGraph"]

END = "__end__"

S = TypeVar("S")
StepFn = Callable[[S], Awaitable[Mapping[str, Any]]]


@dataclass(frozen=True)
class StepEvent(Generic[S]):
    """Emitted when a step starts (update is empty) and when it finishes."""

    kind: str  # "start" or "end"
    step: str
    state: S
    update: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _Branch(Generic[S]):
    selector: Callable[[S], str]
    mapping: Mapping[str, str] | None


class WorkflowGraph(Generic[S]):
    """Registry of steps and edges, plus the runner that walks them."""

    def __init__(
        self,
        reducer: Callable[[S, Mapping[str, Any]], S],
        max_steps: int = 25,
    ) -> None:
        self._reducer = reducer
        self._max_steps = max_steps
        self._steps: dict[str, StepFn] = {}
        self._edges: dict[str, str] = {}
        self._branches: dict[str, _Branch[S]] = {}
        self._entry: str | None = None

    def add_step(self, name: str, fn: StepFn) -> WorkflowGraph[S]:
        if name == END:
            raise WorkflowError(f"'{END}' is reserved")
        if name in self._steps:
            raise WorkflowError(f"Step '{name}' already defined")
        self._steps[name] = fn
        return self

    def add_edge(self, source: str, target: str) -> WorkflowGraph[S]:
        self._check_single_exit(source)
        self._edges[source] = target
        return self

    def add_conditional_edges(
        self,
        source: str,
        selector: Callable[[S], str],
        mapping: Mapping[str, str] | None = None,
    ) -> WorkflowGraph[S]:
        """Route from source to mapping[selector(state)], or to the selected step name directly."""
        self._check_single_exit(source)
        self._branches[source] = _Branch(selector, mapping)
        return self

    def set_entry(self, name: str) -> WorkflowGraph[S]:
        self._entry = name
        return self

    def validate(self) -> None:
        """
        Check the graph is well formed.

        Raises:
            WorkflowError: Missing entry, dangling edge or a step with no exit
        """
        if self._entry is None or self._entry not in self._steps:
            raise WorkflowError(f"Entry step '{self._entry}' is not defined")

        for name in self._steps:
            if name not in self._edges and name not in self._branches:
                raise WorkflowError(f"Step '{name}' has no outgoing edge")

        targets = list(self._edges.values())
        for branch in self._branches.values():
            if branch.mapping is not None:
                targets.extend(branch.mapping.values())
        for source in [*self._edges, *self._branches]:
            if source not in self._steps:
                raise WorkflowError(f"Edge from undefined step '{source}'")
        for target in targets:
            if target != END and target not in self._steps:
                raise WorkflowError(f"Edge to undefined step '{target}'")

    async def stream(self, state: S) -> AsyncIterator[StepEvent[S]]:
        """Run the graph, yielding start/end events for every step."""
        self.validate()
        current: str = self._entry  # type: ignore[assignment]
        executed = 0

        while current != END:
            executed += 1
            if executed > self._max_steps:
                raise WorkflowError(f"Workflow exceeded {self._max_steps} steps")

            yield StepEvent("start", current, state)
            update = await self._steps[current](state)
            state = self._reducer(state, update or {})
            yield StepEvent("end", current, state, update or {})

            current = self._next(current, state)

    async def invoke(self, state: S) -> S:
        """Run the graph to completion and return the final state."""
        async for event in self.stream(state):
            state = event.state
        return state

    def _next(self, current: str, state: S) -> str:
        if current in self._edges:
            return self._edges[current]

        branch = self._branches[current]
        label = branch.selector(state)
        target = label if branch.mapping is None else branch.mapping.get(label)
        if target is None or (target != END and target not in self._steps):
            raise WorkflowError(f"Step '{current}' selected unknown branch '{label}'")
        logger.debug("Branch %s -> %s", current, target)
        return target

    def _check_single_exit(self, source: str) -> None:
        if source in self._edges or source in self._branches:
            raise WorkflowError(f"Step '{source}' already has an outgoing edge")
