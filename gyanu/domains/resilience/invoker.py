"""
Protected Invoker - The only path from a workflow step to a model.

Every call passes, in order, through the response cache, the role's circuit
breaker and the shared concurrency gate. The cache doubles as a fallback:
whenever the breaker is open, the gate times out or the model fails, a
previously cached answer for the same key is returned instead of an error.

Each call is attempted once; nothing here retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from gyanu.config.errors import GateTimeoutError, ServiceUnavailableError

from .cache import generate_key
from .models import BreakerState, InvocationOptions, ModelResponse, ModelRole

if TYPE_CHECKING:
    from .breaker import CircuitBreakerRegistry
    from .cache import ResponseCacheImpl
    from .contracts import ChatModel, CostTracker
    from .gate import ConcurrencyGate

logger = logging.getLogger(__name__)

__all__ = ["ProtectedInvoker"]


class ProtectedInvoker:
    """Cache-aside, circuit-broken, concurrency-limited model dispatch."""

    def __init__(
        self,
        models: dict[ModelRole, ChatModel],
        gate: ConcurrencyGate,
        breakers: CircuitBreakerRegistry,
        cache: ResponseCacheImpl,
        cost_tracker: CostTracker | None = None,
        ttls: dict[ModelRole, int] | None = None,
    ) -> None:
        self._models = models
        self._gate = gate
        self._breakers = breakers
        self._cache = cache
        self._cost_tracker = cost_tracker
        self._ttls = ttls or {}
        self._background: set[asyncio.Task] = set()

    @property
    def gate(self) -> ConcurrencyGate:
        return self._gate

    @property
    def breakers(self) -> CircuitBreakerRegistry:
        return self._breakers

    @property
    def cache(self) -> ResponseCacheImpl:
        return self._cache

    def model_name(self, role: ModelRole) -> str:
        return self._models[role].model_name

    async def invoke(
        self,
        role: ModelRole,
        messages: list[dict[str, str]],
        options: InvocationOptions,
    ) -> ModelResponse:
        """
        Call a model role with full protection.

        Args:
            role: Which model endpoint to call
            messages: Chat messages, system prompt first
            options: Cache scope/query/TTL and cost attribution

        Returns:
            Live or cached model response

        Raises:
            ServiceUnavailableError: Breaker open and nothing cached
            GateTimeoutError: No slot within the wait bound and nothing cached
        """
        model = self._models[role]
        key = generate_key(role, options.scope, options.query)

        cached = await self._cached(key)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", role.value, key)
            self._track(options, cached, model.model_name, is_cached=True)
            return cached

        if self._breakers.is_open(role):
            logger.warning("Circuit open for %s, refusing call", role.value)
            raise ServiceUnavailableError(role.value)
        holds_trial = self._breakers.get(role).state is BreakerState.HALF_OPEN

        try:
            await self._gate.acquire()
        except GateTimeoutError:
            # The half-open trial never reached the model, so hand it back
            if holds_trial:
                self._breakers.release_trial(role)
            # A concurrent caller may have filled the cache while we queued
            fallback = await self._cached(key)
            if fallback is not None:
                logger.warning("Gate timeout for %s, serving cached response", role.value)
                return fallback
            raise

        try:
            try:
                response = await model.invoke(messages)
            except Exception as e:
                self._breakers.record_failure(role, e)
                fallback = await self._cached(key)
                if fallback is not None:
                    logger.warning("%s call failed (%s), serving cached response", role.value, e)
                    return fallback
                logger.error("%s call failed: %s", role.value, e)
                raise

            self._breakers.record_success(role)
            self._track(options, response, model.model_name, is_cached=False)
            ttl = self._ttls.get(role) if options.ttl is None else options.ttl
            await self._cache.set(key, response, ttl)
            return response
        finally:
            self._gate.release()

    async def drain(self) -> None:
        """Wait for outstanding cost-tracking tasks (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _cached(self, key: str) -> ModelResponse | None:
        value = await self._cache.get(key)
        if value is None:
            return None
        return value.model_copy(update={"from_cache": True})

    def _track(
        self,
        options: InvocationOptions,
        response: ModelResponse,
        model_name: str,
        is_cached: bool,
    ) -> None:
        if self._cost_tracker is None:
            return

        task = asyncio.create_task(
            self._cost_tracker.track_cost(
                options.query,
                response.content,
                model_name,
                options.user_id,
                conversation_id=options.conversation_id,
                chapter_id=options.chapter_id,
                is_cached=is_cached,
            )
        )
        self._background.add(task)
        task.add_done_callback(self._on_tracked)

    def _on_tracked(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Cost tracking failed: %s", error)
