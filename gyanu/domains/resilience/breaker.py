"""
Circuit Breaker - Per-role failure isolation for model endpoints.

Each model role (router, reasoner, synthesis) gets its own breaker so a
struggling reasoner never blocks routing or synthesis.

State machine:
    closed    -> open       failures inside the rolling window reach the threshold
    open      -> half_open  recovery timeout elapsed; one trial call admitted
    half_open -> closed     trial call succeeded (failure history cleared)
    half_open -> open       trial call failed (recovery timer restarts)
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable

from gyanu.config.settings import BreakerConfig, Settings

from .models import BreakerState, CircuitStats, ModelRole

logger = logging.getLogger(__name__)

__all__ = ["CircuitBreaker", "CircuitBreakerRegistry"]

Clock = Callable[[], float]


class CircuitBreaker:
    """Rolling-window circuit breaker for a single role."""

    def __init__(
        self,
        role: str,
        failure_threshold: int = 3,
        window_seconds: float = 60.0,
        recovery_timeout: float = 30.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.role = role
        self.failure_threshold = failure_threshold
        self.window_seconds = window_seconds
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._state = BreakerState.CLOSED
        self._failures: deque[float] = deque()
        self._opened_at: float | None = None
        self._trial_started_at: float | None = None

        self._success_count = 0
        self._total_calls = 0
        self._last_failure_at: float | None = None
        self._last_error: str | None = None

    @property
    def state(self) -> BreakerState:
        """Current state, reporting an elapsed open breaker as half-open."""
        if self._state is BreakerState.OPEN and self._recovery_elapsed():
            return BreakerState.HALF_OPEN
        return self._state

    def is_open(self) -> bool:
        """
        Whether calls must be refused right now.

        Returning False while recovering admits exactly one trial call;
        concurrent callers keep seeing the breaker as open until that trial
        reports back. A trial that never reports is re-granted after another
        recovery timeout.
        """
        now = self._clock()

        if self._state is BreakerState.CLOSED:
            return False

        if self._state is BreakerState.OPEN:
            if not self._recovery_elapsed():
                return True
            self._state = BreakerState.HALF_OPEN
            logger.info("Circuit %s half-open, admitting trial call", self.role)

        if self._trial_started_at is not None and now - self._trial_started_at < self.recovery_timeout:
            return True

        self._trial_started_at = now
        return False

    def release_trial(self) -> None:
        """Hand back an admitted half-open trial that never reached the model."""
        if self._state is BreakerState.HALF_OPEN and self._trial_started_at is not None:
            self._trial_started_at = None
            logger.debug("Circuit %s trial released unused", self.role)

    def record_success(self) -> None:
        self._total_calls += 1
        self._success_count += 1

        if self._state is BreakerState.HALF_OPEN:
            self._state = BreakerState.CLOSED
            self._failures.clear()
            self._opened_at = None
            self._trial_started_at = None
            logger.info("Circuit %s closed after successful trial", self.role)

    def record_failure(self, error: BaseException | str | None = None) -> None:
        now = self._clock()
        self._total_calls += 1
        self._last_failure_at = now
        if error is not None:
            self._last_error = str(error)

        self._failures.append(now)
        self._prune(now)

        if self._state is BreakerState.HALF_OPEN:
            self._open(now)
            logger.warning("Circuit %s trial failed, reopening: %s", self.role, self._last_error)
        elif self._state is BreakerState.CLOSED and len(self._failures) >= self.failure_threshold:
            self._open(now)
            logger.warning(
                "Circuit %s opened after %d failures in %.0fs: %s",
                self.role,
                len(self._failures),
                self.window_seconds,
                self._last_error,
            )

    def force_open(self) -> None:
        """Open the breaker manually (e.g. during a known outage)."""
        self._open(self._clock())
        logger.warning("Circuit %s manually opened", self.role)

    def reset(self) -> None:
        """Return to closed with no failure history."""
        self._state = BreakerState.CLOSED
        self._failures.clear()
        self._opened_at = None
        self._trial_started_at = None
        self._last_error = None
        logger.info("Circuit %s reset", self.role)

    def stats(self) -> CircuitStats:
        self._prune(self._clock())
        return CircuitStats(
            role=self.role,
            state=self.state,
            failure_count=len(self._failures),
            failures_in_window=len(self._failures),
            success_count=self._success_count,
            total_calls=self._total_calls,
            opened_at=self._opened_at,
            last_failure_at=self._last_failure_at,
            last_error=self._last_error,
        )

    def _open(self, now: float) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = now
        self._trial_started_at = None

    def _recovery_elapsed(self) -> bool:
        return self._opened_at is not None and self._clock() - self._opened_at >= self.recovery_timeout

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._failures and self._failures[0] <= cutoff:
            self._failures.popleft()


class CircuitBreakerRegistry:
    """One breaker per model role, created on first use."""

    def __init__(
        self,
        default: BreakerConfig | None = None,
        overrides: dict[str, BreakerConfig] | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._default = default or BreakerConfig()
        self._overrides = overrides or {}
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> CircuitBreakerRegistry:
        overrides = {role.value: settings.breaker_config(role.value) for role in ModelRole}
        return cls(default=settings.breaker_config("default"), overrides=overrides)

    def get(self, role: ModelRole | str) -> CircuitBreaker:
        key = _role_key(role)
        breaker = self._breakers.get(key)
        if breaker is None:
            config = self._overrides.get(key, self._default)
            breaker = CircuitBreaker(
                key,
                failure_threshold=config.failure_threshold,
                window_seconds=config.window_seconds,
                recovery_timeout=config.recovery_timeout,
                clock=self._clock,
            )
            self._breakers[key] = breaker
        return breaker

    def is_open(self, role: ModelRole | str) -> bool:
        return self.get(role).is_open()

    def record_success(self, role: ModelRole | str) -> None:
        self.get(role).record_success()

    def release_trial(self, role: ModelRole | str) -> None:
        self.get(role).release_trial()

    def record_failure(self, role: ModelRole | str, error: BaseException | str | None = None) -> None:
        self.get(role).record_failure(error)

    def get_stats(self, role: ModelRole | str) -> CircuitStats:
        return self.get(role).stats()

    def all_stats(self) -> dict[str, CircuitStats]:
        for role in ModelRole:
            self.get(role)
        return {key: breaker.stats() for key, breaker in self._breakers.items()}

    def force_open(self, role: ModelRole | str) -> None:
        self.get(role).force_open()

    def reset(self, role: ModelRole | str) -> None:
        self.get(role).reset()

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()


def _role_key(role: ModelRole | str) -> str:
    return role.value if isinstance(role, ModelRole) else role
