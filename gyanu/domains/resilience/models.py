"""
Resilience Models - Data types for protected model invocation.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ModelRole(str, Enum):
    """Logical model endpoints, each with independent resilience state."""

    ROUTER = "router"
    REASONER = "reasoner"
    SYNTHESIS = "synthesis"


class BreakerState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitStats(BaseModel):
    """Snapshot of one role's breaker."""

    role: str
    state: BreakerState
    failure_count: int = 0
    failures_in_window: int = 0
    success_count: int = 0
    total_calls: int = 0
    opened_at: float | None = None
    last_failure_at: float | None = None
    last_error: str | None = None

    model_config = {"frozen": True}


class GateMetrics(BaseModel):
    """Snapshot of the concurrency gate."""

    capacity: int
    active: int
    waiting: int
    peak_active: int
    total_acquired: int
    total_timeouts: int

    model_config = {"frozen": True}


class CacheEntry(BaseModel):
    """Cached model response."""

    key: str
    value: Any
    created_at: float
    expires_at: float
    hit_count: int = 0


class InvocationOptions(BaseModel):
    """Per-call options for the protected invoker."""

    scope: str = "global"
    query: str
    ttl: int | None = None
    user_id: str | None = None
    conversation_id: str | None = None
    chapter_id: str | None = None

    model_config = {"frozen": True}


class ModelResponse(BaseModel):
    """Result of a model call, live or cached."""

    content: str
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    from_cache: bool = False

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class UsageRecord(BaseModel):
    """One tracked model call."""

    user_id: str | None = None
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    conversation_id: str | None = None
    chapter_id: str | None = None
    is_cached: bool = False
    day: date = Field(default_factory=date.today)


class ModelUsage(BaseModel):
    """Token and cost totals for one model."""

    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    requests: int = 0


class CostSummary(BaseModel):
    """Aggregated usage over a date range."""

    total_cost: float = 0.0
    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    cached_requests: int = 0
    by_day: dict[str, float] = Field(default_factory=dict)
    by_model: dict[str, ModelUsage] = Field(default_factory=dict)
    by_user: dict[str, float] = Field(default_factory=dict)
