"""
Resilience Domain - Protected invocation of hosted language models.

This domain handles:
- Bounded, FIFO-fair concurrency across all model calls
- Per-role circuit breaking
- Response caching with cache fallback
- Fire-and-forget cost accounting
"""

from .breaker import CircuitBreaker, CircuitBreakerRegistry
from .cache import ResponseCacheImpl, generate_key, normalize_query
from .contracts import ChatModel, CostTracker, ResponseCache
from .cost import InMemoryCostTracker, calculate_cost, estimate_tokens
from .gate import ConcurrencyGate
from .invoker import ProtectedInvoker
from .models import (
    BreakerState,
    CacheEntry,
    CircuitStats,
    CostSummary,
    GateMetrics,
    InvocationOptions,
    ModelResponse,
    ModelRole,
    UsageRecord,
)

__all__ = [
    # Contracts
    "ChatModel",
    "CostTracker",
    "ResponseCache",
    # Models
    "ModelRole",
    "BreakerState",
    "CircuitStats",
    "GateMetrics",
    "CacheEntry",
    "InvocationOptions",
    "ModelResponse",
    "UsageRecord",
    "CostSummary",
    # Implementations
    "ConcurrencyGate",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "ResponseCacheImpl",
    "InMemoryCostTracker",
    "ProtectedInvoker",
    # Helpers
    "generate_key",
    "normalize_query",
    "estimate_tokens",
    "calculate_cost",
]
