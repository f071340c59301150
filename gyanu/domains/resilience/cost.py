"""
Cost Tracker - Token and spend accounting for model calls.

Token counts are estimated at roughly four characters per token, which is
close enough for budgeting hosted model usage. Records are kept in memory;
the protected invoker calls `track_cost` fire-and-forget so accounting can
never slow down or fail a learner's request.

Pricing (USD per 1K tokens):
    qwen:3.5                    0.0001 in / 0.0002 out
    deepseek-v3.1:671b-cloud    0.0009 in / 0.0014 out
    gpt-oss:120b-cloud          0.0005 in / 0.0015 out
"""

from __future__ import annotations

import logging
import math
from collections import deque
from datetime import date, timedelta

from .models import CostSummary, ModelUsage, UsageRecord

logger = logging.getLogger(__name__)

__all__ = ["InMemoryCostTracker", "estimate_tokens", "calculate_cost", "MODEL_PRICING"]

MODEL_PRICING: dict[str, tuple[float, float]] = {
    "qwen:3.5": (0.0001, 0.0002),
    "deepseek-v3.1:671b-cloud": (0.0009, 0.0014),
    "gpt-oss:120b-cloud": (0.0005, 0.0015),
}
DEFAULT_PRICING = (0.0001, 0.0002)


def estimate_tokens(text: str | None) -> int:
    """Approximate token count (1 token ~ 4 characters)."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def calculate_cost(input_tokens: int, output_tokens: int, model_name: str) -> float:
    input_price, output_price = MODEL_PRICING.get(model_name, DEFAULT_PRICING)
    return (input_tokens / 1000) * input_price + (output_tokens / 1000) * output_price


class InMemoryCostTracker:
    """Keeps recent usage records and derives summaries from them."""

    def __init__(self, max_records: int = 10_000) -> None:
        self._records: deque[UsageRecord] = deque(maxlen=max_records)

    async def track_cost(
        self,
        query: str,
        response: str,
        model_name: str,
        user_id: str | None = None,
        *,
        conversation_id: str | None = None,
        chapter_id: str | None = None,
        is_cached: bool = False,
    ) -> UsageRecord:
        input_tokens = estimate_tokens(query)
        output_tokens = estimate_tokens(response)
        # Cached answers cost nothing but still count as served requests
        cost = 0.0 if is_cached else calculate_cost(input_tokens, output_tokens, model_name)

        record = UsageRecord(
            user_id=user_id,
            model=model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            conversation_id=conversation_id,
            chapter_id=chapter_id,
            is_cached=is_cached,
        )
        self._records.append(record)
        logger.debug(
            "Tracked %s call: %d in / %d out tokens, $%.6f",
            model_name,
            input_tokens,
            output_tokens,
            cost,
        )
        return record

    def summary(self, start_date: date | None = None, end_date: date | None = None) -> CostSummary:
        """Aggregate records whose day falls within [start_date, end_date]."""
        result = CostSummary()
        for record in self._records:
            if start_date and record.day < start_date:
                continue
            if end_date and record.day > end_date:
                continue

            result.total_cost += record.cost
            result.total_requests += 1
            result.total_input_tokens += record.input_tokens
            result.total_output_tokens += record.output_tokens
            if record.is_cached:
                result.cached_requests += 1

            day = record.day.isoformat()
            result.by_day[day] = result.by_day.get(day, 0.0) + record.cost

            usage = result.by_model.setdefault(record.model, ModelUsage())
            usage.input_tokens += record.input_tokens
            usage.output_tokens += record.output_tokens
            usage.cost += record.cost
            usage.requests += 1

            if record.user_id:
                result.by_user[record.user_id] = result.by_user.get(record.user_id, 0.0) + record.cost

        return result

    def daily_costs(self, days: int = 7) -> list[dict[str, float | int | str]]:
        """Per-day cost and request counts for the last `days` days, oldest first."""
        today = date.today()
        buckets: dict[date, dict[str, float | int | str]] = {
            today - timedelta(days=offset): {
                "date": (today - timedelta(days=offset)).isoformat(),
                "cost": 0.0,
                "requests": 0,
            }
            for offset in range(days - 1, -1, -1)
        }
        for record in self._records:
            bucket = buckets.get(record.day)
            if bucket is not None:
                bucket["cost"] = float(bucket["cost"]) + record.cost
                bucket["requests"] = int(bucket["requests"]) + 1
        return list(buckets.values())

    def reset(self) -> None:
        self._records.clear()
