"""
API Dependencies - Dependency injection for FastAPI routes.

The tutor pipeline owns the process-wide gate, breakers, response cache and
cost tracker, so a single instance serves every request.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from gyanu.config import get_settings
from gyanu.domains.orchestration import TutorPipeline
from gyanu.domains.resilience import ModelRole

logger = logging.getLogger(__name__)


@lru_cache
def get_pipeline() -> TutorPipeline:
    """Get tutor pipeline singleton."""
    return TutorPipeline.from_settings(get_settings())


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    pipeline = get_pipeline()
    logger.info(
        "  Models: router=%s reasoner=%s synthesis=%s",
        *(pipeline.invoker.model_name(role) for role in ModelRole),
    )
    logger.info("  Gate capacity: %d", pipeline.invoker.gate.capacity)


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    if get_pipeline.cache_info().currsize:
        await get_pipeline().close()
        get_pipeline.cache_clear()
