"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends

from gyanu import __version__
from gyanu.domains.orchestration import TutorPipeline
from gyanu.interfaces.api.deps import get_pipeline

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "gyanu"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "Gyanu API",
        "version": __version__,
        "description": "AI tutor for school students",
        "docs": "/docs",
    }


@router.get("/api/health/llm")
async def llm_health(pipeline: TutorPipeline = Depends(get_pipeline)) -> dict[str, Any]:
    """
    Model-call resilience status.

    Reports the circuit state of each model role, the concurrency gate and
    the response cache. Status is "degraded" while any circuit is not closed.
    """
    invoker = pipeline.invoker
    breakers = {role: stats.model_dump() for role, stats in invoker.breakers.all_stats().items()}
    degraded = any(stats["state"] != "closed" for stats in breakers.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "breakers": breakers,
        "gate": invoker.gate.metrics().model_dump(),
        "cache": invoker.cache.stats(),
    }
