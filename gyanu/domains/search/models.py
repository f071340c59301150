"""
Search Models - Data types for curriculum retrieval and web search.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SearchFilters(BaseModel):
    """Curriculum scope for a similarity query; None means unfiltered."""

    subject: str | None = None
    grade: int | None = None
    chapter: str | None = None

    model_config = {"frozen": True}


class ChunkResult(BaseModel):
    """A textbook chunk returned by similarity search."""

    id: str | None = None
    content: str
    heading_hierarchy: list[str] = Field(default_factory=list)
    similarity: float = 0.0
    subject: str | None = None
    grade: int | None = None
    chapter: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebResult(BaseModel):
    """Single web search hit."""

    title: str = ""
    content: str = ""
    url: str = ""
    score: float = 0.0

    model_config = {"frozen": True}
