"""
Search Domain - Curriculum retrieval and web search.

This domain handles:
- Contracts for vector similarity search and web search
- Result models shared by adapters and workflow steps
- Educational re-ranking, summarisation and prompt rendering
"""

from .contracts import SimilaritySearch, WebSearchEngine
from .formatting import (
    WebResultCache,
    categories_for_subject,
    format_chunks,
    format_web_results,
    rank_results,
    summarize_content,
    validate_search_url,
)
from .models import ChunkResult, SearchFilters, WebResult

__all__ = [
    # Contracts
    "SimilaritySearch",
    "WebSearchEngine",
    # Models
    "ChunkResult",
    "SearchFilters",
    "WebResult",
    # Helpers
    "WebResultCache",
    "categories_for_subject",
    "format_chunks",
    "format_web_results",
    "rank_results",
    "summarize_content",
    "validate_search_url",
]
