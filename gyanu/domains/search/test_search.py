"""
Tests for search models, ranking and rendering.
"""

from __future__ import annotations

import pytest

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


# --- Models ---


def test_search_filters_default_unfiltered() -> None:
    filters = SearchFilters()
    assert filters.subject is None
    assert filters.grade is None
    assert filters.chapter is None


def test_search_filters_is_immutable() -> None:
    filters = SearchFilters(subject="Science", grade=7)
    with pytest.raises(Exception):
        filters.grade = 8  # type: ignore


# --- Chunk rendering ---


def test_format_chunks_with_headings() -> None:
    """Test chunks are numbered and prefixed with their heading path."""
    chunks = [
        ChunkResult(content="Plants make food.", heading_hierarchy=["Nutrition in Plants", "Photosynthesis"]),
        ChunkResult(content="Chlorophyll is green."),
    ]

    text = format_chunks(chunks)

    assert text == (
        "[1] (Nutrition in Plants > Photosynthesis): Plants make food.\n\n"
        "[2]: Chlorophyll is green."
    )


# --- Web ranking ---


def test_rank_results_boosts_educational_domains() -> None:
    results = [
        WebResult(title="Blog", url="https://randomblog.com/light"),
        WebResult(title="NCERT", url="https://ncert.nic.in/textbook/light"),
        WebResult(title="Khan", url="https://www.khanacademy.org/light"),
    ]

    ranked = rank_results(results)

    assert [r.title for r in ranked] == ["NCERT", "Khan", "Blog"]
    assert ranked[0].score == 10


def test_summarize_content_word_boundary() -> None:
    """Test truncation never splits a word."""
    text = "word " * 60
    summary = summarize_content(text, max_length=22)
    assert summary == "word word word word..."
    assert summarize_content("short") == "short"
    assert summarize_content("") == ""


@pytest.mark.parametrize(
    ("subject", "expected"),
    [
        (None, ["general"]),
        ("Physics", ["general", "science"]),
        ("painting", ["general", "images"]),
        ("History", ["general"]),
    ],
)
def test_categories_for_subject(subject: str | None, expected: list[str]) -> None:
    assert categories_for_subject(subject) == expected


def test_format_web_results_top_three_with_sources() -> None:
    results = [WebResult(title=f"T{i}", content=f"c{i}", url=f"https://site{i}.com") for i in range(5)]

    text = format_web_results(results, max_results=3)

    assert text.startswith("Top Web Search Results:\n")
    assert text.count("\n- ") == 3
    assert "- T0: c0 (Source: https://site0.com)" in text
    assert "T3" not in text


def test_format_web_results_empty() -> None:
    assert format_web_results([]) == "No results found on the web."


# --- Config validation ---


def test_validate_search_url() -> None:
    assert validate_search_url("http://localhost:8080")[0] is True
    valid, message = validate_search_url(None)
    assert valid is False
    assert "SEARXNG_URL" in message
    assert validate_search_url("not a url")[0] is False


# --- Web result cache ---


def test_web_result_cache_ttl() -> None:
    now = [0.0]
    cache = WebResultCache(ttl_seconds=300, clock=lambda: now[0])
    results = [WebResult(title="x")]

    cache.set("  Monsoon ", results)
    assert cache.get("monsoon") == results

    now[0] = 301.0
    assert cache.get("monsoon") is None
    assert len(cache) == 0


def test_web_result_cache_bounded() -> None:
    """Test unread queries cannot grow the cache past its size limit."""
    now = [0.0]
    cache = WebResultCache(ttl_seconds=300, max_size=5, clock=lambda: now[0])

    for i in range(20):
        now[0] = float(i)
        cache.set(f"query {i}", [WebResult(title=str(i))])
        assert len(cache) <= 5

    assert cache.get("query 19") is not None
    assert cache.get("query 0") is None


def test_web_result_cache_evicts_expired_first() -> None:
    now = [0.0]
    cache = WebResultCache(ttl_seconds=10, max_size=2, clock=lambda: now[0])
    cache.set("old", [])
    now[0] = 8.0
    cache.set("recent", [])

    now[0] = 12.0
    cache.set("new", [])

    assert cache.get("recent") == []
    assert cache.get("new") == []
    assert len(cache) == 2
