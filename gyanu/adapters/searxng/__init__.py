"""
SearXNG Adapter - Web search.
"""

from .client import SearXNGClient

__all__ = ["SearXNGClient"]
