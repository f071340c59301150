"""
Supabase Adapter - Curriculum chunk similarity search.
"""

from .client import SupabaseChunkStore

__all__ = ["SupabaseChunkStore"]
