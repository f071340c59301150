"""
Adapters - External service integrations.

All outbound HTTP calls are wrapped here to isolate domains from third-party changes.
"""

from .ollama import OllamaChatModel, OllamaClient
from .searxng import SearXNGClient
from .supabase import SupabaseChunkStore

__all__ = [
    # Model endpoint
    "OllamaClient",
    "OllamaChatModel",
    # Knowledge acquisition
    "SupabaseChunkStore",
    "SearXNGClient",
]
