"""
Ollama Adapter - Chat and embedding models over the Ollama API.
"""

from .client import OllamaChatModel, OllamaClient

__all__ = ["OllamaClient", "OllamaChatModel"]
