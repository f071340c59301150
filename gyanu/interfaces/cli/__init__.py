"""
CLI Interface - Command-line tools for Gyanu.

Provides commands for:
- Asking the tutor a question
- Running the API server
"""

from .main import app, main

__all__ = ["app", "main"]
