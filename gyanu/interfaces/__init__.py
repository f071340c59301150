"""
Interfaces - User-facing applications.

- api: FastAPI chat API (JSON and Server-Sent Events)
- cli: Command-line interface
"""

__all__ = ["api", "cli"]
