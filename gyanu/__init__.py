"""
Gyanu - Resilient LLM orchestration core for a curriculum-aware AI tutor.

Example:
    >>> from gyanu.domains.orchestration import TutorPipeline, UserContext
    >>> pipeline = TutorPipeline.from_settings()
    >>> result = await pipeline.run("What is photosynthesis?", user_context=UserContext(grade=7, subject="Science"))
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
