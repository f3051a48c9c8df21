"""API routes package."""

from marginalia.api.routes import ai, brains, threads

__all__ = [
    "ai",
    "brains",
    "threads",
]
