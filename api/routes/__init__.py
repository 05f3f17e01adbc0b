"""API Routes Package."""

from api.routes import health, progress

__all__ = [
    "health",
    "progress",
]
