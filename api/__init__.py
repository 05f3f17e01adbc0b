"""API Package.

FastAPI server exposing health probes and run progress.
"""

from api.server import create_app

__all__ = [
    "create_app",
]
