"""Core storage - JSON artifacts and extraction checkpoints."""

from core.storage.artifacts import (
    put_json,
    get_json,
    CheckpointManager,
)

__all__ = [
    "put_json",
    "get_json",
    "CheckpointManager",
]
