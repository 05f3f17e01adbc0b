"""Artifact storage for JSON data and extraction checkpoints.

Provides a consistent interface for storing and retrieving JSON artifacts
with integrity verification, plus the per-extractor checkpoint files that
let an interrupted forensic run resume where it stopped.
"""

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.clock import utc_now, utc_now_iso
from core.models.refs import DataReference

logger = logging.getLogger(__name__)


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def put_json(obj: Any, path: Path, ensure_parent: bool = True) -> DataReference:
    """Store a JSON-serializable object and return a DataReference.

    Args:
        obj: Object to serialize to JSON (dict, Pydantic model, etc.)
        path: File path where the artifact will be stored
        ensure_parent: Create parent directories if they don't exist

    Returns:
        DataReference with artifact metadata for retrieval

    Raises:
        TypeError: If object is not JSON-serializable
    """
    path = Path(path)
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)

    if hasattr(obj, "model_dump"):
        obj_dict = obj.model_dump(mode="json", by_alias=True)
    else:
        obj_dict = obj

    json_bytes = json.dumps(obj_dict, indent=2, default=str).encode("utf-8")

    # Write then rename so a crash never leaves half a file behind
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(json_bytes)
    tmp_path.replace(path)

    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(json_bytes),
        content_type="application/json",
        size_bytes=len(json_bytes),
        stored_at=utc_now(),
    )


def get_json(ref: DataReference, validate_hash: bool = True) -> Any:
    """Retrieve JSON artifact from a DataReference.

    Raises:
        FileNotFoundError: If artifact path doesn't exist
        ValueError: If hash validation fails
    """
    path = Path(ref.storage_uri)

    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {ref.storage_uri}")

    json_bytes = path.read_bytes()

    if validate_hash:
        actual_hash = _compute_sha256(json_bytes)
        if actual_hash != ref.content_hash:
            raise ValueError(
                f"Hash mismatch for {ref.storage_uri}: "
                f"expected {ref.content_hash}, got {actual_hash}"
            )

    return json.loads(json_bytes.decode("utf-8"))


# =============================================================================
# Extraction Checkpoints
# =============================================================================

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class CheckpointManager:
    """One JSON file per completed extractor under a run directory.

    The orchestrator saves each extractor's result as soon as it completes
    and, on resume, skips every extractor that already has a checkpoint.
    """

    def __init__(self, storage_dir: Union[str, Path]):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, extractor_id: str) -> Path:
        return self.storage_dir / f"{_SAFE_NAME.sub('_', extractor_id)}.json"

    def save(self, extractor_id: str, payload: Any) -> DataReference:
        ref = put_json(
            {
                "extractorId": extractor_id,
                "savedAt": utc_now_iso(),
                "payload": payload,
            },
            self._path(extractor_id),
        )
        logger.debug(f"Checkpoint saved for {extractor_id}: {ref.storage_uri}")
        return ref

    def load(self, extractor_id: str) -> Optional[Any]:
        path = self._path(extractor_id)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return data.get("payload")

    def has(self, extractor_id: str) -> bool:
        return self._path(extractor_id).exists()

    def completed_ids(self) -> List[str]:
        ids = []
        for path in sorted(self.storage_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except ValueError:
                logger.warning(f"Ignoring unreadable checkpoint {path}")
                continue
            ids.append(data.get("extractorId", path.stem))
        return ids

    def load_all(self) -> Dict[str, Any]:
        return {extractor_id: self.load(extractor_id) for extractor_id in self.completed_ids()}

    def clear(self) -> int:
        """Delete every checkpoint; returns how many were removed."""
        removed = 0
        for path in self.storage_dir.glob("*.json"):
            path.unlink()
            removed += 1
        return removed
