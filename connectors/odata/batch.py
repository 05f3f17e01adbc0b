"""OData ``$batch`` request building and response parsing.

Reads go into the batch directly; each mutation gets its own changeset so a
failing write does not roll back its neighbours.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from core.errors import ODataError

CRLF = "\r\n"

_BOUNDARY_RE = re.compile(r'boundary="?([^";\s]+)"?', re.IGNORECASE)
_STATUS_RE = re.compile(r"^HTTP/\d\.\d\s+(\d{3})\s*(.*)$", re.MULTILINE)


@dataclass
class BatchRequest:
    method: str
    path: str
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class BatchResult:
    index: int
    status: int
    body: Any = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


def _http_part(request: BatchRequest) -> List[str]:
    lines = [
        "Content-Type: application/http",
        "Content-Transfer-Encoding: binary",
        "",
        f"{request.method.upper()} {request.path} HTTP/1.1",
        "Accept: application/json",
    ]
    for key, value in request.headers.items():
        lines.append(f"{key}: {value}")
    if request.body is not None:
        payload = request.body if isinstance(request.body, str) else json.dumps(request.body)
        lines.append("Content-Type: application/json")
        lines.append("")
        lines.append(payload)
    else:
        lines.append("")
    lines.append("")
    return lines


def build_batch(requests: List[BatchRequest], boundary: Optional[str] = None) -> Tuple[str, str]:
    """Return ``(content_type, body)`` for a multipart/mixed batch."""
    boundary = boundary or f"batch_{uuid.uuid4().hex}"
    lines: List[str] = []
    for request in requests:
        lines.append(f"--{boundary}")
        if request.method.upper() == "GET":
            lines.extend(_http_part(request))
            continue
        changeset = f"changeset_{uuid.uuid4().hex}"
        lines.append(f"Content-Type: multipart/mixed; boundary={changeset}")
        lines.append("")
        lines.append(f"--{changeset}")
        lines.extend(_http_part(request))
        lines.append(f"--{changeset}--")
        lines.append("")
    lines.append(f"--{boundary}--")
    lines.append("")
    return f"multipart/mixed; boundary={boundary}", CRLF.join(lines)


def _split_parts(body: str, boundary: str) -> List[str]:
    parts = []
    # text before the first delimiter is preamble
    for chunk in body.split(f"--{boundary}")[1:]:
        stripped = chunk.strip()
        if not stripped or stripped == "--":
            continue
        if stripped.startswith("--"):
            break
        parts.append(chunk)
    return parts


def _parse_http_part(part: str) -> Tuple[int, Any]:
    match = _STATUS_RE.search(part)
    if not match:
        return 0, None
    rest = part[match.end():]
    # response headers end at the first blank line
    sections = re.split(r"\n\s*\n", rest, maxsplit=1)
    payload = sections[1].strip() if len(sections) > 1 else ""
    if not payload:
        return int(match.group(1)), None
    try:
        return int(match.group(1)), json.loads(payload)
    except ValueError:
        return int(match.group(1)), payload


def _collect(body: str, boundary: str, out: List[Tuple[int, Any]]) -> None:
    for part in _split_parts(body, boundary):
        head = part.split("\n\n", 1)[0]
        nested = _BOUNDARY_RE.search(head) if "multipart/mixed" in head.lower() else None
        if nested:
            _collect(part, nested.group(1), out)
        else:
            out.append(_parse_http_part(part))


def parse_batch_response(content_type: str, body: str) -> List[BatchResult]:
    """Per-part results in request order; failing parts carry an error dict.

    Raises:
        ODataError: response has no multipart boundary
    """
    match = _BOUNDARY_RE.search(content_type or "")
    normalized = (body or "").replace("\r\n", "\n")
    if not match:
        # some gateways omit the header; fall back to the first delimiter line
        first = normalized.lstrip().split("\n", 1)[0]
        if not first.startswith("--"):
            raise ODataError("Batch response has no multipart boundary", response_body=body[:2000] if body else None)
        boundary = first[2:].strip()
    else:
        boundary = match.group(1)

    parsed: List[Tuple[int, Any]] = []
    _collect(normalized, boundary, parsed)

    results = []
    for index, (status, payload) in enumerate(parsed):
        result = BatchResult(index=index, status=status, body=payload)
        if not result.ok:
            result.error = ODataError(
                f"Batch part {index} failed with status {status}",
                status_code=status,
                response_body=payload,
                details={"part": index},
            ).to_dict()
        results.append(result)
    return results
