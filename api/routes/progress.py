"""Progress endpoints: event history and the live SSE stream."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from core.progress import ProgressBus, QueueSSEStream

router = APIRouter()


class HistoryResponse(BaseModel):
    """Recent progress events, oldest first."""
    count: int
    events: List[Dict[str, Any]]


def get_bus(request: Request) -> ProgressBus:
    return request.app.state.bus


@router.get("/history", response_model=HistoryResponse)
async def progress_history(
    count: int = Query(50, ge=1, le=1000, description="Number of events"),
    type: Optional[str] = Query(None, description="Event type prefix, e.g. 'migration:'"),
    bus: ProgressBus = Depends(get_bus),
) -> HistoryResponse:
    events = [e.to_dict() for e in bus.get_history(count, type)]
    return HistoryResponse(count=len(events), events=events)


@router.get("/stream")
async def progress_stream(
    replay: int = Query(50, ge=0, le=1000, alias="replayCount", description="Events replayed on connect"),
    type: Optional[str] = Query(None, description="Event type prefix"),
    bus: ProgressBus = Depends(get_bus),
) -> StreamingResponse:
    """Server-sent events: a ``connected`` frame, the replay, then live events."""
    stream = QueueSSEStream()
    bus.connect_sse(stream, replay_count=replay, type_prefix=type)
    headers = {k: v for k, v in stream.headers.items() if k.lower() != "content-type"}
    return StreamingResponse(stream, media_type="text/event-stream", headers=headers)
