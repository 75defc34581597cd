"""
Event tracking routes.

POST /recommendations/events   record a behavioral event
GET  /recommendations/events   recent events for a user (newest first)
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.dependencies import get_event_service
from core.logging import get_logger
from feed.events import EventService
from feed.models import Event, EventContext, EventMetadata, EventType


logger = get_logger(__name__)

router = APIRouter(prefix="/recommendations/events", tags=["Events"])


class CreateEventRequest(BaseModel):
    """Client payload. Timestamp defaults to server time."""
    user_id: str = Field(..., min_length=1)
    event_type: EventType
    properties: Dict[str, Any] = Field(default_factory=dict)
    context: Optional[EventContext] = None
    metadata: Optional[EventMetadata] = None
    timestamp: Optional[datetime] = None

    def to_event(self) -> Event:
        data = self.model_dump(exclude_none=True)
        return Event(**data)


@router.post("", response_model=Event, status_code=201, summary="Track an event")
def create_event(
    request: CreateEventRequest,
    service: EventService = Depends(get_event_service),
) -> Event:
    try:
        return service.log_event(request.to_event())
    except Exception as e:
        logger.error("Failed to record event", event_type=request.event_type.value, error=str(e))
        raise HTTPException(status_code=503, detail="Event store unavailable")


@router.get("", response_model=List[Event], summary="List recent events for a user")
def list_events(
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, le=500),
    since: Optional[datetime] = Query(None),
    service: EventService = Depends(get_event_service),
) -> List[Event]:
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    return service.get_recent_events(user_id, limit, since)
