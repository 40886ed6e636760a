"""Operator API over the event queue: inspect events and requeue dead letters."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from berlioz.db import get_db
from berlioz.models.slack_event import SlackEvent
from berlioz.routers.utils.dependencies import get_event_by_id
from berlioz.schemas.event import EventRead, EventStatus
from berlioz.services.event_service import EventService

router = APIRouter(
    prefix="/events",
    tags=["events"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=Page[EventRead])
def list_events(
    status: Optional[EventStatus] = None,
    params: Params = Depends(),
    db: Session = Depends(get_db),
) -> Page[EventRead]:
    """List queued events, oldest first, optionally filtered by status."""
    query = EventService(db).get_events_query(status)
    return paginate(query, params=params)


@router.get("/{event_id}", response_model=EventRead)
def get_event(event: SlackEvent = Depends(get_event_by_id)) -> EventRead:
    """Get a queued event by ID."""
    return event


@router.post("/{event_id}/requeue", response_model=EventRead)
def requeue_event(
    event: SlackEvent = Depends(get_event_by_id),
    db: Session = Depends(get_db),
) -> EventRead:
    """Make an abandoned event pending again."""
    if event.status == EventStatus.PROCESSED:
        raise HTTPException(status_code=409, detail="Event is already processed")
    return EventService(db).requeue(event.id)
