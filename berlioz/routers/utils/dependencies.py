from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from berlioz.db import get_db
from berlioz.models.slack_event import SlackEvent
from berlioz.services.event_service import EventService


def get_event_by_id(
    event_id: int,
    db: Session = Depends(get_db),
) -> SlackEvent:
    """FastAPI dependency to get a queued event by ID."""
    event = EventService(db).get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event
