"""
Service for the durable Slack event queue.

Events are inserted on ingestion and never deleted. The single event worker
observes the oldest pending row with claim_next and later marks it processed
(or abandoned after repeated delivery failures). claim_next takes no lock:
exclusivity comes from the worker's single-consumer lock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from berlioz.exceptions import PersistenceError
from berlioz.infra.logging_config import get_logger
from berlioz.models.slack_event import SlackEvent
from berlioz.schemas.event import EventStatus

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 2000


class EventService:
    """Enqueue, observe and terminally mark Slack events."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def enqueue(self, integration_id: Optional[int], payload: dict[str, Any]) -> SlackEvent:
        """
        Persist a verified event as pending.

        Raises:
            PersistenceError: the insert failed or no id was assigned.
        """
        event = SlackEvent(integration_id=integration_id, payload=payload)
        try:
            self.db.add(event)
            self.db.commit()
            self.db.refresh(event)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save event: {e}") from e
        if not event.id:
            raise PersistenceError("Failed to save event: no id assigned")
        return event

    def claim_next(self) -> Optional[SlackEvent]:
        """Return the oldest pending event (ties broken by id), without mutating it."""
        return (
            self._pending_query()
            .order_by(SlackEvent.created_at.asc(), SlackEvent.id.asc())
            .first()
        )

    def mark_processed(self, event_id: int) -> None:
        """Set processed_at once; repeated calls and unknown ids are no-ops."""
        updated = (
            self.db.query(SlackEvent)
            .filter(SlackEvent.id == event_id, SlackEvent.processed_at.is_(None))
            .update(
                {SlackEvent.processed_at: datetime.now(timezone.utc)},
                synchronize_session="fetch",
            )
        )
        self.db.commit()
        if not updated:
            logger.debug("Event %s already processed or missing", event_id)

    def record_delivery_failure(
        self, event_id: int, error: str, max_attempts: int = 0
    ) -> Optional[SlackEvent]:
        """
        Count a failed delivery. The event stays pending so the next poll
        retries it, unless max_attempts (> 0) is reached, which abandons it.
        """
        event = self.get_event(event_id)
        if event is None:
            return None
        event.delivery_attempts = (event.delivery_attempts or 0) + 1
        event.last_error = error[:MAX_ERROR_LENGTH] if error else None
        if max_attempts > 0 and event.delivery_attempts >= max_attempts:
            event.abandoned_at = datetime.now(timezone.utc)
            logger.warning(
                "Abandoning event %s after %d failed deliveries",
                event_id,
                event.delivery_attempts,
            )
        self.db.commit()
        self.db.refresh(event)
        return event

    def requeue(self, event_id: int) -> Optional[SlackEvent]:
        """Make an abandoned event pending again. Processed events are left alone."""
        event = self.get_event(event_id)
        if event is None:
            return None
        if event.processed_at is not None:
            return event
        event.abandoned_at = None
        event.delivery_attempts = 0
        event.last_error = None
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_event(self, event_id: int) -> Optional[SlackEvent]:
        return self.db.query(SlackEvent).filter(SlackEvent.id == event_id).first()

    def get_events(self, skip: int = 0, limit: int = 100) -> List[SlackEvent]:
        return (
            self.db.query(SlackEvent)
            .order_by(SlackEvent.created_at.asc(), SlackEvent.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_events_query(self, status: Optional[EventStatus] = None) -> Query[SlackEvent]:
        """Get a query for events, optionally filtered by status (for pagination)."""
        if status == EventStatus.PENDING:
            query = self._pending_query()
        else:
            query = self.db.query(SlackEvent)
            if status == EventStatus.PROCESSED:
                query = query.filter(SlackEvent.processed_at.isnot(None))
            elif status == EventStatus.ABANDONED:
                query = query.filter(
                    SlackEvent.abandoned_at.isnot(None),
                    SlackEvent.processed_at.is_(None),
                )
        return query.order_by(SlackEvent.created_at.asc(), SlackEvent.id.asc())

    def _pending_query(self) -> Query[SlackEvent]:
        return self.db.query(SlackEvent).filter(
            SlackEvent.processed_at.is_(None),
            SlackEvent.abandoned_at.is_(None),
        )
