"""
SlackEvent model: the durable event queue.

Rows are inserted on verified ingestion and never deleted. A row is pending
while processed_at and abandoned_at are both NULL; either timestamp is terminal.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text

from berlioz.db import Base, JSONType
from berlioz.models.mixins import TimestampMixin


class SlackEvent(Base, TimestampMixin):
    """One inbound Slack event awaiting (or done with) asynchronous processing."""

    __tablename__ = "slack_events"

    __table_args__ = (
        Index("ix_slack_events_pending", "processed_at", "abandoned_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    integration_id = Column(
        Integer,
        ForeignKey("slack_integrations.id", ondelete="SET NULL"),
        nullable=True,
    )
    payload = Column(JSONType, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    abandoned_at = Column(DateTime, nullable=True)
    delivery_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    @property
    def status(self) -> str:
        if self.processed_at is not None:
            return "processed"
        if self.abandoned_at is not None:
            return "abandoned"
        return "pending"

    @property
    def api_app_id(self) -> str | None:
        return (self.payload or {}).get("api_app_id")
