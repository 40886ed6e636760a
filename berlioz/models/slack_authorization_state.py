"""SlackAuthorizationState model: one row per OAuth install attempt."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from berlioz.db import Base


class SlackAuthorizationState(Base):
    """Issued with the install redirect; redeemed once by the authorization callback."""

    __tablename__ = "slack_authorization_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=False)
    client_id = Column(
        Integer,
        ForeignKey("slack_clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    redeemed_at = Column(DateTime, nullable=True)

    client = relationship("SlackClient")
