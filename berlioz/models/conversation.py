"""Conversation model: one row per Slack thread the bot has replied in."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from berlioz.db import Base
from berlioz.models.mixins import TimestampMixin


class Conversation(Base, TimestampMixin):
    """Identified by (integration_id, channel_id, thread_anchor)."""

    __tablename__ = "conversations"

    __table_args__ = (
        UniqueConstraint(
            "integration_id",
            "channel_id",
            "thread_anchor",
            name="uq_conversations_integration_channel_thread",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    integration_id = Column(
        Integer,
        ForeignKey("slack_integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel_id = Column(String(64), nullable=False)
    thread_anchor = Column(String(64), nullable=False)

    turns = relationship(
        "ConversationTurn",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationTurn.sequence",
    )
