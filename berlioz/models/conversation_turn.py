"""ConversationTurn model: one generation-history entry (model request or response)."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from berlioz.db import Base, JSONType


class ConversationTurn(Base):
    """Append-only. sequence is the 0-based position in the generation history."""

    __tablename__ = "conversation_turns"

    __table_args__ = (
        UniqueConstraint(
            "conversation_id",
            "sequence",
            name="uq_conversation_turns_conversation_sequence",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence = Column(Integer, nullable=False)
    content = Column(JSONType, nullable=False)
    content_hash = Column(String(64), nullable=False)
    created_at = Column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    conversation = relationship("Conversation", back_populates="turns")

    @property
    def role(self) -> str | None:
        """'request' or 'response', as tagged by the model message kind."""
        return (self.content or {}).get("kind")
