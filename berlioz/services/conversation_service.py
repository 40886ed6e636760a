"""
Conversation resolution and turn persistence.

A conversation is the thread (integration, channel, thread anchor) the bot
replies in; its turns are the model history entries in generation order.
Conversations are created lazily, the first time turns need to be stored.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from berlioz.exceptions import PersistenceError
from berlioz.infra.logging_config import get_logger
from berlioz.models.conversation import Conversation
from berlioz.models.conversation_turn import ConversationTurn

logger = get_logger(__name__)


def hash_turn(content: dict[str, Any]) -> str:
    """Stable SHA-256 of a history entry (canonical JSON)."""
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class ConversationRef:
    """A resolved thread. conversation is None until the first turns are persisted."""

    integration_id: int
    channel_id: str
    thread_anchor: str
    conversation: Optional[Conversation] = None
    turns: List[ConversationTurn] = field(default_factory=list)

    @property
    def is_persisted(self) -> bool:
        return self.conversation is not None

    @property
    def conversation_id(self) -> Optional[int]:
        return self.conversation.id if self.conversation is not None else None


class ConversationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_conversation(
        self, integration_id: int, channel_id: str, thread_anchor: str
    ) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.integration_id == integration_id,
                Conversation.channel_id == channel_id,
                Conversation.thread_anchor == thread_anchor,
            )
            .first()
        )

    def resolve(
        self, integration_id: int, channel_id: str, thread_anchor: str
    ) -> ConversationRef:
        """Look up the thread's conversation and its turns; absent is not an error."""
        conversation = self.get_conversation(integration_id, channel_id, thread_anchor)
        return ConversationRef(
            integration_id=integration_id,
            channel_id=channel_id,
            thread_anchor=thread_anchor,
            conversation=conversation,
            turns=list(conversation.turns) if conversation is not None else [],
        )

    def persist(self, ref: ConversationRef) -> ConversationRef:
        """Create the conversation row if it does not exist yet."""
        if ref.conversation is not None:
            return ref
        conversation = Conversation(
            integration_id=ref.integration_id,
            channel_id=ref.channel_id,
            thread_anchor=ref.thread_anchor,
        )
        try:
            self.db.add(conversation)
            self.db.commit()
            self.db.refresh(conversation)
        except IntegrityError:
            # Created concurrently; use the existing row.
            self.db.rollback()
            return self.resolve(ref.integration_id, ref.channel_id, ref.thread_anchor)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save conversation: {e}") from e
        return ConversationRef(
            integration_id=ref.integration_id,
            channel_id=ref.channel_id,
            thread_anchor=ref.thread_anchor,
            conversation=conversation,
            turns=[],
        )

    def append_turns(
        self,
        conversation_id: int,
        new_turns: Sequence[dict[str, Any]],
        start_sequence: int = 0,
    ) -> List[ConversationTurn]:
        """
        Append turns in order, one commit each. If one fails, the turns already
        written stay persisted and PersistenceError is raised.
        """
        appended: List[ConversationTurn] = []
        for offset, content in enumerate(new_turns):
            turn = ConversationTurn(
                conversation_id=conversation_id,
                sequence=start_sequence + offset,
                content=content,
                content_hash=hash_turn(content),
            )
            try:
                self.db.add(turn)
                self.db.commit()
                self.db.refresh(turn)
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceError(
                    f"Failed to save turn {start_sequence + offset} of "
                    f"conversation {conversation_id}: {e}"
                ) from e
            appended.append(turn)
        return appended

    def reconcile_history(
        self, ref: ConversationRef, updated_history: Sequence[dict[str, Any]]
    ) -> List[ConversationTurn]:
        """
        Store the entries of updated_history that are not on record yet.

        Everything past the stored count is new. The stored prefix is checked
        by content hash; a divergence is logged but the suffix is still stored.
        """
        stored = ref.turns
        if len(updated_history) < len(stored):
            logger.warning(
                "Generated history for conversation %s is shorter than stored (%d < %d); nothing appended",
                ref.conversation_id,
                len(updated_history),
                len(stored),
            )
            return []
        for turn, entry in zip(stored, updated_history):
            if turn.content_hash != hash_turn(entry):
                logger.warning(
                    "History for conversation %s diverges at sequence %s",
                    ref.conversation_id,
                    turn.sequence,
                )
                break
        new_entries = list(updated_history[len(stored):])
        if not new_entries:
            return []
        ref = self.persist(ref)
        start = stored[-1].sequence + 1 if stored else 0
        appended = self.append_turns(ref.conversation_id, new_entries, start)
        ref.turns.extend(appended)
        return appended

    def get_history(self, ref: ConversationRef) -> List[dict[str, Any]]:
        """Stored turn contents in sequence order."""
        return [turn.content for turn in ref.turns]
