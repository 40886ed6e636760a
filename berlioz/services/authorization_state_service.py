"""OAuth install state bookkeeping: issue on redirect, redeem once on callback."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from berlioz.exceptions import PersistenceError
from berlioz.models.slack_authorization_state import SlackAuthorizationState


class AuthorizationStateService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_state(self, account_id: int, client_id: int) -> SlackAuthorizationState:
        state = SlackAuthorizationState(account_id=account_id, client_id=client_id)
        try:
            self.db.add(state)
            self.db.commit()
            self.db.refresh(state)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save OAuth state: {e}") from e
        if not state.id:
            raise PersistenceError("Failed to save OAuth state: no id assigned")
        return state

    def get_unredeemed_state(
        self, state_id: int, account_id: int, client_id: int
    ) -> Optional[SlackAuthorizationState]:
        """The state row matching all three ids, if it has not been redeemed."""
        return (
            self.db.query(SlackAuthorizationState)
            .filter(
                SlackAuthorizationState.id == state_id,
                SlackAuthorizationState.account_id == account_id,
                SlackAuthorizationState.client_id == client_id,
                SlackAuthorizationState.redeemed_at.is_(None),
            )
            .first()
        )

    def redeem_state(self, state_id: int) -> None:
        state = (
            self.db.query(SlackAuthorizationState)
            .filter(SlackAuthorizationState.id == state_id)
            .first()
        )
        if state is None or state.redeemed_at is not None:
            return
        state.redeemed_at = datetime.now(timezone.utc)
        self.db.commit()
