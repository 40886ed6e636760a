"""Slack integration lookup and creation."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from berlioz.exceptions import PersistenceError
from berlioz.models.slack_integration import SlackIntegration
from berlioz.schemas.slack_oauth import SlackTokenExchange


class IntegrationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_integration(self, integration_id: int) -> Optional[SlackIntegration]:
        return (
            self.db.query(SlackIntegration)
            .filter(SlackIntegration.id == integration_id)
            .first()
        )

    def get_integration_by_app_id(self, app_id: Optional[str]) -> Optional[SlackIntegration]:
        """Most recent installation of the given Slack app id, if any."""
        if not app_id:
            return None
        return (
            self.db.query(SlackIntegration)
            .filter(SlackIntegration.external_app_id == app_id)
            .order_by(SlackIntegration.created_at.desc(), SlackIntegration.id.desc())
            .first()
        )

    def create_integration(
        self, account_id: int, client_id: int, exchange: SlackTokenExchange
    ) -> SlackIntegration:
        integration = SlackIntegration(
            account_id=account_id,
            client_id=client_id,
            external_team_id=exchange.team_id,
            external_team_name=exchange.team_name,
            bot_user_id=exchange.bot_user_id,
            external_app_id=exchange.app_id,
            access_token=exchange.access_token,
        )
        try:
            self.db.add(integration)
            self.db.commit()
            self.db.refresh(integration)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save integration: {e}") from e
        return integration
