"""Slack client (app configuration) lookups."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from berlioz.models.slack_client import SlackClient
from berlioz.models.slack_integration import SlackIntegration


class ClientService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_client(self, client_id: int) -> Optional[SlackClient]:
        return self.db.query(SlackClient).filter(SlackClient.id == client_id).first()

    def get_client_for_integration(
        self, integration: SlackIntegration
    ) -> Optional[SlackClient]:
        """The client owning an integration; its signing secret verifies webhooks."""
        return self.get_client(integration.client_id)
