"""
Command to handle Slack Events API webhooks.

Decodes the body, answers the url_verification handshake, verifies the
request signature with the owning client's signing secret and enqueues the
event for the worker.
"""

from __future__ import annotations

import json
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from berlioz.config import get_settings
from berlioz.core.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_signature
from berlioz.infra.logging_config import get_logger
from berlioz.schemas.slack import UrlVerification, decode_envelope
from berlioz.services.client_service import ClientService
from berlioz.services.event_service import EventService
from berlioz.services.integration_service import IntegrationService


class SlackEventsWebhookCommand:
    """
    Command to ingest one Slack Events API request.
    Nothing is enqueued unless the signature checks out.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()
        self.integration_service = IntegrationService(db)
        self.client_service = ClientService(db)
        self.event_service = EventService(db)
        self.logger = get_logger(__name__)

    async def execute(self, request: Request) -> Optional[dict[str, str]]:
        """
        Execute the webhook: decode, verify, enqueue.

        Returns:
            {"challenge": ...} for url_verification, otherwise None (event enqueued).

        Raises:
            HTTPException: 400 on a malformed body, 404 when no integration or
                client matches the app id, 401 on a bad signature.
            PersistenceError: the event could not be stored.
        """
        raw_body = await request.body()
        try:
            body = json.loads(raw_body)
            envelope = decode_envelope(body)
        except ValueError as e:
            self.logger.warning("Slack webhook parse error: %s", e)
            raise HTTPException(status_code=400, detail="Invalid Slack event") from e

        if isinstance(envelope, UrlVerification):
            return {"challenge": envelope.challenge}

        integration = self.integration_service.get_integration_by_app_id(
            getattr(envelope, "api_app_id", None)
        )
        if integration is None:
            raise HTTPException(status_code=404, detail="Integration not found")
        client = self.client_service.get_client_for_integration(integration)
        if client is None:
            raise HTTPException(status_code=404, detail="Client not found")

        if not verify_signature(
            request.headers.get(SIGNATURE_HEADER),
            request.headers.get(TIMESTAMP_HEADER),
            raw_body,
            client.signing_secret,
            max_age_seconds=self.settings.slack_signature_max_age_seconds,
        ):
            self.logger.warning(
                "Rejected Slack event for app %s: bad signature",
                integration.external_app_id,
            )
            raise HTTPException(status_code=401, detail="Invalid request signature")

        event = self.event_service.enqueue(integration.id, body)
        self.logger.info(
            "Enqueued Slack event %s (%s) for integration %s",
            event.id,
            body.get("type"),
            integration.id,
        )
        return None
