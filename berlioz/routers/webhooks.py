"""
Webhook routes for inbound Slack events.

Slack POSTs Events API requests here; we verify, enqueue and return 204.
The url_verification handshake is answered with the echoed challenge.
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from berlioz.commands.webhooks.slack_events_command import SlackEventsWebhookCommand
from berlioz.db import get_db

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/slack/events", response_model=None)
async def slack_events_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> Union[dict[str, str], Response]:
    """
    Receive Slack Events API requests.
    Returns the challenge for url_verification, otherwise 204 once enqueued.
    """
    challenge = await SlackEventsWebhookCommand(db).execute(request)
    if challenge is not None:
        return challenge
    return Response(status_code=204)
