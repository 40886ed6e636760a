"""Slack OAuth v2 install routes: redirect link and authorization callback."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from berlioz.commands.oauth.slack_authorization_command import SlackAuthorizationCommand
from berlioz.db import get_db
from berlioz.schemas.slack_oauth import RedirectLinkResponse

router = APIRouter(
    prefix="/slack",
    tags=["slack"],
    responses={404: {"description": "Not found"}},
)


@router.get("/redirect-link", response_model=RedirectLinkResponse)
def get_redirect_link(
    account_id: Optional[int] = None,
    client_id: Optional[int] = None,
    db: Session = Depends(get_db),
) -> RedirectLinkResponse:
    """Issue an authorization state and return the Slack authorize URL."""
    if account_id is None or client_id is None:
        raise HTTPException(
            status_code=409,
            detail="Missing required 'account_id' or 'client_id' query parameter(s)",
        )
    link = SlackAuthorizationCommand(db).get_redirect_link(account_id, client_id)
    return RedirectLinkResponse(redirect_link=link)


@router.get("/authorization", status_code=204)
def slack_authorization(
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Response:
    """OAuth callback: exchange the code and store the integration."""
    if not code or not state:
        raise HTTPException(
            status_code=409,
            detail="Missing required 'code' or 'state' query parameter(s)",
        )
    SlackAuthorizationCommand(db).exchange_code(code, state)
    return Response(status_code=204)
