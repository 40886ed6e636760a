"""Schemas for the Slack OAuth install flow."""

from __future__ import annotations

from pydantic import BaseModel


class AuthorizationStatePayload(BaseModel):
    """Round-tripped through Slack as the JSON-encoded OAuth `state` parameter."""

    state_id: int
    account_id: int
    client_id: int


class RedirectLinkResponse(BaseModel):
    redirect_link: str


class SlackTokenExchange(BaseModel):
    """Fields kept from an oauth.v2.access response."""

    access_token: str
    bot_user_id: str
    app_id: str
    team_id: str
    team_name: str | None = None
