"""
Command for the Slack OAuth v2 install flow.

get_redirect_link issues an authorization state and builds the Slack
authorize URL; exchange_code redeems that state, exchanges the code with
oauth.v2.access and stores the resulting integration.
"""

from __future__ import annotations

import base64
from typing import Optional

from fastapi import HTTPException
from pydantic import ValidationError
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from slack_sdk.oauth import AuthorizeUrlGenerator
from sqlalchemy.orm import Session

from berlioz.config import get_settings
from berlioz.exceptions import AuthorizationError
from berlioz.infra.logging_config import get_logger
from berlioz.models.slack_integration import SlackIntegration
from berlioz.schemas.slack_oauth import AuthorizationStatePayload, SlackTokenExchange
from berlioz.services.authorization_state_service import AuthorizationStateService
from berlioz.services.client_service import ClientService
from berlioz.services.integration_service import IntegrationService


def encode_state(payload: AuthorizationStatePayload) -> str:
    """URL-safe base64 of the JSON state, without padding."""
    raw = payload.model_dump_json().encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_state(state: str) -> AuthorizationStatePayload:
    """
    Raises:
        AuthorizationError: state is not a JSON state produced by encode_state.
    """
    try:
        padded = state + "=" * (-len(state) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return AuthorizationStatePayload.model_validate_json(raw)
    except (ValueError, ValidationError) as e:
        raise AuthorizationError(f"Invalid OAuth state: {e}") from e


class SlackAuthorizationCommand:
    """Issue install links and complete the authorization-code exchange."""

    def __init__(self, db: Session, web_client: Optional[WebClient] = None) -> None:
        self.db = db
        self.settings = get_settings()
        self.client_service = ClientService(db)
        self.integration_service = IntegrationService(db)
        self.state_service = AuthorizationStateService(db)
        self._web_client = web_client
        self.logger = get_logger(__name__)

    def _get_web_client(self) -> WebClient:
        if self._web_client is None:
            self._web_client = WebClient()
        return self._web_client

    def get_redirect_link(self, account_id: int, client_id: int) -> str:
        """
        Build the Slack authorize URL for one install attempt.

        Raises:
            HTTPException: 404 if the client does not exist.
            PersistenceError: the authorization state could not be stored.
        """
        client = self.client_service.get_client(client_id)
        if client is None:
            raise HTTPException(status_code=404, detail="Client not found")

        state = self.state_service.create_state(account_id, client.id)
        generator = AuthorizeUrlGenerator(
            client_id=client.external_client_id,
            scopes=self.settings.slack_bot_scope_list,
            user_scopes=[],
            redirect_uri=self.settings.slack_redirect_uri,
        )
        return generator.generate(
            encode_state(
                AuthorizationStatePayload(
                    state_id=state.id, account_id=account_id, client_id=client.id
                )
            )
        )

    def exchange_code(self, code: str, state: str) -> SlackIntegration:
        """
        Redeem the state, exchange the code and store the integration.

        Raises:
            AuthorizationError: unknown or already redeemed state, or Slack
                rejected the exchange.
            PersistenceError: the integration could not be stored.
        """
        payload = decode_state(state)
        stored = self.state_service.get_unredeemed_state(
            payload.state_id, payload.account_id, payload.client_id
        )
        if stored is None:
            raise AuthorizationError(
                f"Could not find an open authorization state {payload.state_id}"
            )
        client = self.client_service.get_client(payload.client_id)
        if client is None:
            raise AuthorizationError(f"Client {payload.client_id} no longer exists")

        try:
            response = self._get_web_client().oauth_v2_access(
                client_id=client.external_client_id,
                client_secret=client.external_client_secret,
                code=code,
                redirect_uri=self.settings.slack_redirect_uri,
            )
        except SlackApiError as e:
            error = e.response.get("error") if e.response is not None else str(e)
            raise AuthorizationError(f"oauth.v2.access failed: {error}") from e

        team = response.get("team") or {}
        try:
            exchange = SlackTokenExchange(
                access_token=response.get("access_token"),
                bot_user_id=response.get("bot_user_id"),
                app_id=response.get("app_id"),
                team_id=team.get("id"),
                team_name=team.get("name"),
            )
        except ValidationError as e:
            raise AuthorizationError(f"Unexpected oauth.v2.access response: {e}") from e

        integration = self.integration_service.create_integration(
            payload.account_id, client.id, exchange
        )
        self.state_service.redeem_state(stored.id)
        self.logger.info(
            "Installed app %s in team %s for account %s",
            exchange.app_id,
            exchange.team_id,
            payload.account_id,
        )
        return integration
