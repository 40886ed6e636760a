"""
Slack Events API payload schemas.

Webhook bodies are decoded once at ingestion into one of three variants:
UrlVerification (endpoint handshake), MessageEvent (a mention or message the
bot should answer) and OtherEvent (anything else; stored, never answered).
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

URL_VERIFICATION = "url_verification"
EVENT_CALLBACK = "event_callback"
MESSAGE_EVENT_TYPES = frozenset({"app_mention", "message"})


class SlackFile(BaseModel):
    """File attached to a message (event.files[])."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    mimetype: Optional[str] = None
    url_private: Optional[str] = None


class SlackMessage(BaseModel):
    """Inner event of a message-like event_callback."""

    model_config = ConfigDict(extra="allow")

    type: str
    channel: str
    ts: Optional[str] = None
    event_ts: Optional[str] = None
    thread_ts: Optional[str] = None
    user: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None
    text: Optional[str] = None
    blocks: list[dict[str, Any]] = Field(default_factory=list)
    files: list[SlackFile] = Field(default_factory=list)

    @property
    def thread_anchor(self) -> str:
        """Thread to reply in: the existing thread, else the triggering message."""
        anchor = self.thread_ts or self.event_ts or self.ts
        if not anchor:
            raise ValueError("Slack message has no ts, event_ts or thread_ts")
        return anchor

    @property
    def is_from_bot(self) -> bool:
        return self.bot_id is not None or self.subtype == "bot_message"


class UrlVerification(BaseModel):
    """Endpoint handshake; answered by echoing the challenge."""

    type: Literal["url_verification"]
    challenge: str
    token: Optional[str] = None


class MessageEvent(BaseModel):
    """event_callback wrapping an app_mention or message event."""

    model_config = ConfigDict(extra="allow")

    type: Literal["event_callback"]
    api_app_id: str
    team_id: Optional[str] = None
    event_id: Optional[str] = None
    event: SlackMessage


class OtherEvent(BaseModel):
    """Any other envelope (reactions, app_home_opened, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str
    api_app_id: Optional[str] = None


SlackEnvelope = Union[UrlVerification, MessageEvent, OtherEvent]


def decode_envelope(body: Any) -> SlackEnvelope:
    """
    Decode a webhook body into its variant.

    Raises:
        ValueError: body is not an object, has no type, or a url_verification
            or message event is malformed.
    """
    if not isinstance(body, dict):
        raise ValueError("Slack event body must be a JSON object")
    envelope_type = body.get("type")
    if not isinstance(envelope_type, str) or not envelope_type:
        raise ValueError("Slack event body has no type")
    try:
        if envelope_type == URL_VERIFICATION:
            return UrlVerification.model_validate(body)
        inner = body.get("event")
        if (
            envelope_type == EVENT_CALLBACK
            and isinstance(inner, dict)
            and inner.get("type") in MESSAGE_EVENT_TYPES
        ):
            return MessageEvent.model_validate(body)
        return OtherEvent.model_validate(body)
    except ValidationError as e:
        raise ValueError(f"Invalid Slack {envelope_type} payload: {e}") from e
