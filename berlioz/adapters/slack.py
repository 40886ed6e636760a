"""
Slack platform adapter.

Uses slack_sdk's AsyncWebClient for chat.postMessage, authenticated with the
integration's bot token. Model replies are Markdown; Slack renders mrkdwn,
so text is converted before posting.
"""

from __future__ import annotations

from typing import Any, Optional

from markdown_to_mrkdwn import SlackMarkdownConverter
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from berlioz.adapters.base import BasePlatformAdapter
from berlioz.infra.logging_config import get_logger
from berlioz.schemas.messages import OutboundMessage, OutboundSendResult

logger = get_logger(__name__)

_mrkdwn = SlackMarkdownConverter()


def to_mrkdwn(text: str) -> str:
    """Convert Markdown (bold, links, headings, lists) to Slack mrkdwn."""
    return _mrkdwn.convert(text)


class SlackAdapter(BasePlatformAdapter):
    """Slack adapter: post replies into threads."""

    def __init__(self, access_token: str) -> None:
        self._access_token = access_token
        self._client: Optional[AsyncWebClient] = None

    def _get_client(self) -> AsyncWebClient:
        if self._client is None:
            self._client = AsyncWebClient(token=self._access_token)
        return self._client

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Post to the channel, threaded under thread_ts when given."""
        send_kw: dict[str, Any] = {
            "channel": outbound.channel_id,
            "text": to_mrkdwn(outbound.text),
        }
        if outbound.thread_ts:
            send_kw["thread_ts"] = outbound.thread_ts
        try:
            response = await self._get_client().chat_postMessage(**send_kw)
        except SlackApiError as e:
            error = e.response.get("error") if e.response is not None else str(e)
            logger.warning(
                "chat.postMessage to %s failed: %s", outbound.channel_id, error
            )
            return OutboundSendResult(success=False, error=str(error))
        if not response.get("ok"):
            return OutboundSendResult(success=False, error=str(response.get("error")))
        return OutboundSendResult(
            success=True,
            platform_message_id=response.get("ts"),
        )
