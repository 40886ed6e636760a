"""Tests for SlackAdapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from berlioz.adapters.slack import SlackAdapter
from berlioz.schemas.messages import OutboundMessage, OutboundSendResult


@pytest.fixture
def web_client():
    client = MagicMock()
    client.chat_postMessage = AsyncMock(return_value={"ok": True, "ts": "1718000001.000200"})
    return client


@pytest.fixture
def adapter(web_client):
    slack = SlackAdapter(access_token="xoxb-test")
    slack._client = web_client
    return slack


def test_client_created_lazily_with_token():
    slack = SlackAdapter(access_token="xoxb-test")
    assert slack._client is None
    client = slack._get_client()
    assert client.token == "xoxb-test"
    assert slack._get_client() is client


@pytest.mark.asyncio
async def test_send_posts_into_thread(adapter, web_client):
    result = await adapter.send(
        OutboundMessage(channel_id="C1", text="hello", thread_ts="1718000000.000100")
    )
    web_client.chat_postMessage.assert_awaited_once_with(
        channel="C1", text="hello", thread_ts="1718000000.000100"
    )
    assert result == OutboundSendResult(success=True, platform_message_id="1718000001.000200")


@pytest.mark.asyncio
async def test_send_without_thread(adapter, web_client):
    await adapter.send(OutboundMessage(channel_id="C1", text="hello"))
    web_client.chat_postMessage.assert_awaited_once_with(channel="C1", text="hello")


@pytest.mark.asyncio
async def test_send_api_error_reports_failure(adapter, web_client):
    web_client.chat_postMessage.side_effect = SlackApiError(
        "The request to the Slack API failed.",
        {"ok": False, "error": "channel_not_found"},
    )
    result = await adapter.send(OutboundMessage(channel_id="C1", text="hello"))
    assert result.success is False
    assert result.error == "channel_not_found"


@pytest.mark.asyncio
async def test_send_not_ok_response_reports_failure(adapter, web_client):
    web_client.chat_postMessage.return_value = {"ok": False, "error": "not_in_channel"}
    result = await adapter.send(OutboundMessage(channel_id="C1", text="hello"))
    assert result.success is False
    assert result.error == "not_in_channel"


@pytest.mark.asyncio
async def test_send_converts_markdown_to_mrkdwn(adapter, web_client):
    await adapter.send(
        OutboundMessage(
            channel_id="C1", text="It is **sunny**, see [the forecast](https://example.com)"
        )
    )
    posted = web_client.chat_postMessage.await_args.kwargs["text"]
    assert "**" not in posted
    assert "*sunny*" in posted
    assert "<https://example.com|the forecast>" in posted
