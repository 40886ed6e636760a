"""
Turns a queued Slack event into a generation request.

The prompt is assembled from the message's rich_text blocks: text runs are
kept verbatim, user mentions contribute the raw user id unless they mention
the bot itself. Only the first attached file is fetched.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from berlioz.adapters.media_fetcher import MediaFetcher
from berlioz.infra.logging_config import get_logger
from berlioz.models.slack_integration import SlackIntegration
from berlioz.schemas.messages import GenerationRequest, RequestMedia
from berlioz.schemas.slack import SlackFile, SlackMessage

logger = get_logger(__name__)

RICH_TEXT = "rich_text"
RICH_TEXT_SECTION = "rich_text_section"


def _section_elements(blocks: Iterable[dict[str, Any]]) -> Iterable[dict[str, Any]]:
    """Yield sub-elements in block → element → sub-element order."""
    for block in blocks:
        if not isinstance(block, dict) or block.get("type") != RICH_TEXT:
            continue
        for element in block.get("elements") or []:
            if not isinstance(element, dict) or element.get("type") != RICH_TEXT_SECTION:
                continue
            for sub_element in element.get("elements") or []:
                if isinstance(sub_element, dict):
                    yield sub_element


def assemble_prompt(blocks: Iterable[dict[str, Any]], bot_user_id: Optional[str]) -> str:
    """Concatenate text runs and non-bot user mentions."""
    parts: list[str] = []
    for sub_element in _section_elements(blocks):
        kind = sub_element.get("type")
        if kind == "user":
            user_id = sub_element.get("user_id")
            if user_id and user_id != bot_user_id:
                parts.append(str(user_id))
        elif kind == "text":
            parts.append(str(sub_element.get("text") or ""))
    return "".join(parts)


class ContentExtractor:
    """Builds GenerationRequest objects from Slack message events."""

    def __init__(self, media_fetcher: MediaFetcher) -> None:
        self._media_fetcher = media_fetcher

    def extract(
        self, message: SlackMessage, integration: SlackIntegration
    ) -> GenerationRequest:
        """
        Build the prompt and fetch the first attached file, if any.

        Raises:
            MediaFetchError: the attached file could not be downloaded.
        """
        if message.blocks:
            prompt = assemble_prompt(message.blocks, integration.bot_user_id)
        else:
            prompt = message.text or ""

        request = GenerationRequest(prompt=prompt)
        if message.files:
            if len(message.files) > 1:
                logger.info(
                    "Event carries %d files; only the first is used", len(message.files)
                )
            request.media = self._fetch_media(message.files[0], integration)
        return request

    def _fetch_media(
        self, file: SlackFile, integration: SlackIntegration
    ) -> Optional[RequestMedia]:
        if not file.url_private:
            logger.info("Attached file %s has no url_private; skipping", file.id)
            return None
        fetched = self._media_fetcher.fetch(
            file.url_private, integration.access_token, mime_type=file.mimetype
        )
        return RequestMedia(
            content=fetched.content,
            mime_type=fetched.mime_type,
            sha256=fetched.sha256,
            url=fetched.url,
            path=fetched.path,
        )
