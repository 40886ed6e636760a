"""
Normalized message contracts for Berlioz.

Outbound replies go through the platform adapter as OutboundMessage;
events are turned into a GenerationRequest before reaching the model.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class OutboundMessage(BaseModel):
    """Normalized outbound reply (core → adapter)."""

    channel_id: str
    text: str
    thread_ts: Optional[str] = None  # omit to post at channel level


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional message ts)."""

    success: bool
    platform_message_id: Optional[str] = None
    error: Optional[str] = None


class RequestMedia(BaseModel):
    """One attached file, buffered in memory and addressed by its SHA-256."""

    content: bytes
    mime_type: str
    sha256: str
    url: Optional[str] = None
    path: Optional[str] = None  # set when materialized on disk


class GenerationRequest(BaseModel):
    """Prompt plus at most one media payload."""

    prompt: str = ""
    media: Optional[RequestMedia] = None


class GenerationResult(BaseModel):
    """Reply text and the full updated history (prior + new entries)."""

    reply_text: str
    updated_history: list[dict[str, Any]] = Field(default_factory=list)
