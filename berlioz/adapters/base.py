"""
Platform adapter interface.

Adapters encapsulate platform-specific delivery. The worker only talks to
this contract; webhook bodies are decoded by berlioz.schemas.slack.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from berlioz.schemas.messages import OutboundMessage, OutboundSendResult


class BasePlatformAdapter(ABC):
    """Contract for platform adapters."""

    @abstractmethod
    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send an outbound message. Report failure in the result rather than raising."""
        ...
