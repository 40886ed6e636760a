"""SlackClient model: one row per Slack app configuration (OAuth credentials + signing secret)."""

from __future__ import annotations

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from berlioz.db import Base
from berlioz.models.mixins import TimestampMixin


class SlackClient(Base, TimestampMixin):
    """Immutable app configuration. The signing secret verifies inbound webhooks."""

    __tablename__ = "slack_clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_client_id = Column(String(255), nullable=False, unique=True)
    external_client_secret = Column(String(255), nullable=False)
    signing_secret = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    integrations = relationship("SlackIntegration", back_populates="client")
