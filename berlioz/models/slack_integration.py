"""SlackIntegration model: a workspace installation of a Slack app for an account."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from berlioz.db import Base
from berlioz.models.mixins import TimestampMixin


class SlackIntegration(Base, TimestampMixin):
    """Created once per successful OAuth exchange; carries the bot access token."""

    __tablename__ = "slack_integrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, nullable=False, index=True)
    client_id = Column(
        Integer,
        ForeignKey("slack_clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    external_team_id = Column(String(64), nullable=False)
    external_team_name = Column(String(255), nullable=True)
    bot_user_id = Column(String(64), nullable=False)
    external_app_id = Column(String(64), nullable=False, index=True)
    access_token = Column(Text, nullable=False)

    client = relationship("SlackClient", back_populates="integrations")
