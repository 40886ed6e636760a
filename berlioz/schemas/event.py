"""Pydantic schemas for queued Slack events (operator API)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class EventStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    ABANDONED = "abandoned"


class EventRead(BaseModel):
    """Event as returned by the operator API."""

    id: int
    integration_id: Optional[int] = None
    payload: dict[str, Any]
    status: EventStatus
    delivery_attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
