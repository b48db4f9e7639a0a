"""
Pydantic schema for booking webhook events.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .booking import BookingPayload
from ..domain import utcnow


class WebhookEvent(BaseModel):
    """Event published for downstream webhook delivery."""

    event_type: str = Field(..., description="e.g. booking.confirmed, booking.cancelled")
    tenant_id: UUID
    occurred_at: datetime = Field(default_factory=utcnow)
    booking: BookingPayload
