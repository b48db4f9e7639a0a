"""
Pydantic schemas for booking commands and results.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..domain import BookingStatus


class CreateBookingCommand(BaseModel):
    """Schema for requesting a booking."""

    session_id: UUID = Field(..., description="ID of the session to book")
    member_id: UUID = Field(..., description="Member the booking is for")
    subscription_id: Optional[UUID] = Field(
        None, description="Subscription to bind; the member's active one if omitted"
    )
    notes: Optional[str] = Field(None, max_length=500)
    booked_by: Optional[UUID] = Field(None, description="Staff user booking on the member's behalf")


class CancelBookingCommand(BaseModel):
    """Schema for cancelling a booking."""

    booking_id: UUID
    reason: Optional[str] = Field(None, max_length=500, description="Optional cancellation reason")


class BookingPayload(BaseModel):
    """Serializable view of a booking."""

    id: UUID
    tenant_id: UUID
    session_id: UUID
    member_id: UUID
    subscription_id: Optional[UUID] = None
    status: BookingStatus
    waitlist_position: Optional[int] = None
    class_deducted: bool = False
    booked_at: datetime
    checked_in_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    promoted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class BulkOperationResult(BaseModel):
    """Outcome of one item of a bulk operation."""

    success: bool
    booking: Optional[BookingPayload] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
