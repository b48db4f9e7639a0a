"""Pydantic schemas for commands, results and events."""

from .booking import BookingPayload, BulkOperationResult, CancelBookingCommand, CreateBookingCommand
from .webhook import WebhookEvent

__all__ = [
    "BookingPayload",
    "BulkOperationResult",
    "CancelBookingCommand",
    "CreateBookingCommand",
    "WebhookEvent",
]
