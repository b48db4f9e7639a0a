"""
Custom exceptions for the class booking core.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the booking core."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"

    # Business logic errors
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    INVALID_STATE = "INVALID_STATE"
    SESSION_FULL = "SESSION_FULL"
    OWNERSHIP_MISMATCH = "OWNERSHIP_MISMATCH"
    SUBSCRIPTION_NOT_ACTIVE = "SUBSCRIPTION_NOT_ACTIVE"
    NO_CLASSES_REMAINING = "NO_CLASSES_REMAINING"
    NO_ACTIVE_SUBSCRIPTION = "NO_ACTIVE_SUBSCRIPTION"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    OPTIMISTIC_LOCK_FAILURE = "OPTIMISTIC_LOCK_FAILURE"


class ClassBookingError(Exception):
    """Base exception class for the booking core."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(ClassBookingError):
    """Exception raised when booking eligibility fails.

    ``reason`` is the human-readable message meant for client display.
    """

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            reason,
            error_code=ErrorCode.VALIDATION_ERROR,
            **kwargs
        )
        self.reason = reason


class NotFoundError(ClassBookingError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class SessionNotFoundError(NotFoundError):
    """Exception raised when a class session is not found."""

    def __init__(self, session_id: Any, **kwargs):
        super().__init__(
            f"Session {session_id} not found",
            resource_type="session",
            resource_id=str(session_id),
            **kwargs
        )


class GymClassNotFoundError(NotFoundError):
    """Exception raised when a gym class is not found."""

    def __init__(self, gym_class_id: Any, **kwargs):
        super().__init__(
            f"Gym class {gym_class_id} not found",
            resource_type="gym_class",
            resource_id=str(gym_class_id),
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: Any, **kwargs):
        super().__init__(
            f"Booking {booking_id} not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your booking history"],
            **kwargs
        )


class MemberNotFoundError(NotFoundError):
    """Exception raised when a member is not found."""

    def __init__(self, member_id: Any, **kwargs):
        super().__init__(
            f"Member {member_id} not found",
            resource_type="member",
            resource_id=str(member_id),
            **kwargs
        )


class SubscriptionNotFoundError(NotFoundError):
    """Exception raised when an explicitly referenced subscription is missing."""

    def __init__(self, subscription_id: Any, **kwargs):
        super().__init__(
            f"Subscription {subscription_id} not found",
            resource_type="subscription",
            resource_id=str(subscription_id),
            **kwargs
        )


class AccessDeniedError(ClassBookingError):
    """Exception raised when a user may not act on another member's booking."""

    def __init__(self, message: str = "Access denied", required_permission: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details={"required_permission": required_permission} if required_permission else None,
            **kwargs
        )


class BusinessLogicError(ClassBookingError):
    """Base exception for business logic violations."""
    pass


class DuplicateBookingError(BusinessLogicError):
    """Exception raised when a member already holds an active booking for a session."""

    def __init__(self, session_id: Any, member_id: Any, **kwargs):
        super().__init__(
            "Member already has an active booking for this session",
            error_code=ErrorCode.DUPLICATE_BOOKING,
            details={"session_id": str(session_id), "member_id": str(member_id)},
            suggestions=["Cancel the existing booking first"],
            **kwargs
        )


class InvalidStateError(BusinessLogicError):
    """Exception raised when a booking or session is in a state that forbids the operation."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        required_state: Optional[str] = None,
        **kwargs
    ):
        details = {}
        if current_state is not None:
            details["current_state"] = current_state
        if required_state is not None:
            details["required_state"] = required_state
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_STATE,
            details=details or None,
            **kwargs
        )
        self.current_state = current_state
        self.required_state = required_state


class SessionFullError(BusinessLogicError):
    """Exception raised when both capacity and waitlist are exhausted."""

    def __init__(self, session_id: Any, **kwargs):
        super().__init__(
            "Session is full and waitlist is not available",
            error_code=ErrorCode.SESSION_FULL,
            details={"session_id": str(session_id)},
            suggestions=["Choose another session"],
            **kwargs
        )


class OwnershipError(BusinessLogicError):
    """Exception raised when a subscription or booking belongs to another member."""

    def __init__(self, message: str = "Subscription does not belong to member", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.OWNERSHIP_MISMATCH,
            **kwargs
        )


class SubscriptionNotActiveError(BusinessLogicError):
    """Exception raised when the resolved subscription is not active."""

    def __init__(self, subscription_id: Any, status: str, expired: bool = False, **kwargs):
        message = (
            "Subscription has expired" if expired
            else f"Subscription is not active (status: {status})"
        )
        super().__init__(
            message,
            error_code=ErrorCode.SUBSCRIPTION_NOT_ACTIVE,
            details={"subscription_id": str(subscription_id), "status": status, "expired": expired},
            suggestions=["Renew the subscription"],
            **kwargs
        )
        self.expired = expired


class NoCreditsError(BusinessLogicError):
    """Exception raised when a subscription has no classes remaining."""

    def __init__(self, subscription_id: Any, **kwargs):
        super().__init__(
            "No classes remaining in subscription",
            error_code=ErrorCode.NO_CLASSES_REMAINING,
            details={"subscription_id": str(subscription_id)},
            suggestions=["Upgrade or renew the subscription"],
            **kwargs
        )


class NoActiveSubscriptionError(BusinessLogicError):
    """Exception raised when no subscription id was given and the member has none active."""

    def __init__(self, member_id: Any, **kwargs):
        super().__init__(
            "Member does not have an active subscription",
            error_code=ErrorCode.NO_ACTIVE_SUBSCRIPTION,
            details={"member_id": str(member_id)},
            suggestions=["Purchase a subscription"],
            **kwargs
        )


class ConcurrencyError(ClassBookingError):
    """Exception raised for concurrency-related issues."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.CONCURRENCY_CONFLICT)
        super().__init__(
            message,
            retry_after=retry_after,
            suggestions=["Please try again", "Wait a moment and retry"],
            **kwargs
        )


class OptimisticLockError(ConcurrencyError):
    """Exception raised when optimistic locking fails."""

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        super().__init__(
            f"{resource_type} {resource_id} was modified by another transaction",
            details={"resource_type": resource_type, "resource_id": resource_id},
            error_code=ErrorCode.OPTIMISTIC_LOCK_FAILURE,
            **kwargs
        )
