"""
Explicit authorization guard for booking cancellation.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from ..domain import Booking
from ..ports import UnitOfWork
from ..utils.exceptions import AccessDeniedError
from ..utils.logging_config import log_security_event

logger = logging.getLogger(__name__)


class AuthorizationMode(str, enum.Enum):
    """How a cancellation request was authorized."""
    OWNER = "owner"
    PERMISSION = "permission"
    TRUSTED = "trusted"
    DENIED = "denied"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    mode: AuthorizationMode
    reason: str

    def raise_if_denied(self, required_permission: Optional[str] = None) -> None:
        if not self.allowed:
            raise AccessDeniedError(self.reason, required_permission=required_permission)


async def authorize_booking_cancellation(
    uow: UnitOfWork,
    booking: Booking,
    requesting_user_id: Optional[UUID],
    bypass_permission_key: str,
    allow_trusted: bool,
    *,
    trusted: bool = False,
) -> AuthorizationDecision:
    """
    Decide whether a cancellation request may proceed.

    An internal caller must say so with ``trusted=True``. It is allowed only
    when ``allow_trusted`` is set, and every such call is audited. A request
    that is neither trusted nor made by a user is denied.

    Args:
        uow: Open unit of work of the booking's tenant
        booking: Booking to be cancelled
        requesting_user_id: User asking for the cancellation
        bypass_permission_key: Permission that allows cancelling any member's booking
        allow_trusted: Whether trusted internal calls are accepted
        trusted: Marks the request as coming from an internal caller

    Returns:
        AuthorizationDecision describing the outcome
    """
    details = {
        "booking_id": str(booking.id),
        "member_id": str(booking.member_id),
        "tenant_id": str(uow.tenant_id),
        "requesting_user_id": str(requesting_user_id) if requesting_user_id else None,
    }

    if trusted:
        if allow_trusted:
            log_security_event("trusted_cancellation", details, severity="INFO")
            return AuthorizationDecision(True, AuthorizationMode.TRUSTED, "Trusted internal caller")
        log_security_event("trusted_cancellation_rejected", details)
        return AuthorizationDecision(
            False, AuthorizationMode.DENIED, "Trusted cancellation is disabled"
        )

    if requesting_user_id is None:
        log_security_event("anonymous_cancellation_rejected", details)
        return AuthorizationDecision(
            False, AuthorizationMode.DENIED, "Cancellation requires a requesting user"
        )

    member = await uow.members.find_by_user_id(requesting_user_id)
    if member is not None and member.id == booking.member_id:
        return AuthorizationDecision(True, AuthorizationMode.OWNER, "Requesting user owns the booking")

    if await uow.permissions.has_permission(requesting_user_id, bypass_permission_key):
        log_security_event("cancel_any_booking", details, severity="INFO")
        return AuthorizationDecision(
            True, AuthorizationMode.PERMISSION, f"Requesting user holds {bypass_permission_key}"
        )

    log_security_event("cancellation_denied", details)
    return AuthorizationDecision(
        False, AuthorizationMode.DENIED, "You can only cancel your own bookings"
    )
