"""SQLAlchemy-backed stores for the booking core."""

from .base import BaseRepository, translate_db_errors
from .booking_repository import BookingRepository
from .member_repository import MemberRepository, PermissionRepository, SubscriptionRepository
from .session_repository import GymClassRepository, SessionRepository

__all__ = [
    "BaseRepository",
    "translate_db_errors",
    "BookingRepository",
    "GymClassRepository",
    "MemberRepository",
    "PermissionRepository",
    "SessionRepository",
    "SubscriptionRepository",
]
