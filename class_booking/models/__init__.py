"""
Database models for the class booking core.
"""

from .base import Base
from .gym_class import GymClassRecord
from .class_session import ClassSessionRecord
from .booking import BookingRecord
from .subscription import MemberRecord, SubscriptionRecord, UserPermissionRecord

__all__ = [
    "Base",
    "GymClassRecord",
    "ClassSessionRecord",
    "BookingRecord",
    "MemberRecord",
    "SubscriptionRecord",
    "UserPermissionRecord",
]
