"""
SQLAlchemy-backed member, subscription and permission stores.
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import or_, select

from .base import BaseRepository
from ..domain import Member, Subscription, SubscriptionStatus, utcnow
from ..models import MemberRecord, SubscriptionRecord, UserPermissionRecord
from ..utils.exceptions import SubscriptionNotFoundError


def member_to_entity(record: MemberRecord) -> Member:
    return Member(
        id=record.id,
        tenant_id=record.tenant_id,
        email=record.email,
        first_name=record.first_name,
        last_name=record.last_name,
        user_id=record.user_id,
        preferred_language=record.preferred_language,
    )


def subscription_to_entity(record: SubscriptionRecord) -> Subscription:
    return Subscription(
        id=record.id,
        tenant_id=record.tenant_id,
        member_id=record.member_id,
        status=record.status,
        end_date=record.end_date,
        classes_remaining=record.classes_remaining,
    )


class MemberRepository(BaseRepository):
    """Members of one tenant."""

    async def find_by_id(self, member_id: uuid.UUID) -> Optional[Member]:
        return await self._find_one(MemberRecord.id == member_id)

    async def find_by_user_id(self, user_id: uuid.UUID) -> Optional[Member]:
        return await self._find_one(MemberRecord.user_id == user_id)

    async def _find_one(self, criterion) -> Optional[Member]:
        query = select(MemberRecord).where(criterion, MemberRecord.tenant_id == self.tenant_id)
        result = await self.session.execute(query)
        record = result.scalars().first()
        return member_to_entity(record) if record else None


class SubscriptionRepository(BaseRepository):
    """Subscriptions of one tenant."""

    async def find_by_id(self, subscription_id: uuid.UUID, for_update: bool = False) -> Optional[Subscription]:
        record = await self._get_record(subscription_id, for_update)
        return subscription_to_entity(record) if record else None

    async def find_active_by_member_id(self, member_id: uuid.UUID, today: Optional[date] = None) -> Optional[Subscription]:
        """The member's current active subscription, latest first if several overlap."""
        today = today or utcnow().date()
        query = (
            select(SubscriptionRecord)
            .where(
                SubscriptionRecord.tenant_id == self.tenant_id,
                SubscriptionRecord.member_id == member_id,
                SubscriptionRecord.status == SubscriptionStatus.ACTIVE,
                or_(SubscriptionRecord.end_date.is_(None), SubscriptionRecord.end_date >= today),
            )
            .order_by(SubscriptionRecord.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        return subscription_to_entity(record) if record else None

    async def save(self, subscription: Subscription) -> Subscription:
        record = await self._get_record(subscription.id)
        if record is None:
            raise SubscriptionNotFoundError(subscription.id)

        record.status = subscription.status
        record.end_date = subscription.end_date
        record.classes_remaining = subscription.classes_remaining

        await self._flush("subscription save")
        return subscription

    async def _get_record(self, subscription_id: uuid.UUID, for_update: bool = False) -> Optional[SubscriptionRecord]:
        query = select(SubscriptionRecord).where(
            SubscriptionRecord.id == subscription_id,
            SubscriptionRecord.tenant_id == self.tenant_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()


class PermissionRepository(BaseRepository):
    """Permission grants of one tenant, used for the cancel-any-booking bypass."""

    async def has_permission(self, user_id: uuid.UUID, permission_key: str) -> bool:
        query = select(UserPermissionRecord.id).where(
            UserPermissionRecord.tenant_id == self.tenant_id,
            UserPermissionRecord.user_id == user_id,
            UserPermissionRecord.permission_key == permission_key,
        )
        result = await self.session.execute(query)
        return result.first() is not None
