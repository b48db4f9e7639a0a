"""
Transaction boundary shared by every state-mutating use case.
"""

import logging
import uuid
from typing import List

from .ports import (
    BookingStore,
    GymClassStore,
    MemberStore,
    PermissionService,
    PostCommitCallback,
    SessionStore,
    SubscriptionStore,
)

logger = logging.getLogger(__name__)


class AbstractUnitOfWork:
    """Base unit of work.

    Subclasses provide the stores and implement ``_commit`` / ``rollback``.
    Leaving the ``async with`` block without committing rolls back.
    """

    members: MemberStore
    subscriptions: SubscriptionStore
    sessions: SessionStore
    gym_classes: GymClassStore
    bookings: BookingStore
    permissions: PermissionService

    def __init__(self, tenant_id: uuid.UUID):
        self.tenant_id = tenant_id
        self._committed = False
        self._post_commit: List[PostCommitCallback] = []

    async def __aenter__(self) -> "AbstractUnitOfWork":
        self._committed = False
        self._post_commit = []
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._committed:
            self._post_commit = []
            await self.rollback()

    def on_commit(self, callback: PostCommitCallback) -> None:
        """Register a coroutine function to run after a successful commit."""
        self._post_commit.append(callback)

    async def commit(self) -> None:
        await self._commit()
        self._committed = True
        callbacks, self._post_commit = self._post_commit, []
        for callback in callbacks:
            try:
                await callback()
            except Exception as e:
                # Side effects never undo a committed booking change
                logger.error(
                    "Post-commit callback %s failed: %s",
                    getattr(callback, "__qualname__", repr(callback)), e,
                    exc_info=True
                )

    async def _commit(self) -> None:
        raise NotImplementedError

    async def rollback(self) -> None:
        raise NotImplementedError
