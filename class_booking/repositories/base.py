"""
Shared plumbing for the SQLAlchemy-backed stores.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_retryable_db_error(error: DBAPIError) -> bool:
    """Serialization failures, deadlocks and lock timeouts worth another attempt."""
    if _sqlstate(error) in RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(error.orig).lower()


@asynccontextmanager
async def translate_db_errors(operation: str) -> AsyncIterator[None]:
    """Turn database-level contention into ConcurrencyError so the use case can be retried."""
    try:
        yield
    except StaleDataError as e:
        logger.warning("Stale data during %s: %s", operation, e)
        raise ConcurrencyError(f"Concurrent modification during {operation}") from e
    except DBAPIError as e:
        if is_retryable_db_error(e):
            logger.warning("Transaction conflict during %s: %s", operation, e)
            raise ConcurrencyError(f"Transaction conflict during {operation}") from e
        raise


class BaseRepository:
    """Repository bound to one database session and one tenant."""

    def __init__(self, session: AsyncSession, tenant_id: uuid.UUID):
        self.session = session
        self.tenant_id = tenant_id

    async def _flush(self, operation: str) -> None:
        async with translate_db_errors(operation):
            await self.session.flush()
