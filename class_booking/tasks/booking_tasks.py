"""
Celery tasks for booking housekeeping.
"""

import asyncio
import logging
from uuid import UUID

from .celery_app import celery_app
from ..cache import close_redis, init_redis
from ..database import close_database, init_database, unit_of_work_factory
from ..services import build_booking_service

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="process_no_shows_task")
def process_no_shows_task(self, tenant_id: str, session_id: str):
    """
    Mark every still-confirmed booking of a finished session as a no-show.

    Args:
        tenant_id: Tenant owning the session
        session_id: Session whose attendance is closed
    """

    async def _process_no_shows():
        await init_database(create_tables=False)
        await init_redis()
        try:
            booking_service = build_booking_service(unit_of_work_factory())
            count = await booking_service.process_no_shows_for_session(UUID(tenant_id), UUID(session_id))
            logger.info(f"Marked {count} no-shows for session {session_id}")
            return {"session_id": session_id, "no_show_count": count}
        finally:
            await close_redis()
            await close_database()

    # Run the async function
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_process_no_shows())
    finally:
        loop.close()
