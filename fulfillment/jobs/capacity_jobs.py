"""Periodic warehouse capacity recalculation."""
import logging

from fulfillment.database import get_db_session
from fulfillment.services.capacity_service import CapacityService

logger = logging.getLogger(__name__)


async def recalculate_all_capacity() -> int:
    """Recompute used capacity for every client. Returns the client count."""
    try:
        async with get_db_session() as db:
            count = await CapacityService(db).recalculate_all()
        logger.info(f"Capacity recalculated for {count} client(s)")
        return count
    except Exception as e:
        logger.error(f"Capacity recalculation job failed: {e}")
        return 0
