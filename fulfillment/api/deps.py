from typing import Annotated
import logging

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import FulfillmentError, error_detail
from fulfillment.core.side_effects import SideEffectQueue
from fulfillment.database import get_db


logger = logging.getLogger(__name__)


def get_side_effects() -> SideEffectQueue:
    """Fresh queue per request; endpoints schedule it on BackgroundTasks."""
    return SideEffectQueue()


def http_error(exc: FulfillmentError) -> HTTPException:
    """Translate a domain error into the HTTP error the caller sees."""
    if exc.status_code >= 500:
        logger.error(f"Unexpected domain error: {exc.message}")
    return HTTPException(status_code=exc.status_code, detail=error_detail(exc))


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
SideEffects = Annotated[SideEffectQueue, Depends(get_side_effects)]
