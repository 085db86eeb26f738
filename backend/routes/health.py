"""
Health and notification status endpoints.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_notifier
from services.notification_service import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Health check — verifies database connectivity, reports active channels."""
    channels = {"relay": notifier.relay.enabled, "push": notifier.push.enabled}
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "database_connected": False,
                "channels": channels,
            },
        )
    return {
        "status": "healthy",
        "database_connected": True,
        "channels": channels,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/notifications/status", tags=["notifications"])
async def notification_status(notifier: Notifier = Depends(get_notifier)):
    """In-memory fan-out counters."""
    return notifier.metrics.to_dict()
