"""
Web push subscription endpoints.

Endpoints:
    GET   /push/public-key   — VAPID public key ("" when push is disabled)
    POST  /push/subscribe    — Register a PushSubscription
    POST  /push/unsubscribe  — Remove one by endpoint
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_notifier
from models import PushSubscribeRequest, PushUnsubscribeRequest
from services import push_registry
from services.notification_service import Notifier
from utils.validators import validate_endpoint

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/push", tags=["push"])


@router.get("/public-key")
async def get_public_key(notifier: Notifier = Depends(get_notifier)):
    return {"publicKey": notifier.push.public_key or ""}


@router.post("/subscribe")
async def subscribe(
    request: PushSubscribeRequest,
    db: AsyncSession = Depends(get_db),
):
    endpoint = validate_endpoint(request.endpoint)
    keys = request.keys
    _, created = await push_registry.add_subscription(
        db,
        endpoint=endpoint,
        p256dh=keys.p256dh if keys else None,
        auth=keys.auth if keys else None,
    )
    await db.commit()
    if created:
        logger.info(f"Push subscription added: {endpoint[:60]}")
    return {"ok": True, "created": created}


@router.post("/unsubscribe")
async def unsubscribe(
    request: PushUnsubscribeRequest,
    db: AsyncSession = Depends(get_db),
):
    endpoint = validate_endpoint(request.endpoint)
    removed = await push_registry.remove_subscription(db, endpoint=endpoint)
    await db.commit()
    return {"ok": True, "removed": removed}
