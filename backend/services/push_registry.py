"""
Push subscription registry — add, remove and list web push targets.

Callers own the transaction (flush only, no commit).
"""

from typing import NamedTuple

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import PushSubscription


class ListedTarget(NamedTuple):
    """A subscription as it was when a fan-out pass listed it."""
    id: int
    endpoint: str
    p256dh: str | None
    auth: str | None

    @classmethod
    def of(cls, sub: PushSubscription) -> "ListedTarget":
        return cls(sub.id, sub.endpoint, sub.p256dh, sub.auth)

    def subscription_info(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh or "", "auth": self.auth or ""},
        }


async def add_subscription(
    db: AsyncSession,
    *,
    endpoint: str,
    p256dh: str | None,
    auth: str | None,
) -> tuple[PushSubscription, bool]:
    """
    Register an endpoint. Re-registering an existing endpoint refreshes its keys.

    Returns (subscription, created).
    """
    res = await db.execute(select(PushSubscription).where(PushSubscription.endpoint == endpoint))
    existing = res.scalar_one_or_none()
    if existing:
        if p256dh is not None:
            existing.p256dh = p256dh
        if auth is not None:
            existing.auth = auth
        await db.flush()
        return existing, False

    sub = PushSubscription(endpoint=endpoint, p256dh=p256dh, auth=auth)
    db.add(sub)
    await db.flush()
    return sub, True


async def remove_subscription(db: AsyncSession, *, endpoint: str) -> bool:
    res = await db.execute(delete(PushSubscription).where(PushSubscription.endpoint == endpoint))
    return res.rowcount > 0


async def remove_gone(db: AsyncSession, targets: list[ListedTarget]) -> int:
    """
    Delete targets a delivery reported gone.

    A row is only removed if it still matches what was listed: an endpoint
    re-registered since (new row or refreshed keys) is kept.
    """
    if not targets:
        return 0
    res = await db.execute(
        delete(PushSubscription).where(or_(*(
            and_(
                PushSubscription.id == t.id,
                PushSubscription.endpoint == t.endpoint,
                PushSubscription.p256dh.is_not_distinct_from(t.p256dh),
                PushSubscription.auth.is_not_distinct_from(t.auth),
            )
            for t in targets
        )))
    )
    return res.rowcount


async def list_subscriptions(db: AsyncSession) -> list[PushSubscription]:
    res = await db.execute(select(PushSubscription).order_by(PushSubscription.id))
    return list(res.scalars().all())
