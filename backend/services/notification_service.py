"""
Notification fan-out — tells staff about new orders.

Two channels, both best-effort and never retried:

    relay  one operator chat (Telegram). A failure is logged and counted.
    push   every registered web push subscription, sent concurrently.
           Targets answering 404/410 are deleted from the registry in the
           same pass; any other failure leaves the subscription in place.

Channel implementations are chosen once at startup by build_notifier():
an unconfigured channel gets a no-op implementation, so the fan-out path
has no credential checks of its own.

Request handlers only ever call Notifier.dispatch_*(), which starts the
fan-out as a detached task and returns immediately.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from html import escape
from typing import Protocol

import httpx
from pywebpush import WebPushException, webpush
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.constants import PUSH_GONE_STATUSES
from domain.enums import DeliveryOutcome
from domain.errors import NotificationError
from services import push_registry
from services.async_executor import run_blocking, spawn_detached
from services.notification_metrics import NotificationMetrics

logger = logging.getLogger(__name__)


def format_brl(amount: Decimal) -> str:
    """R$ with a comma decimal mark, as staff read it."""
    return "R$ " + f"{amount:.2f}".replace(".", ",")


@dataclass(frozen=True)
class OrderSummary:
    """What staff need to know about a new order."""
    order_id: str
    customer_name: str
    customer_address: str
    items: list[tuple[str, int]] = field(default_factory=list)
    total: Decimal = Decimal("0.00")
    paid_with_pix: bool = False

    @property
    def display_name(self) -> str:
        return self.customer_name or "Customer"

    def relay_text(self) -> str:
        items = ", ".join(f"{name} x{qty}" for name, qty in self.items) or "-"
        return (
            "📦 <b>New order</b>\n"
            f"#{escape(self.order_id)}\n"
            f"👤 {escape(self.display_name)}\n"
            f"📍 {escape(self.customer_address or '-')}\n"
            f"🧾 {escape(items)}\n"
            f"💰 {format_brl(self.total)}\n"
            f"{'💳 PIX' if self.paid_with_pix else '💵 Other'}"
        )

    def push_payload(self) -> str:
        return json.dumps({
            "title": "New order!",
            "body": f"#{self.order_id} · {self.display_name} · {format_brl(self.total)}",
            "data": {"id": self.order_id},
        })


# ════════════════════════════════════════════════════════════════════
# Relay channel
# ════════════════════════════════════════════════════════════════════

class RelayChannel(Protocol):
    enabled: bool

    async def send(self, text: str) -> None:
        """Deliver `text` once. Raises NotificationError on failure."""
        ...


class NullRelay:
    enabled = False

    async def send(self, text: str) -> None:
        return None


class TelegramRelay:
    """Telegram Bot API sendMessage over httpx."""
    enabled = True

    def __init__(self, token: str, chat_id: str, api_base: str = "https://api.telegram.org", timeout: float = 10.0):
        self.url = f"{api_base.rstrip('/')}/bot{token}/sendMessage"
        self.chat_id = chat_id
        self.timeout = timeout

    async def send(self, text: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
                )
        except httpx.HTTPError as e:
            raise NotificationError(f"Telegram request failed: {e}") from e
        if response.status_code >= 400:
            raise NotificationError(
                f"Telegram answered {response.status_code}", status_code=response.status_code
            )


# ════════════════════════════════════════════════════════════════════
# Push channel
# ════════════════════════════════════════════════════════════════════

class PushChannel(Protocol):
    enabled: bool
    public_key: str

    async def send(self, subscription: dict, payload: str) -> DeliveryOutcome:
        """Deliver to one target and classify the result. Never raises."""
        ...


class NullPush:
    enabled = False
    public_key = ""

    async def send(self, subscription: dict, payload: str) -> DeliveryOutcome:
        return DeliveryOutcome.FAILED


class WebPushChannel:
    """VAPID-signed web push via pywebpush (blocking, run in the thread pool)."""
    enabled = True

    def __init__(self, public_key: str, private_key: str, subject: str, ttl: int = 3600, timeout: float = 10.0):
        self.public_key = public_key
        self.private_key = private_key
        self.subject = subject
        self.ttl = ttl
        self.timeout = timeout

    def _send_sync(self, subscription: dict, payload: str) -> None:
        webpush(
            subscription_info=subscription,
            data=payload,
            vapid_private_key=self.private_key,
            vapid_claims={"sub": self.subject},  # webpush mutates the claims dict
            ttl=self.ttl,
            timeout=self.timeout,
        )

    async def send(self, subscription: dict, payload: str) -> DeliveryOutcome:
        endpoint = subscription.get("endpoint", "")
        try:
            await run_blocking(self._send_sync, subscription, payload)
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in PUSH_GONE_STATUSES:
                logger.info(f"Push target gone ({status}): {endpoint[:60]}")
                return DeliveryOutcome.GONE
            logger.warning(f"Push delivery failed ({status}): {endpoint[:60]}")
            return DeliveryOutcome.FAILED
        except Exception as e:
            logger.warning(f"Push delivery error for {endpoint[:60]}: {e}")
            return DeliveryOutcome.FAILED
        return DeliveryOutcome.DELIVERED


# ════════════════════════════════════════════════════════════════════
# Fan-out
# ════════════════════════════════════════════════════════════════════

class Notifier:
    """Fans one summary out to the relay and every push target."""

    def __init__(
        self,
        relay: RelayChannel,
        push: PushChannel,
        session_factory: async_sessionmaker[AsyncSession],
        metrics: NotificationMetrics | None = None,
    ):
        self.relay = relay
        self.push = push
        self.session_factory = session_factory
        self.metrics = metrics or NotificationMetrics()

    # ── Entry points for request handlers (never awaited there) ────

    def dispatch_new_order(self, summary: OrderSummary) -> asyncio.Task:
        return spawn_detached(self.notify_new_order(summary), name=f"notify-order-{summary.order_id}")

    def dispatch_status_change(self, order_id: str, status: str) -> asyncio.Task:
        return spawn_detached(self.notify_status_change(order_id, status), name=f"notify-status-{order_id}")

    # ── Fan-out passes ─────────────────────────────────────────────

    async def notify_new_order(self, summary: OrderSummary) -> None:
        self.metrics.record_fanout()
        results = await asyncio.gather(
            self.send_relay(summary.relay_text()),
            self.push_to_all(summary.push_payload()),
            return_exceptions=True,
        )
        for r in results:
            if isinstance(r, Exception):
                logger.warning(f"Fan-out for order {summary.order_id} failed: {r}")

    async def notify_status_change(self, order_id: str, status: str) -> None:
        await self.send_relay(f"🔔 Order #{escape(order_id)} updated to: <b>{escape(status)}</b>")

    async def send_relay(self, text: str) -> bool:
        if not self.relay.enabled:
            return False
        try:
            await self.relay.send(text)
        except NotificationError as e:
            logger.warning(f"Relay notification failed: {e}")
            self.metrics.record_relay(ok=False)
            return False
        self.metrics.record_relay(ok=True)
        return True

    async def push_to_all(self, payload: str) -> dict[str, int]:
        """
        Send `payload` to every registered target concurrently, then delete
        the targets classified GONE. Returns outcome counts.
        """
        counts = {o.value: 0 for o in DeliveryOutcome}
        if not self.push.enabled:
            return counts

        async with self.session_factory() as db:
            targets = [push_registry.ListedTarget.of(s) for s in await push_registry.list_subscriptions(db)]
        if not targets:
            return counts

        outcomes = await asyncio.gather(*(self._deliver(t.subscription_info(), payload) for t in targets))

        gone = []
        for target, outcome in zip(targets, outcomes):
            counts[outcome.value] += 1
            if outcome is DeliveryOutcome.GONE:
                gone.append(target)

        removed = 0
        if gone:
            async with self.session_factory() as db:
                removed = await push_registry.remove_gone(db, gone)
                await db.commit()
            logger.info(f"Removed {removed} dead push subscription(s)")

        self.metrics.record_push(
            delivered=counts[DeliveryOutcome.DELIVERED.value],
            failed=counts[DeliveryOutcome.FAILED.value],
            removed=removed,
        )
        return counts

    async def _deliver(self, subscription: dict, payload: str) -> DeliveryOutcome:
        try:
            return await self.push.send(subscription, payload)
        except Exception as e:
            logger.warning(f"Push channel raised for {subscription.get('endpoint', '')[:60]}: {e}")
            return DeliveryOutcome.FAILED


def build_notifier(settings, session_factory: async_sessionmaker[AsyncSession]) -> Notifier:
    """Select channel implementations once, from configuration."""
    if settings.relay_configured:
        relay = TelegramRelay(
            settings.telegram_bot_token,
            settings.telegram_chat_id,
            api_base=settings.telegram_api_base,
            timeout=settings.relay_timeout_seconds,
        )
    else:
        relay = NullRelay()

    if settings.push_configured:
        push = WebPushChannel(
            settings.vapid_public_key,
            settings.vapid_private_key,
            settings.vapid_subject,
            ttl=settings.push_ttl_seconds,
            timeout=settings.push_timeout_seconds,
        )
    else:
        push = NullPush()

    logger.info(
        f"Notification channels: relay={'telegram' if relay.enabled else 'off'}, "
        f"push={'webpush' if push.enabled else 'off'}"
    )
    return Notifier(relay, push, session_factory)
