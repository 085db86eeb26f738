"""
Notification fan-out metrics.

Simple in-memory counters; exposed by GET /notifications/status.
"""
import time
from dataclasses import dataclass, field

from services.async_executor import pending_detached


@dataclass
class NotificationMetrics:
    """In-memory counters for the relay and push channels."""

    fanouts_started: int = 0
    relay_sent: int = 0
    relay_failed: int = 0
    push_delivered: int = 0
    push_failed: int = 0
    push_removed: int = 0
    last_fanout_at: float | None = None
    _started_at: float = field(default_factory=time.monotonic)

    def record_fanout(self) -> None:
        self.fanouts_started += 1
        self.last_fanout_at = time.monotonic()

    def record_relay(self, ok: bool) -> None:
        if ok:
            self.relay_sent += 1
        else:
            self.relay_failed += 1

    def record_push(self, delivered: int, failed: int, removed: int) -> None:
        self.push_delivered += delivered
        self.push_failed += failed
        self.push_removed += removed

    def to_dict(self) -> dict:
        since_last = None
        if self.last_fanout_at is not None:
            since_last = round(time.monotonic() - self.last_fanout_at, 1)
        return {
            "fanouts_started": self.fanouts_started,
            "relay_sent": self.relay_sent,
            "relay_failed": self.relay_failed,
            "push_delivered": self.push_delivered,
            "push_failed": self.push_failed,
            "push_removed": self.push_removed,
            "seconds_since_last_fanout": since_last,
            "detached_tasks_pending": pending_detached(),
            "uptime_seconds": round(time.monotonic() - self._started_at, 1),
        }
