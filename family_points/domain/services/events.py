"""
Ledger notifications.

Balance changes are queued on the SQLAlchemy session while a unit of work is
open and delivered to subscribers only after the transaction commits, so a
rolled back change is never announced. Subscribers hold an explicit
Subscription handle and must close it when their owner goes away.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PENDING_KEY = "pending_ledger_notifications"
BUS_KEY = "ledger_bus"


@dataclass(frozen=True)
class BalanceChanged:
    child_id: int
    event_id: str
    delta: int
    balance: int
    source: str
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "child_id": self.child_id,
            "event_id": self.event_id,
            "delta": self.delta,
            "balance": self.balance,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }


Listener = Callable[[BalanceChanged], None]


class Subscription:
    """Handle returned by :meth:`LedgerEventBus.subscribe`. Usable as a context manager."""

    def __init__(self, bus: "LedgerEventBus", listener: Listener) -> None:
        self._bus = bus
        self._listener = listener
        self.active = True

    def close(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LedgerEventBus:
    """Fan-out of committed balance changes to live subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        subscription = Subscription(self, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, notification: BalanceChanged) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            try:
                subscription._listener(notification)
            except Exception:
                # The ledger change is already committed; a broken listener must not undo the request.
                logger.exception("Ledger listener failed for event %s", notification.event_id)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()


def attach_bus(session: Session, bus: Optional[LedgerEventBus]) -> None:
    session.info[BUS_KEY] = bus


def queue_notification(session: Session, notification: BalanceChanged) -> None:
    session.info.setdefault(PENDING_KEY, []).append(notification)


def discard_pending(session: Session) -> None:
    session.info.pop(PENDING_KEY, None)


def deliver_pending(session: Session) -> None:
    pending = session.info.pop(PENDING_KEY, [])
    bus = session.info.get(BUS_KEY)
    if bus is None:
        return
    for notification in pending:
        bus.publish(notification)
