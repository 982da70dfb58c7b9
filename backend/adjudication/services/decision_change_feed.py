"""
In-process change-event feed for decision rows

Every committed write in the decision store is published here. Subscribers are
scoped to one matrix and receive every event kind for it. Delivery happens on
the subscriber's own event loop, one callback at a time, in publication order.
"""
import asyncio
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from adjudication.core.logging_config import LoggingConfig
from adjudication.core.metrics import (change_events_published_total,
                                       change_feed_subscriptions)
from adjudication.models.decision import DecisionRecord
from adjudication.utils.datetime_utils import utc_now

logger = LoggingConfig.get_logger(__name__)


class ChangeEventType(str, Enum):
    """Kind of row change"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class DecisionChangeEvent(BaseModel):
    """A committed change to one decision row"""
    model_config = ConfigDict(frozen=True)

    event_type: ChangeEventType
    matrix_id: str
    record: Optional[DecisionRecord] = None
    sequence: int = 0
    committed_at: datetime = Field(default_factory=utc_now)

    def to_dict(self):
        return {
            "event_type": self.event_type.value,
            "matrix_id": self.matrix_id,
            "sequence": self.sequence,
            "committed_at": self.committed_at.isoformat(),
            "record": self.record.to_dict() if self.record else None,
        }


ChangeHandler = Callable[[DecisionChangeEvent], None]


class DecisionSubscription:
    """
    Handle for one matrix-scoped subscription

    Must be closed when the consumer goes away; usable as a (async) context manager.
    """

    def __init__(
        self,
        feed: "DecisionChangeFeed",
        matrix_id: str,
        on_event: ChangeHandler,
        loop: asyncio.AbstractEventLoop,
    ):
        self.feed = feed
        self.matrix_id = matrix_id
        self._on_event = on_event
        self._loop = loop
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _enqueue(self, event: DecisionChangeEvent):
        """Schedule delivery on the subscriber's loop (callable from any thread)"""
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            logger.warning(
                f"Event loop for subscription on matrix {self.matrix_id} is closed; dropping subscription"
            )
            self.close()

    def _deliver(self, event: DecisionChangeEvent):
        if self._closed:
            return
        try:
            self._on_event(event)
        except Exception as e:
            logger.error(
                f"Change handler failed for matrix {self.matrix_id}: {e}",
                exc_info=True,
                extra={"sequence": event.sequence, "event_type": event.event_type.value}
            )

    def close(self):
        """Release the subscription (idempotent)"""
        if self._closed:
            return
        self._closed = True
        self.feed._remove(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        state = "closed" if self._closed else "open"
        return f"<DecisionSubscription(matrix_id='{self.matrix_id}', {state})>"


class DecisionChangeFeed:
    """Fan-out of committed decision changes to matrix-scoped subscribers"""

    def __init__(self):
        self._lock = threading.RLock()
        self._subscriptions: Dict[str, List[DecisionSubscription]] = {}
        self._sequence = 0

    def subscribe(
        self,
        matrix_id: str,
        on_event: ChangeHandler,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> DecisionSubscription:
        """
        Subscribe to every change for one matrix

        Args:
            matrix_id: Server-side filter
            on_event: Called on the subscriber's loop for each event; must not block
            loop: Loop to deliver on (defaults to the running loop)

        Returns:
            DecisionSubscription handle
        """
        loop = loop or asyncio.get_running_loop()
        subscription = DecisionSubscription(self, matrix_id, on_event, loop)
        with self._lock:
            self._subscriptions.setdefault(matrix_id, []).append(subscription)
        change_feed_subscriptions.inc()
        logger.debug(f"Subscribed to decision changes for matrix {matrix_id}")
        return subscription

    def _remove(self, subscription: DecisionSubscription):
        with self._lock:
            subscribers = self._subscriptions.get(subscription.matrix_id, [])
            if subscription not in subscribers:
                return
            subscribers.remove(subscription)
            if not subscribers:
                del self._subscriptions[subscription.matrix_id]
        change_feed_subscriptions.dec()
        logger.debug(f"Unsubscribed from decision changes for matrix {subscription.matrix_id}")

    def publish(self, event_type: ChangeEventType, record: DecisionRecord) -> DecisionChangeEvent:
        """
        Publish a committed change

        Sequence numbers and per-subscriber scheduling are assigned under one
        lock, so every subscriber observes the same order.
        """
        with self._lock:
            self._sequence += 1
            event = DecisionChangeEvent(
                event_type=event_type,
                matrix_id=record.matrix_id,
                record=record,
                sequence=self._sequence,
            )
            for subscription in list(self._subscriptions.get(record.matrix_id, ())):
                subscription._enqueue(event)
        change_events_published_total.labels(event_type=event_type.value).inc()
        return event

    def active_subscriptions(self, matrix_id: Optional[str] = None) -> int:
        """Number of open subscriptions (optionally for one matrix)"""
        with self._lock:
            if matrix_id is not None:
                return len(self._subscriptions.get(matrix_id, ()))
            return sum(len(subs) for subs in self._subscriptions.values())


_change_feed: Optional[DecisionChangeFeed] = None


def get_change_feed() -> DecisionChangeFeed:
    """Get the process-wide change feed"""
    global _change_feed
    if _change_feed is None:
        _change_feed = DecisionChangeFeed()
    return _change_feed
