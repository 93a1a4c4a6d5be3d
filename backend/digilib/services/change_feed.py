"""
Change Feed - live material change notifications

Subscribers register an equality predicate (category and/or approved) and
receive a stream of ChangeEvents computed from each committed change:

- added:    the record now matches and did not before
- modified: the record matched before and still matches
- removed:  the record matched before and no longer does (or was deleted)

Every subscription must be cancelled by its owner; the WebSocket endpoint
does it in a ``finally`` block and ``Subscription`` is an async context
manager for other callers.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from digilib.core.logging_config import logger


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass
class ChangeEvent:
    kind: ChangeKind
    material_id: str
    material: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "material_id": self.material_id,
            "material": self.material,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class MaterialPredicate:
    """Equality predicate over a material snapshot; None means "any"."""
    category: Optional[str] = None
    approved: Optional[bool] = None

    def matches(self, snapshot: Optional[Dict[str, Any]]) -> bool:
        if snapshot is None:
            return False
        if self.category is not None and snapshot.get("category") != self.category:
            return False
        if self.approved is not None and bool(snapshot.get("approved")) != self.approved:
            return False
        return True


_CLOSED = object()


class Subscription:
    """Cancellable handle yielding ChangeEvents for one subscriber"""

    def __init__(self, feed: "ChangeFeed", predicate: MaterialPredicate):
        self._feed = feed
        self.predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = False

    def offer(self, before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> Optional[ChangeEvent]:
        """Queue the event this change means for this subscriber, if any"""
        if self.cancelled:
            return None

        was_match = self.predicate.matches(before)
        is_match = self.predicate.matches(after)

        if is_match and not was_match:
            kind = ChangeKind.ADDED
        elif is_match and was_match:
            kind = ChangeKind.MODIFIED
        elif was_match:
            kind = ChangeKind.REMOVED
        else:
            return None

        snapshot = after if after is not None else before
        event = ChangeEvent(kind=kind, material_id=snapshot["id"], material=snapshot)
        self._queue.put_nowait(event)
        return event

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None once cancelled (or when the timeout elapses)"""
        if self.cancelled and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout) if timeout else await self._queue.get()
        except asyncio.TimeoutError:
            return None
        return None if item is _CLOSED else item

    def pending(self) -> int:
        return self._queue.qsize()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._feed._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class ChangeFeed:
    """In-process fan-out of committed material changes"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, category: Optional[str] = None, approved: Optional[bool] = None) -> Subscription:
        subscription = Subscription(self, MaterialPredicate(category=category, approved=approved))
        self._subscriptions.append(subscription)
        logger.debug(f"[ChangeFeed] Subscribed ({self.subscriber_count} active): {subscription.predicate}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
        logger.debug(f"[ChangeFeed] Unsubscribed ({self.subscriber_count} active)")

    def publish(self, before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> int:
        """
        Fan a committed change out to every subscriber.

        ``before`` is None for inserts and ``after`` is None for deletes.
        Returns the number of events delivered.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.offer(before, after) is not None:
                delivered += 1
        return delivered

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()
