"""Group change notifications: invalidation hints fanned out to subscribed observers."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

ATTENDANCE_UPDATED = "attendance_updated"

ChangeListener = Callable[[str, str], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    group_id: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


class Subscription:
    """Bounded inbox of one observer. An event already waiting is not queued twice."""

    def __init__(self, handle: SubscriptionHandle, queue_size: int = 8):
        self.handle = handle
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._pending: set[str] = set()

    @property
    def group_id(self) -> str:
        return self.handle.group_id

    def offer(self, event: str) -> bool:
        if event in self._pending:
            return True
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        self._pending.add(event)
        return True

    async def next_event(self) -> str:
        event = await self.queue.get()
        self._pending.discard(event)
        return event


class NotificationDispatcher:
    """In-process room registry; delivery is best effort and nothing is replayed.

    Observers that join late must fetch current state themselves.
    """

    def __init__(self, queue_size: int = 8):
        self.queue_size = queue_size
        self._rooms: dict[str, dict[str, Subscription]] = {}
        self._listeners: list[ChangeListener] = []

    def subscribe(self, group_id: str) -> Subscription:
        subscription = Subscription(SubscriptionHandle(group_id), self.queue_size)
        self._rooms.setdefault(group_id, {})[subscription.handle.token] = subscription
        logger.debug("Observer %s joined group %s", subscription.handle.token, group_id)
        return subscription

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        room = self._rooms.get(handle.group_id)
        if not room:
            return
        room.pop(handle.token, None)
        if not room:
            del self._rooms[handle.group_id]

    def add_listener(self, listener: ChangeListener) -> None:
        """Register an in-process callback run on every notification."""
        self._listeners.append(listener)

    def observer_count(self, group_id: str) -> int:
        return len(self._rooms.get(group_id, {}))

    def notify_group_changed(self, group_id: str, event: str = ATTENDANCE_UPDATED) -> int:
        """Send `event` to every observer of `group_id`; returns how many took it."""
        for listener in list(self._listeners):
            try:
                listener(group_id, event)
            except Exception as e:
                logger.error(f"Change listener failed for group {group_id}: {e}")

        delivered = 0
        for subscription in list(self._rooms.get(group_id, {}).values()):
            if subscription.offer(event):
                delivered += 1
            else:
                logger.debug("Dropped %s for slow observer %s", event, subscription.handle.token)
        return delivered
