"""
AICAMPUS Backend - Live Update Channel.
In-process pub/sub for new group messages.
subscribe(group_id) -> Subscription (async stream), unsubscribe(subscription).
The holder of a Subscription owns it and must unsubscribe on every exit path.
"""

import asyncio
import uuid

SUBSCRIBER_QUEUE_SIZE = 100

_CLOSED = object()


class _Resync:
    """Stream marker: messages were lost, reload history from the store."""

    def __repr__(self) -> str:
        return "RESYNC"


RESYNC = _Resync()


class Subscription:
    """
    A stream of messages for one group. Iterate with `async for`.
    A consumer that falls a full queue behind gets RESYNC in place of the
    backlog instead of a silent gap.
    """

    def __init__(self, group_id: str, maxsize: int = SUBSCRIBER_QUEUE_SIZE):
        self.id = f"sub_{uuid.uuid4().hex[:8]}"
        self.group_id = group_id
        self.closed = False
        self.overflows = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def deliver(self, message: dict) -> bool:
        if self.closed:
            return False
        if self._queue.full():
            # Published messages are already stored, so a reload recovers them
            self._drain()
            self.overflows += 1
            print(f"[LIVE] {self.id} fell behind on group {self.group_id}, asking for resync")
            self._queue.put_nowait(RESYNC)
            return True
        self._queue.put_nowait(message)
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._queue.full():
            self._drain()
        self._queue.put_nowait(_CLOSED)

    async def get(self):
        """Next message, RESYNC after an overflow, or None once closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item


class LiveUpdateChannel:
    """Fan-out of inserted messages to every subscriber of the message's group."""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: dict[str, dict[str, Subscription]] = {}

    def subscribe(self, group_id: str) -> Subscription:
        subscription = Subscription(group_id, maxsize=self.queue_size)
        self._subscribers.setdefault(group_id, {})[subscription.id] = subscription
        print(f"[LIVE] {subscription.id} subscribed to group {group_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription. Safe to call more than once."""
        group_subs = self._subscribers.get(subscription.group_id, {})
        if group_subs.pop(subscription.id, None) is not None:
            print(f"[LIVE] {subscription.id} unsubscribed from group {subscription.group_id}")
        if not group_subs:
            self._subscribers.pop(subscription.group_id, None)
        subscription.close()

    def publish(self, message: dict) -> int:
        """Deliver a message to its group's subscribers. Returns delivery count."""
        group_id = message.get("group_id")
        if not group_id:
            return 0
        delivered = 0
        for subscription in list(self._subscribers.get(group_id, {}).values()):
            if subscription.deliver(message):
                delivered += 1
        return delivered

    def subscriber_count(self, group_id: str | None = None) -> int:
        if group_id is not None:
            return len(self._subscribers.get(group_id, {}))
        return sum(len(subs) for subs in self._subscribers.values())

    def close_all(self) -> None:
        for group_subs in list(self._subscribers.values()):
            for subscription in list(group_subs.values()):
                self.unsubscribe(subscription)
