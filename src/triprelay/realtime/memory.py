"""In-memory event bus using per-subscription asyncio queues."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from uuid import uuid4

from triprelay.models.protocol import ServerEvent
from triprelay.realtime.base import EventBus, EventCallback

logger = logging.getLogger("triprelay.realtime")


class InMemoryEventBus(EventBus):
    """In-process event bus.

    Each subscription drains its own FIFO queue from a background task, so
    a slow connection never blocks publishers or other connections.
    """

    def __init__(self, max_queue_size: int = 256) -> None:
        """Initialize the in-memory event bus.

        Args:
            max_queue_size: Maximum number of events to queue per subscription.
                The oldest queued event is dropped when the queue is full.
        """
        self._max_queue_size = max_queue_size
        self._subscriptions: dict[str, _Subscription] = {}
        self._channels: dict[str, set[str]] = {}  # channel -> subscription_ids
        self._closed = False

    async def publish(self, channel: str, event: ServerEvent) -> None:
        """Publish an event to all subscribers on a channel."""
        if self._closed:
            return

        for sub_id in self._channels.get(channel, set()):
            sub = self._subscriptions.get(sub_id)
            if sub is not None:
                sub.enqueue(event)

    async def subscribe(self, channel: str, callback: EventCallback) -> str:
        sub_id = uuid4().hex
        sub = _Subscription(
            sub_id=sub_id,
            channel=channel,
            callback=callback,
            max_queue_size=self._max_queue_size,
        )
        self._subscriptions[sub_id] = sub
        self._channels.setdefault(channel, set()).add(sub_id)
        sub.start()
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe after delivering what is already queued."""
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return False

        channel_subs = self._channels.get(sub.channel)
        if channel_subs:
            channel_subs.discard(subscription_id)
            if not channel_subs:
                del self._channels[sub.channel]

        await sub.stop(drain=True)
        return True

    async def flush(self) -> None:
        for sub in list(self._subscriptions.values()):
            await sub.wait_idle()

    async def close(self) -> None:
        """Stop all subscriptions and clean up."""
        self._closed = True
        for sub in list(self._subscriptions.values()):
            await sub.stop(drain=False)
        self._subscriptions.clear()
        self._channels.clear()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)


class _Subscription:
    """Internal subscription handler with queue and background task."""

    def __init__(
        self,
        sub_id: str,
        channel: str,
        callback: EventCallback,
        max_queue_size: int,
    ) -> None:
        self.sub_id = sub_id
        self.channel = channel
        self.callback = callback
        self._queue: deque[ServerEvent] = deque()
        self._max_queue_size = max_queue_size
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    def enqueue(self, event: ServerEvent) -> None:
        if self._stopped:
            return

        while len(self._queue) >= self._max_queue_size:
            dropped = self._queue.popleft()
            logger.warning(
                "Outbound queue full for %s, dropping %s event", self.channel, dropped.type
            )

        self._queue.append(event)
        self._idle.clear()
        self._wakeup.set()

    def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"bus:{self.channel}")

    async def wait_idle(self) -> None:
        if self._task is None or self._task.done():
            return
        await self._idle.wait()

    async def stop(self, *, drain: bool) -> None:
        # Stopping from inside our own callback must not wait on ourselves.
        own_task = self._task is not None and self._task is asyncio.current_task()
        if drain and not own_task:
            await self.wait_idle()
        self._stopped = True
        self._wakeup.set()
        if own_task:
            self._task = None
        elif self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._queue.clear()
        self._idle.set()

    async def _run(self) -> None:
        while not self._stopped:
            await self._wakeup.wait()
            self._wakeup.clear()

            while self._queue and not self._stopped:
                event = self._queue.popleft()
                try:
                    await self.callback(event)
                except Exception:
                    logger.exception("Error delivering event to %s", self.channel)
            if not self._queue:
                self._idle.set()
