"""
Feedback event channel.

Subscribers receive every FeedbackSample published after they subscribe,
in publish order, through an async iterator. Closing the channel (at
session end) ends every subscription's iteration.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from ..models.content import FeedbackSample

_CLOSED = object()


class FeedbackSubscription:
    """Async iterator over published feedback."""

    def __init__(self, channel: FeedbackChannel):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closing = False
        self.closed = False

    def _deliver(self, item) -> None:
        if not self._closing:
            self._queue.put_nowait(item)

    def __aiter__(self) -> FeedbackSubscription:
        return self

    async def __anext__(self) -> FeedbackSample:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self.closed = True
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> Optional[FeedbackSample]:
        """Next pending sample, or None if nothing is queued."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self.closed = True
            return None
        return item

    def close(self) -> None:
        """Stop receiving feedback; pending samples can still be drained."""
        if not self._closing:
            self._closing = True
            self._queue.put_nowait(_CLOSED)
            self._channel._unsubscribe(self)


class FeedbackChannel:
    """Fan-out of FeedbackSamples to the active session's subscribers."""

    def __init__(self):
        self._subscribers: List[FeedbackSubscription] = []
        self.closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> FeedbackSubscription:
        subscription = FeedbackSubscription(self)
        if self.closed:
            subscription.close()
        else:
            self._subscribers.append(subscription)
        return subscription

    def publish(self, sample: FeedbackSample) -> None:
        for subscription in list(self._subscribers):
            subscription._deliver(sample)

    def close(self) -> None:
        """End every subscription and drop them."""
        self.closed = True
        for subscription in list(self._subscribers):
            subscription.close()
        self._subscribers.clear()

    def _unsubscribe(self, subscription: FeedbackSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
