"""Publish/subscribe channel for session progress events."""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import AsyncIterator

from shotter.schemas.events import ProgressEvent

logger = logging.getLogger(__name__)


class Subscription:
    """A live listener for one session's events.

    Iterate it (``async for event in sub``) or call ``get``.  When the
    buffer is full the oldest event is dropped so publishers never block.
    """

    def __init__(self, broadcaster: "ProgressBroadcaster", session_id: str, maxsize: int) -> None:
        self.session_id = session_id
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def deliver(self, event: ProgressEvent) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            yield await self._queue.get()


class ProgressBroadcaster:
    """Fans progress events out to the subscribers of each session."""

    def __init__(self, buffer_size: int = 256) -> None:
        self.buffer_size = buffer_size
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscribe(self, session_id: str) -> Subscription:
        sub = Subscription(self, session_id, self.buffer_size)
        self._subscribers.setdefault(session_id, set()).add(sub)
        logger.debug("Subscriber added for session %s", session_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.session_id)
        if not subs or sub not in subs:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[sub.session_id]
        logger.debug("Subscriber removed for session %s", sub.session_id)

    def publish(self, event: ProgressEvent) -> int:
        """Deliver ``event`` to its session's subscribers; returns how many got it."""
        subs = self._subscribers.get(event.session_id, ())
        for sub in list(subs):
            sub.deliver(event)
        return len(subs)

    def subscriber_count(self, session_id: str | None = None) -> int:
        if session_id is not None:
            return len(self._subscribers.get(session_id, ()))
        return sum(len(subs) for subs in self._subscribers.values())
