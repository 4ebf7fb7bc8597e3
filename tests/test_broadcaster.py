"""Tests for the progress publish/subscribe channel."""

from __future__ import annotations

import asyncio

import pytest

from shotter.engine.broadcaster import ProgressBroadcaster
from shotter.schemas.events import ProgressEvent


def _event(session_id: str, completed: int = 1, total: int = 4, **kw) -> ProgressEvent:
    return ProgressEvent(completed_tasks=completed, total_tasks=total, session_id=session_id, **kw)


class TestProgressBroadcaster:
    @pytest.mark.asyncio
    async def test_events_only_reach_their_session(self) -> None:
        bc = ProgressBroadcaster()
        sub_a = bc.subscribe("A")
        sub_b = bc.subscribe("B")

        assert bc.publish(_event("A")) == 1

        assert (await asyncio.wait_for(sub_a.get(), 1)).session_id == "A"
        assert sub_b.pending() == 0

    @pytest.mark.asyncio
    async def test_many_subscribers_per_session(self) -> None:
        bc = ProgressBroadcaster()
        subs = [bc.subscribe("A") for _ in range(3)]
        bc.publish(_event("A", completed=2))
        for sub in subs:
            assert (await sub.get()).completed_tasks == 2

    def test_unsubscribe_leaves_others(self) -> None:
        bc = ProgressBroadcaster()
        first = bc.subscribe("A")
        second = bc.subscribe("A")
        first.close()
        first.close()

        assert bc.subscriber_count("A") == 1
        assert bc.publish(_event("A")) == 1
        assert second.pending() == 1
        assert first.pending() == 0

    def test_context_manager_unsubscribes(self) -> None:
        bc = ProgressBroadcaster()
        with bc.subscribe("A"):
            assert bc.subscriber_count() == 1
        assert bc.subscriber_count() == 0
        assert bc.publish(_event("A")) == 0

    def test_full_buffer_drops_oldest(self) -> None:
        bc = ProgressBroadcaster(buffer_size=2)
        sub = bc.subscribe("A")
        for i in range(1, 4):
            bc.publish(_event("A", completed=i))

        assert sub.dropped == 1
        assert [sub._queue.get_nowait().completed_tasks for _ in range(2)] == [2, 3]

    @pytest.mark.asyncio
    async def test_async_iteration(self) -> None:
        bc = ProgressBroadcaster()
        sub = bc.subscribe("A")
        bc.publish(_event("A", completed=1))
        bc.publish(_event("A", completed=4, status="complete"))

        seen = []
        async for event in sub:
            seen.append(event.status)
            if event.terminal:
                break
        assert seen == ["running", "complete"]


class TestProgressEventWire:
    def test_camel_case_and_no_nulls(self) -> None:
        wire = _event("A", completed=2, total=4).to_wire()
        assert '"completedTasks":2' in wire
        assert '"totalTasks":4' in wire
        assert '"sessionId":"A"' in wire
        assert "downloadLink" not in wire
