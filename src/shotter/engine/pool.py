"""Bounded worker pool with per-host cooldown between dispatches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from shotter.schemas.job import CaptureTask, TaskOutcome

logger = logging.getLogger(__name__)

RunTask = Callable[[CaptureTask], Awaitable[TaskOutcome]]
OnDone = Callable[[TaskOutcome], None]


class SlotState(str, Enum):
    idle = "idle"
    running = "running"
    completed = "completed"
    failed = "failed"
    terminated = "terminated"


@dataclass
class WorkerSlot:
    """One concurrent execution unit; runs a single task at a time."""

    slot_id: int
    state: SlotState = SlotState.idle
    task: CaptureTask | None = None
    handled: int = 0


class WorkerPool:
    """Runs capture tasks on a fixed number of slots fed by a FIFO queue.

    Each slot pulls the next task as soon as its current one ends.  Pulls are
    serialized: when the next task targets the same host as the previously
    dispatched one, dispatch waits ``host_cooldown`` seconds first.  "Previously"
    means dispatch order; with the FIFO queue filled up front that is also
    enqueue order.

    ``on_done`` is called exactly once per dispatched task, with a failed
    outcome when ``run_task`` raises.
    """

    def __init__(
        self,
        run_task: RunTask,
        on_done: OnDone,
        *,
        max_workers: int = 4,
        host_cooldown: float = 2.0,
        name: str = "pool",
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._run_task = run_task
        self._on_done = on_done
        self.max_workers = max_workers
        self.host_cooldown = host_cooldown
        self.name = name
        self.slots: list[WorkerSlot] = []
        self._queue: asyncio.Queue[CaptureTask] = asyncio.Queue()
        self._dispatch_lock = asyncio.Lock()
        self._last_host: str | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self, tasks: list[CaptureTask]) -> None:
        """Dispatch every task and return when all of them have ended."""
        if self._closed:
            raise RuntimeError(f"{self.name} is shut down")
        for task in tasks:
            self._queue.put_nowait(task)

        n_slots = min(self.max_workers, len(tasks))
        self.slots = [WorkerSlot(slot_id=i) for i in range(n_slots)]
        self._workers = [
            asyncio.create_task(self._slot_loop(slot), name=f"{self.name}-slot-{slot.slot_id}")
            for slot in self.slots
        ]
        logger.debug("%s: %d task(s) on %d slot(s)", self.name, len(tasks), n_slots)
        if self._workers:
            await asyncio.gather(*self._workers)

    async def _next_task(self) -> CaptureTask | None:
        async with self._dispatch_lock:
            try:
                task = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return None
            if self.host_cooldown and task.host == self._last_host:
                logger.debug("%s: cooling down %.1fs before %s", self.name, self.host_cooldown, task.url)
                await asyncio.sleep(self.host_cooldown)
            self._last_host = task.host
            return task

    async def _slot_loop(self, slot: WorkerSlot) -> None:
        try:
            while True:
                task = await self._next_task()
                if task is None:
                    return

                slot.state = SlotState.running
                slot.task = task
                try:
                    outcome = await self._run_task(task)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception("%s slot %d: task %s crashed", self.name, slot.slot_id, task.label)
                    outcome = TaskOutcome(task=task, ok=False, error=str(exc) or type(exc).__name__)

                slot.state = SlotState.completed if outcome.ok else SlotState.failed
                slot.handled += 1
                try:
                    self._on_done(outcome)
                finally:
                    slot.task = None
                    slot.state = SlotState.idle
        finally:
            if self._closed:
                slot.state = SlotState.terminated
                slot.task = None

    async def shutdown(self) -> None:
        """Terminate every live slot and drop the backlog.  Idempotent."""
        self._closed = True
        dropped = self.pending
        while self.pending:
            self._queue.get_nowait()

        live = [w for w in self._workers if not w.done()]
        for worker in live:
            worker.cancel()
        if live:
            # Wait for cancellation to unwind so browser processes are closed.
            await asyncio.gather(*live, return_exceptions=True)

        for slot in self.slots:
            slot.state = SlotState.terminated
            slot.task = None
        if live or dropped:
            logger.info(
                "%s shut down: %d running slot(s) terminated, %d queued task(s) dropped",
                self.name, len(live), dropped,
            )
