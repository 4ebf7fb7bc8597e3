"""Screenshot orchestrator: runs one session from request to zip archive."""

from __future__ import annotations

import asyncio
import logging

from shotter.engine.broadcaster import ProgressBroadcaster
from shotter.engine.executor import CaptureExecutor
from shotter.engine.matrix import build_task_matrix, order_urls
from shotter.engine.pool import OnDone, RunTask, WorkerPool
from shotter.engine.sessions import SessionState, SessionStore
from shotter.errors import ArchiveError, InvalidRequestError, SessionTimeoutError, ShotterError
from shotter.output.archive import SessionLayout, archive_session
from shotter.schemas.config import ServiceConfig
from shotter.schemas.job import CaptureTask, JobRequest, SessionResult, TaskOutcome

logger = logging.getLogger(__name__)


class ScreenshotOrchestrator:
    """Coordinates a screenshot session.

    Session flow:
        order URLs → task matrix → worker pool (executors) → session store
        → (all tasks ended) manifest + zip → result

    A session that does not finish within ``config.session_timeout`` is torn
    down and discarded without an archive.
    """

    def __init__(
        self,
        config: ServiceConfig,
        *,
        sessions: SessionStore | None = None,
        executor: CaptureExecutor | None = None,
    ) -> None:
        self.config = config
        self.sessions = sessions or SessionStore()
        self.executor = executor or CaptureExecutor(config.capture)
        self._pools: dict[str, WorkerPool] = {}

    @property
    def broadcaster(self) -> ProgressBroadcaster:
        return self.sessions.broadcaster

    async def run_session(self, request: JobRequest) -> SessionResult:
        """Capture every (url, size) pair of ``request`` and archive the result."""
        sid = request.session_id

        urls = order_urls(request.urls)
        if not urls:
            raise InvalidRequestError("No valid URLs in request")

        layout = SessionLayout.for_session(self.config, sid)
        tasks = build_task_matrix(request, layout.output_dir, ordered_urls=urls)
        state = self.sessions.create(sid, total_tasks=len(tasks), screen_sizes=request.size_labels)

        try:
            await asyncio.to_thread(layout.create)
        except OSError:
            self.sessions.discard(sid)
            raise
        logger.info("Session %s: output directory %s", sid, layout.output_dir)

        pool = WorkerPool(
            self._task_runner(),
            self._completion_handler(),
            max_workers=self.config.max_workers,
            host_cooldown=self.config.host_cooldown,
            name=f"session-{sid}",
        )
        self._pools[sid] = pool

        try:
            await self._wait_for_completion(state, pool, tasks)
            return await self._finalize(state, layout)
        except SessionTimeoutError:
            logger.warning("Session %s timed out after %.0fs", sid, self.config.session_timeout)
            self.sessions.publish(sid, "timeout", error="Operation timed out")
            raise
        except Exception as exc:
            logger.error("Session %s failed: %s", sid, exc)
            self.sessions.publish(sid, "error", error=str(exc))
            raise
        finally:
            await pool.shutdown()
            self._pools.pop(sid, None)
            self.sessions.discard(sid)

    def _task_runner(self) -> RunTask:
        def on_title(task: CaptureTask, title: str) -> None:
            self.sessions.record_title(task.session_id, title, task.url)

        async def run(task: CaptureTask) -> TaskOutcome:
            return await self.executor.run(task, on_title=on_title)

        return run

    def _completion_handler(self) -> OnDone:
        def on_done(outcome: TaskOutcome) -> None:
            if not outcome.ok:
                logger.warning("Task %s failed: %s", outcome.task.label, outcome.error)
            self.sessions.record_completion(outcome.task.session_id, ok=outcome.ok)

        return on_done

    async def _wait_for_completion(
        self,
        state: SessionState,
        pool: WorkerPool,
        tasks: list[CaptureTask],
    ) -> None:
        """Block until the session is done, the pool dies, or the timeout hits."""
        pool_task = asyncio.create_task(pool.run(tasks), name=f"{pool.name}-run")
        done_waiter = asyncio.create_task(state.done.wait(), name=f"{pool.name}-done")
        try:
            finished, _ = await asyncio.wait(
                {pool_task, done_waiter},
                timeout=self.config.session_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if state.done.is_set():
                return
            if not finished:
                raise SessionTimeoutError()
            # The pool ended without completing the session: surface its error.
            if pool_task.cancelled():
                raise ShotterError(f"Session {state.session_id} was cancelled")
            exc = pool_task.exception()
            if exc is not None:
                raise exc
            raise ShotterError(
                f"Worker pool ended with {state.completed_tasks}/{state.total_tasks} task(s) reported"
            )
        finally:
            done_waiter.cancel()
            # Once the session is done every task has ended and the slots are
            # just draining the empty queue.
            if not pool_task.done() and not state.done.is_set():
                await pool.shutdown()
            await asyncio.gather(pool_task, done_waiter, return_exceptions=True)

    async def _finalize(self, state: SessionState, layout: SessionLayout) -> SessionResult:
        """Write the manifest, zip the session directory, and announce completion."""
        try:
            archive_path = await asyncio.to_thread(archive_session, state.manifest(), layout)
        except ArchiveError:
            raise
        except Exception as exc:
            raise ArchiveError(f"Archiving {layout.dirname} failed: {exc}") from exc

        self.sessions.publish(state.session_id, "complete", download_link=layout.download_link)
        return SessionResult(
            download_links=[layout.download_link],
            output_dir=layout.public_output_dir,
            archive_path=str(archive_path),
        )

    async def shutdown(self) -> None:
        """Tear down every running session's worker pool."""
        pools = list(self._pools.values())
        await asyncio.gather(*(pool.shutdown() for pool in pools), return_exceptions=True)
        if pools:
            logger.info("Terminated %d active session pool(s)", len(pools))
