"""Per-session bookkeeping: task counts, discovered titles, completion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from shotter.engine.broadcaster import ProgressBroadcaster
from shotter.errors import SessionConflictError
from shotter.schemas.events import EventStatus, Manifest, PageTitle, ProgressEvent

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Mutable state of one running session.  Owned by ``SessionStore``."""

    session_id: str
    total_tasks: int
    screen_sizes: list[str]
    completed_tasks: int = 0
    failed_tasks: int = 0
    titles: list[PageTitle] = field(default_factory=list)
    finished: bool = False
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def manifest(self) -> Manifest:
        return Manifest(screen_sizes=list(self.screen_sizes), datas=list(self.titles))

    def event(self, status: EventStatus = "running", **extra: object) -> ProgressEvent:
        return ProgressEvent(
            completed_tasks=self.completed_tasks,
            total_tasks=self.total_tasks,
            session_id=self.session_id,
            failed_tasks=self.failed_tasks,
            status=status,
            **extra,
        )


class SessionStore:
    """Registry of active sessions with an explicit create/update/discard lifecycle.

    All mutators are plain synchronous methods called from the event loop,
    so each event is applied as one atomic step regardless of how task
    completions interleave.  Events for unknown or finished sessions are
    ignored.
    """

    def __init__(self, broadcaster: ProgressBroadcaster | None = None) -> None:
        self.broadcaster = broadcaster or ProgressBroadcaster()
        self._sessions: dict[str, SessionState] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def active_ids(self) -> list[str]:
        return list(self._sessions)

    def get(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def create(self, session_id: str, total_tasks: int, screen_sizes: list[str]) -> SessionState:
        if session_id in self._sessions:
            raise SessionConflictError(f"Session {session_id!r} is already running")
        if total_tasks < 1:
            raise ValueError("A session needs at least one task")
        state = SessionState(session_id=session_id, total_tasks=total_tasks, screen_sizes=screen_sizes)
        self._sessions[session_id] = state
        logger.info("Session %s started with %d task(s)", session_id, total_tasks)
        return state

    def record_title(self, session_id: str, title: str, url: str) -> bool:
        """Remember a page title; returns False when nothing changed."""
        state = self._sessions.get(session_id)
        if state is None or state.finished:
            return False
        if any(entry.url == url for entry in state.titles):
            return False
        state.titles.append(PageTitle(title=title, url=url))
        return True

    def record_completion(self, session_id: str, *, ok: bool = True) -> bool:
        """Count one finished task and publish progress.

        Returns True only for the completion that finishes the session; the
        ``done`` event fires at that point and never again.
        """
        state = self._sessions.get(session_id)
        if state is None:
            logger.debug("Completion for unknown session %s ignored", session_id)
            return False
        if state.finished:
            logger.warning("Late completion for finished session %s ignored", session_id)
            return False

        state.completed_tasks += 1
        if not ok:
            state.failed_tasks += 1
        self.broadcaster.publish(state.event())

        if state.completed_tasks >= state.total_tasks:
            state.finished = True
            state.done.set()
            logger.info(
                "Session %s finished: %d task(s), %d failed",
                session_id, state.total_tasks, state.failed_tasks,
            )
            return True
        return False

    def publish(self, session_id: str, status: EventStatus, **extra: object) -> None:
        """Publish a terminal (or ad-hoc) event carrying the session's counts."""
        state = self._sessions.get(session_id)
        if state is None:
            return
        self.broadcaster.publish(state.event(status, **extra))

    def discard(self, session_id: str) -> SessionState | None:
        state = self._sessions.pop(session_id, None)
        if state is not None:
            state.finished = True
            logger.debug("Session %s released", session_id)
        return state
