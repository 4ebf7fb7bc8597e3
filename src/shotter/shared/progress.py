"""Rich progress display for sessions run from the command line."""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from shotter.engine.broadcaster import ProgressBroadcaster
from shotter.schemas.events import ProgressEvent

console = Console()


class SessionProgress:
    """Renders one session's progress events as a Rich progress bar.

    Usage::

        with SessionProgress(broadcaster, session_id) as progress:
            watcher = asyncio.create_task(progress.follow())
            ...
    """

    def __init__(self, broadcaster: ProgressBroadcaster, session_id: str) -> None:
        self.session_id = session_id
        self._broadcaster = broadcaster
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = self._progress.add_task(f"[cyan]{session_id}[/]", total=None)
        self.last_event: ProgressEvent | None = None

    def __enter__(self) -> "SessionProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def update(self, event: ProgressEvent) -> None:
        """Apply one progress event to the bar."""
        self.last_event = event
        description = f"[cyan]{self.session_id}[/]"
        if event.failed_tasks:
            description += f" [yellow]({event.failed_tasks} failed)[/]"
        if event.status == "complete":
            description = f"[green]✓ {self.session_id}[/]"
        elif event.status in ("error", "timeout"):
            description = f"[red]✗ {self.session_id}: {event.error or event.status}[/]"
        self._progress.update(
            self._task_id,
            description=description,
            completed=event.completed_tasks,
            total=event.total_tasks,
        )

    async def follow(self) -> ProgressEvent | None:
        """Consume events until a terminal one arrives (or the task is cancelled)."""
        with self._broadcaster.subscribe(self.session_id) as sub:
            async for event in sub:
                self.update(event)
                if event.terminal:
                    return event
        return None

    async def stop_following(self, watcher: asyncio.Task) -> None:
        if not watcher.done():
            watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
