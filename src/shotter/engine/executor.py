"""Capture executor: turns one CaptureTask into one or more JPEG files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol

from shotter.engine.tiling import full_page_name, plan_segments, segment_name
from shotter.errors import CaptureError
from shotter.schemas.config import CaptureSettings
from shotter.schemas.job import BrowserType, CaptureTask, Credentials, TaskOutcome
from shotter.shared.browser import BrowserSession

logger = logging.getLogger(__name__)

TitleCallback = Callable[[CaptureTask, str], None]
"""Called once per URL with the page title (first size variant only)."""


class SessionFactory(Protocol):
    def __call__(
        self,
        browser_type: str,
        width: int,
        height: int,
        *,
        settings: CaptureSettings,
        credentials: Credentials | None = None,
    ) -> BrowserSession: ...


class CaptureExecutor:
    """Runs a capture task against a fresh browser session.

    ``run`` never raises for capture failures: every task yields exactly one
    ``TaskOutcome`` so the session's completion count always advances.
    Cancellation still propagates.
    """

    def __init__(
        self,
        settings: CaptureSettings | None = None,
        *,
        session_factory: SessionFactory = BrowserSession,
    ) -> None:
        self.settings = settings or CaptureSettings()
        self._session_factory = session_factory

    async def run(self, task: CaptureTask, on_title: TitleCallback | None = None) -> TaskOutcome:
        logger.info(
            "Capturing %s (%s, header %dpx, full_page=%s)",
            task.label, task.browser_type, task.header_height, task.full_page,
        )
        try:
            files = await self._capture(task, on_title)
        except Exception as exc:
            logger.exception("Capture failed for %s", task.label)
            return TaskOutcome(task=task, ok=False, error=str(exc) or type(exc).__name__)
        return TaskOutcome(task=task, ok=True, files=files)

    async def _capture(self, task: CaptureTask, on_title: TitleCallback | None) -> list[str]:
        if task.browser_type not in BrowserType.names():
            raise CaptureError(f"Unsupported browser type: {task.browser_type}")

        if task.credentials:
            logger.debug("Using HTTP credentials for %s", task.url)

        out_dir = Path(task.output_dir)
        async with self._session_factory(
            task.browser_type,
            task.width,
            task.height,
            settings=self.settings,
            credentials=task.credentials,
        ) as session:
            await session.load(task.url)
            await session.wait_for_landmarks()

            if task.is_first_size_variant and on_title is not None:
                title = await session.title()
                logger.debug("Title of %s: %r", task.url, title)
                on_title(task, title)

            total_height = await session.scroll_height()

            if task.full_page or task.height >= total_height:
                path = out_dir / full_page_name(task.url, task.width, task.height)
                await session.settle()
                await session.screenshot(str(path), full_page=True)
                logger.info("Full-page screenshot saved to %s", path)
                return [str(path)]

            segments = plan_segments(total_height, task.height, task.header_height)
            logger.info(
                "Tiling %s into %d segment(s) (page height %dpx)",
                task.label, len(segments), total_height,
            )
            files: list[str] = []
            for segment in segments:
                await session.scroll_to(segment.offset)
                await session.settle()
                await session.wait_for_images()
                path = out_dir / segment_name(task.url, task.width, task.height, segment.part)
                await session.screenshot(str(path), full_page=False)
                logger.debug("Segment %d at offset %d saved to %s", segment.part, segment.offset, path)
                files.append(str(path))
            return files
