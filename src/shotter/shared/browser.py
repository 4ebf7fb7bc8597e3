"""Playwright browser session: one engine, one context, one page per capture task."""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from shotter.schemas.config import CaptureSettings
from shotter.schemas.job import Credentials

logger = logging.getLogger(__name__)

# Chromium-only switches; firefox and webkit reject unknown args.
_CHROMIUM_ARGS = [
    "--disable-web-security",
    "--disable-features=IsolateOrigins",
    "--disable-site-isolation-trials",
]

# Resolves true once document.readyState is complete, false after the ceiling.
_READY_STATE_JS = """(timeoutMs) => new Promise((resolve) => {
    if (document.readyState === 'complete') {
        resolve(true);
        return;
    }
    window.addEventListener('load', () => resolve(true));
    setTimeout(() => resolve(false), timeoutMs);
})"""

_PENDING_IMAGES_JS = """() => Promise.all(
    Array.from(document.images)
        .filter(img => !img.complete)
        .map(img => new Promise(resolve => { img.onload = img.onerror = resolve; }))
)"""


class BrowserSession:
    """Owns a single headless browser process for the duration of one task.

    Usage::

        async with BrowserSession("chromium", 1280, 800, settings=settings) as session:
            await session.load("https://example.com")
            await session.screenshot("/tmp/out.jpg", full_page=True)

    Leaving the block (normally, on error, or on cancellation) closes the
    context, the browser, and the Playwright driver.
    """

    def __init__(
        self,
        browser_type: str,
        width: int,
        height: int,
        *,
        settings: CaptureSettings,
        credentials: Credentials | None = None,
    ) -> None:
        self.browser_type = browser_type
        self.width = width
        self.height = height
        self.settings = settings
        self.credentials = credentials
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> "BrowserSession":
        try:
            self._pw = await async_playwright().start()
            launcher = getattr(self._pw, self.browser_type)
            args = _CHROMIUM_ARGS if self.browser_type == "chromium" else []
            self._browser = await launcher.launch(headless=True, args=args)
            http_credentials = self.credentials.model_dump() if self.credentials else None
            self._context = await self._browser.new_context(
                viewport={"width": self.width, "height": self.height},
                http_credentials=http_credentials,
            )
            self._page = await self._context.new_page()
        except BaseException:
            await self.close()
            raise
        logger.debug("%s launched at %dx%d", self.browser_type, self.width, self.height)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Tear down context, browser, and driver.  Safe to call twice."""
        # Shielded so a cancelled task still reaps its browser process.
        await asyncio.shield(self._close())

    async def _close(self) -> None:
        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._pw.stop if self._pw else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                logger.warning("Error closing %s: %s", name, exc)
        self._page = self._context = self._browser = self._pw = None
        logger.debug("%s closed", self.browser_type)

    @property
    def page(self) -> Page:
        assert self._page is not None, "BrowserSession not entered"
        return self._page

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    async def load(self, url: str) -> None:
        """Navigate and wait for the page to settle, never failing on timeouts.

        A page that does not reach network idle within the ceiling is still
        captured in whatever state it is in.
        """
        s = self.settings
        try:
            await self.page.goto(url, wait_until="networkidle", timeout=s.navigation_timeout_ms)
        except PlaywrightTimeoutError as exc:
            logger.info("Navigation to %s timed out, continuing: %s", url, exc)
        except PlaywrightError as exc:
            logger.warning("Navigation to %s failed, capturing whatever loaded: %s", url, exc)

        await self.page.wait_for_timeout(s.settle_ms)

        ready = await self.page.evaluate(_READY_STATE_JS, s.ready_timeout_ms)
        if not ready:
            logger.info("%s may not be fully loaded, continuing", url)

        await self.wait_for_images(best_effort=True)

    async def wait_for_images(self, *, best_effort: bool = False) -> None:
        """Wait for every incomplete ``<img>`` to load or fail."""
        try:
            await self.page.evaluate(_PENDING_IMAGES_JS)
        except PlaywrightError as exc:
            if not best_effort:
                raise
            logger.debug("Error while waiting for images, continuing: %s", exc)

    async def wait_for_landmarks(self) -> None:
        """Wait for the structural landmarks concurrently; timeouts are ignored."""
        timeout = self.settings.landmark_timeout_ms
        results = await asyncio.gather(
            *(self.page.wait_for_selector(sel, timeout=timeout) for sel in self.settings.landmarks),
            return_exceptions=True,
        )
        missing = [
            sel for sel, res in zip(self.settings.landmarks, results)
            if isinstance(res, Exception)
        ]
        if missing:
            logger.debug("Landmarks not found in time: %s", ", ".join(missing))

    async def settle(self) -> None:
        await self.page.wait_for_timeout(self.settings.settle_ms)

    # ------------------------------------------------------------------
    # Page queries and capture
    # ------------------------------------------------------------------

    async def title(self) -> str:
        return await self.page.title()

    async def scroll_height(self) -> int:
        return int(await self.page.evaluate("() => document.documentElement.scrollHeight"))

    async def scroll_to(self, offset: int) -> None:
        await self.page.evaluate("(y) => window.scrollTo(0, y)", offset)

    async def screenshot(self, path: str, *, full_page: bool) -> None:
        timeout = self.settings.full_page_timeout_ms if full_page else self.settings.segment_timeout_ms
        await self.page.screenshot(
            path=path,
            type="jpeg",
            quality=self.settings.jpeg_quality,
            full_page=full_page,
            timeout=timeout,
        )
