"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from shotter.schemas.config import CaptureSettings, ServiceConfig
from shotter.schemas.job import CaptureTask, Credentials, JobRequest


class FakeBrowserSession:
    """Stands in for ``BrowserSession``: records calls, writes tiny files.

    Class-level ``instances`` lets tests inspect every session a factory
    produced.  Set ``page_height``/``title_text``/``fail_on`` per test.
    """

    instances: list["FakeBrowserSession"] = []
    page_height = 2500
    title_text = "Example Domain"
    fail_on: str | None = None

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
        self.calls: list[tuple[str, Any]] = []
        self.closed = False
        FakeBrowserSession.instances.append(self)

    def _record(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        if self.fail_on == name:
            raise RuntimeError(f"boom in {name}")

    async def __aenter__(self) -> "FakeBrowserSession":
        self._record("launch")
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    async def load(self, url: str) -> None:
        self._record("load", url)

    async def wait_for_landmarks(self) -> None:
        self._record("landmarks")

    async def wait_for_images(self, *, best_effort: bool = False) -> None:
        self._record("images")

    async def settle(self) -> None:
        self._record("settle")

    async def title(self) -> str:
        self._record("title")
        return self.title_text

    async def scroll_height(self) -> int:
        self._record("scroll_height")
        return self.page_height

    async def scroll_to(self, offset: int) -> None:
        self._record("scroll_to", offset)

    async def screenshot(self, path: str, *, full_page: bool) -> None:
        self._record("screenshot", (path, full_page))
        Path(path).write_bytes(b"\xff\xd8\xff\xd9")

    @property
    def scroll_offsets(self) -> list[int]:
        return [arg for name, arg in self.calls if name == "scroll_to"]


@pytest.fixture
def fake_browser():
    """Yield the FakeBrowserSession class with its per-test state reset."""
    FakeBrowserSession.instances = []
    FakeBrowserSession.page_height = 2500
    FakeBrowserSession.title_text = "Example Domain"
    FakeBrowserSession.fail_on = None
    yield FakeBrowserSession
    FakeBrowserSession.instances = []


@pytest.fixture
def service_config(tmp_path: Path) -> ServiceConfig:
    """A config rooted in tmp_path with no host cooldown."""
    return ServiceConfig(
        output_root=str(tmp_path / "output"),
        max_workers=2,
        host_cooldown=0,
        session_timeout=5,
    )


def make_request(**overrides: Any) -> JobRequest:
    fields: dict[str, Any] = {
        "urls": ["https://a.com/x", "https://b.com/"],
        "widths": [1280, 390],
        "heights": [800, 844],
        "headerHeight": 0,
        "sessionId": "s1",
    }
    fields.update(overrides)
    return JobRequest(**fields)


def make_task(tmp_path: Path, **overrides: Any) -> CaptureTask:
    fields: dict[str, Any] = {
        "url": "https://example.com/page",
        "width": 1000,
        "height": 1000,
        "header_height": 100,
        "output_dir": str(tmp_path),
        "session_id": "s1",
        "is_first_size_variant": True,
    }
    fields.update(overrides)
    return CaptureTask(**fields)
