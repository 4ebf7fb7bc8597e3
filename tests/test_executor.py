"""Tests for CaptureExecutor, driven by a fake browser session."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import make_task

from shotter.engine.executor import CaptureExecutor
from shotter.schemas.job import Credentials


class TestCaptureExecutor:
    @pytest.mark.asyncio
    async def test_tiles_long_page(self, tmp_path: Path, fake_browser) -> None:
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path))

        assert outcome.ok
        assert [Path(f).name for f in outcome.files] == [
            "example.com_page_1000x1000-1.jpg",
            "example.com_page_1000x1000-2.jpg",
            "example.com_page_1000x1000-3.jpg",
        ]
        assert all(Path(f).exists() for f in outcome.files)
        session = fake_browser.instances[0]
        assert session.scroll_offsets == [0, 900, 1500]
        shots = [arg for name, arg in session.calls if name == "screenshot"]
        assert all(full is False for _, full in shots)
        assert session.closed

    @pytest.mark.asyncio
    async def test_each_segment_settles_before_capture(self, tmp_path: Path, fake_browser) -> None:
        executor = CaptureExecutor(session_factory=fake_browser)
        await executor.run(make_task(tmp_path))

        names = [name for name, _ in fake_browser.instances[0].calls]
        first_scroll = names.index("scroll_to")
        assert names[first_scroll:first_scroll + 4] == ["scroll_to", "settle", "images", "screenshot"]

    @pytest.mark.asyncio
    async def test_full_page_flag(self, tmp_path: Path, fake_browser) -> None:
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path, full_page=True))

        assert outcome.ok
        assert [Path(f).name for f in outcome.files] == ["example.com_page_1000x1000.jpg"]
        session = fake_browser.instances[0]
        assert session.scroll_offsets == []
        assert ("screenshot", (outcome.files[0], True)) in session.calls

    @pytest.mark.asyncio
    async def test_short_page_captured_whole(self, tmp_path: Path, fake_browser) -> None:
        fake_browser.page_height = 1000
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path))
        assert [Path(f).name for f in outcome.files] == ["example.com_page_1000x1000.jpg"]

    @pytest.mark.asyncio
    async def test_title_reported_for_first_size_only(self, tmp_path: Path, fake_browser) -> None:
        seen: list[tuple[str, str]] = []
        executor = CaptureExecutor(session_factory=fake_browser)

        await executor.run(make_task(tmp_path), on_title=lambda t, title: seen.append((t.url, title)))
        await executor.run(
            make_task(tmp_path, is_first_size_variant=False, width=390),
            on_title=lambda t, title: seen.append((t.url, title)),
        )
        assert seen == [("https://example.com/page", "Example Domain")]

    @pytest.mark.asyncio
    async def test_viewport_and_credentials_passed_to_session(self, tmp_path: Path, fake_browser) -> None:
        creds = Credentials(username="u", password="p")
        executor = CaptureExecutor(session_factory=fake_browser)
        await executor.run(make_task(tmp_path, browser_type="firefox", width=390, height=844, credentials=creds))

        session = fake_browser.instances[0]
        assert (session.browser_type, session.width, session.height) == ("firefox", 390, 844)
        assert session.credentials == creds

    @pytest.mark.asyncio
    async def test_unsupported_browser_fails_task(self, tmp_path: Path, fake_browser) -> None:
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path, browser_type="netscape"))

        assert not outcome.ok
        assert "Unsupported browser type" in outcome.error
        assert fake_browser.instances == []

    @pytest.mark.asyncio
    async def test_crash_returns_failed_outcome_and_closes(self, tmp_path: Path, fake_browser) -> None:
        fake_browser.fail_on = "screenshot"
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path))

        assert not outcome.ok
        assert "boom in screenshot" in outcome.error
        assert fake_browser.instances[0].closed

    @pytest.mark.asyncio
    async def test_header_taller_than_viewport_fails_task(self, tmp_path: Path, fake_browser) -> None:
        executor = CaptureExecutor(session_factory=fake_browser)
        outcome = await executor.run(make_task(tmp_path, header_height=1000))
        assert not outcome.ok
        assert "header height" in outcome.error
