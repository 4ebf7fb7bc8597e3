"""Periodic deletion of old screenshot directories and archives."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Deletes entries under the output roots once they exceed ``max_age`` seconds.

    Only the top level of each root is inspected: a session directory is
    removed as a whole, as is a zip archive.
    """

    def __init__(self, roots: list[str | Path], *, max_age: float, interval: float) -> None:
        # dict.fromkeys keeps order while dropping a duplicated root
        self.roots = list(dict.fromkeys(Path(r) for r in roots))
        self.max_age = max_age
        self.interval = interval

    def sweep_once(self, now: float | None = None) -> list[Path]:
        """Delete expired entries and return their paths.

        A failure on one entry is logged and the sweep moves on.
        """
        if now is None:
            now = time.time()
        removed: list[Path] = []

        for root in self.roots:
            if not root.is_dir():
                logger.debug("Retention root %s does not exist, skipping", root)
                continue
            for entry in root.iterdir():
                try:
                    age = now - entry.stat().st_mtime
                    if age <= self.max_age:
                        continue
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                except OSError as exc:
                    logger.error("Error removing %s during cleanup: %s", entry, exc)
                    continue
                removed.append(entry)

        if removed:
            logger.info("Retention sweep removed %d expired entries", len(removed))
        return removed

    async def run(self) -> None:
        """Sweep now and then every ``interval`` seconds until cancelled."""
        for root in self.roots:
            root.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception:
                logger.exception("Retention sweep failed")
            await asyncio.sleep(self.interval)
