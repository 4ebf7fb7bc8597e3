"""Task matrix builder: orders URLs by host and expands them into capture tasks."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

from shotter.schemas.job import CaptureTask, JobRequest

logger = logging.getLogger(__name__)


def _is_root_path(path: str) -> bool:
    return path in ("", "/")


def order_urls(urls: list[str]) -> list[str]:
    """Group URLs by host, putting each host's root page last.

    Within a host group the root path (``""`` or ``"/"``) is appended and
    every other path is prepended, so the most recently seen non-root path
    comes first.  Groups keep the order in which their host was first seen.
    Malformed URLs are dropped with a warning.
    """
    groups: dict[str, list[str]] = {}

    for url in urls:
        try:
            parts = urlsplit(url)
            host = parts.hostname
        except ValueError as exc:
            logger.warning("Invalid URL %r dropped: %s", url, exc)
            continue
        if not parts.scheme or not host:
            logger.warning("Invalid URL %r dropped: missing scheme or host", url)
            continue

        group = groups.setdefault(host, [])
        if _is_root_path(parts.path):
            group.append(url)
        else:
            group.insert(0, url)

    return [url for group in groups.values() for url in group]


def build_task_matrix(
    request: JobRequest,
    output_dir: str | Path,
    *,
    ordered_urls: list[str] | None = None,
) -> list[CaptureTask]:
    """Cross the host-ordered URLs with every size variant of the request.

    URL order is the outer loop and the size-variant index the inner loop,
    so all sizes of one page are dispatched back to back.
    """
    if ordered_urls is None:
        ordered_urls = order_urls(request.urls)

    credentials = request.credentials
    tasks: list[CaptureTask] = []
    for url in ordered_urls:
        for i, (width, height) in enumerate(request.size_variants):
            tasks.append(CaptureTask(
                url=url,
                width=width,
                height=height,
                header_height=request.header_height,
                full_page=request.full_page,
                browser_type=request.browser_type,
                credentials=credentials,
                output_dir=str(output_dir),
                session_id=request.session_id,
                is_first_size_variant=i == 0,
            ))

    logger.debug(
        "Session %s: %d URL(s) x %d size(s) = %d task(s)",
        request.session_id, len(ordered_urls), len(request.widths), len(tasks),
    )
    return tasks
