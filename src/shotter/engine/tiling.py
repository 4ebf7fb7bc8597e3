"""Segmented-capture arithmetic for pages taller than the viewport."""

from __future__ import annotations

import math
import re
from typing import NamedTuple

_SCHEME_RE = re.compile(r"^https?://")
_UNSAFE_CHARS_RE = re.compile(r'[/\\:*?"<>|]')


class Segment(NamedTuple):
    part: int  # 1-based
    offset: int  # scroll position in CSS pixels


def plan_segments(total_height: int, height: int, header_height: int = 0) -> list[Segment]:
    """Return the scroll offsets used to tile a page vertically.

    Consecutive segments advance by ``height - header_height`` so that a
    sticky header does not hide content between tiles.  The last segment is
    pinned to ``total_height - height`` so it always ends exactly at the page
    bottom, including when a regular step would already pass it.

    >>> [s.offset for s in plan_segments(2500, 1000, 100)]
    [0, 900, 1500]
    """
    step = height - header_height
    if step <= 0:
        raise ValueError(
            f"header height ({header_height}) must be smaller than the viewport height ({height})"
        )

    total_parts = math.ceil(total_height / step)
    scroll_bottom = total_height - height

    if scroll_bottom < 0:
        return []

    segments: list[Segment] = []
    offset = 0
    part = 1
    while True:
        segments.append(Segment(part, offset))
        if offset >= scroll_bottom:
            return segments
        part += 1
        offset += step
        # A step that reaches past the bottom becomes the final, pinned part.
        if offset >= scroll_bottom or part >= total_parts:
            offset = scroll_bottom


def sanitize_url(url: str) -> str:
    """Turn a URL into a filesystem-safe file name stem."""
    return _UNSAFE_CHARS_RE.sub("_", _SCHEME_RE.sub("", url))


def file_stem(url: str, width: int, height: int) -> str:
    return f"{sanitize_url(url)}_{width}x{height}"


def full_page_name(url: str, width: int, height: int) -> str:
    return f"{file_stem(url, width, height)}.jpg"


def segment_name(url: str, width: int, height: int, part: int) -> str:
    return f"{file_stem(url, width, height)}-{part}.jpg"
