"""Parsing and lookup for line-synchronised (LRC) lyrics.

A synced lyric line looks like ``[01:23.45]Some words``. A single text line may
carry several tags (``[00:12.00][01:40.50]Chorus``), in which case it is
emitted once per tag.
"""
from __future__ import annotations

import bisect
import re
from typing import List, Optional, Sequence

from .models import LyricLine

# minutes, seconds and an optional 1-3 digit fraction (centi- or milliseconds)
TIMESTAMP_TAG = re.compile(r"\[(\d{1,3}):([0-5]\d)(?:[.:](\d{1,3}))?\]")


def _tag_to_seconds(minutes: str, seconds: str, fraction: str | None) -> float:
    value = int(minutes) * 60 + int(seconds)
    if fraction:
        # ".5" -> 500ms, ".45" -> 450ms, ".456" -> 456ms
        value += int(fraction.ljust(3, "0")) / 1000
    return value


def parse_lrc(text: str) -> List[LyricLine]:
    """Parse LRC text into lines sorted by time.

    Untagged lines, metadata tags (``[ar:...]``) and tags without text are
    dropped. Input with no usable tag yields an empty list.
    """
    if not text:
        return []

    lines: List[LyricLine] = []
    for raw in text.splitlines():
        tags = TIMESTAMP_TAG.findall(raw)
        if not tags:
            continue

        lyric = TIMESTAMP_TAG.sub("", raw).strip()
        if not lyric:
            continue

        for minutes, seconds, fraction in tags:
            lines.append(LyricLine(time=_tag_to_seconds(minutes, seconds, fraction), text=lyric))

    lines.sort(key=lambda line: line.time)
    return lines


def current_line(lines: Sequence[LyricLine], position: float) -> Optional[LyricLine]:
    """Return the line being sung at ``position`` seconds, or ``None`` before the first cue."""
    if not lines:
        return None
    idx = bisect.bisect_right([line.time for line in lines], position)
    return lines[idx - 1] if idx > 0 else None


def next_line(lines: Sequence[LyricLine], position: float) -> Optional[LyricLine]:
    """Return the first line strictly after ``position`` seconds."""
    idx = bisect.bisect_right([line.time for line in lines], position)
    return lines[idx] if idx < len(lines) else None
