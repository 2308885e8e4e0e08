"""Question generation for every game mode.

Lyrics questions need a network round-trip per track, so candidates are
checked in small concurrent batches. Blind-test questions are built from the
pool alone.
"""
from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Callable, List, Optional, Sequence

from .db import Settings, settings as default_settings
from .lrclib import LyricsProvider
from .lyrics import parse_lrc
from .models import (
    OPTION_COUNT,
    ArtistQuestion,
    GameMode,
    GameTrack,
    LyricsQuestion,
    TitleQuestion,
    Track,
)

logger = logging.getLogger(__name__)

LYRICS_MODES = ("lyrics-quiz", "survival")

ProgressCallback = Callable[[int, int], None]


class NoQuestionsError(ValueError):
    """Raised when a pool cannot produce a single playable question."""


def _build_options(correct: str, candidates: Sequence[str], rng: random.Random) -> List[str]:
    # unique distractors first, then repeated draws if the pool is too small
    unique = [c for c in dict.fromkeys(candidates) if c != correct]
    distractors = rng.sample(unique, min(len(unique), OPTION_COUNT - 1))
    fallback = unique or list(candidates) or [correct]
    while len(distractors) < OPTION_COUNT - 1:
        distractors.append(rng.choice(fallback))

    options = [correct, *distractors]
    rng.shuffle(options)
    return options


def _random_start_time(track: Track, rng: random.Random) -> int:
    # somewhere between 10% and 50% into the track
    return math.floor(track.duration_seconds * (0.1 + rng.random() * 0.4))


async def generate_lyrics_question(
    track: Track,
    provider: LyricsProvider,
    *,
    timeout: float | None = None,
    min_lines: int | None = None,
    rng: random.Random | None = None,
) -> Optional[GameTrack]:
    """Build a fill-in-the-lyric question, or ``None`` if the track is unusable."""
    rng = rng or random.Random()
    timeout = default_settings.LYRICS_TIMEOUT_SECONDS if timeout is None else timeout
    min_lines = default_settings.MIN_LYRIC_LINES if min_lines is None else min_lines

    if not track.artists:
        logger.warning("Skipping track without artist: %s", track.id)
        return None

    try:
        data = await asyncio.wait_for(
            provider.fetch_lyrics(track.name, track.primary_artist, math.floor(track.duration_seconds)),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Timed out fetching lyrics for %s", track.name)
        return None
    except Exception as exc:
        logger.warning("Failed to get lyrics for %s: %s", track.name, exc)
        return None

    if data is None or not data.syncedLyrics:
        return None

    lines = parse_lrc(data.syncedLyrics)
    if len(lines) < min_lines:
        logger.info("Not enough lyric lines for %s (%d)", track.name, len(lines))
        return None

    # never the first or the last line
    hidden = lines[rng.randint(1, len(lines) - 2)]
    options = _build_options(hidden.text, [line.text for line in lines], rng)

    question = LyricsQuestion(
        track=track,
        options=options,
        correct_answer=hidden.text,
        lyrics=lines,
        hidden_lyric=hidden,
    )
    return GameTrack(track=track, question=question)


def generate_title_question(
    track: Track, pool: Sequence[Track], *, rng: random.Random | None = None
) -> GameTrack:
    rng = rng or random.Random()
    others = [t.name for t in pool if t.id != track.id]
    question = TitleQuestion(
        track=track,
        options=_build_options(track.name, others, rng),
        correct_answer=track.name,
        start_time=_random_start_time(track, rng),
    )
    return GameTrack(track=track, question=question)


def generate_artist_question(
    track: Track, pool: Sequence[Track], *, rng: random.Random | None = None
) -> GameTrack:
    rng = rng or random.Random()
    correct = track.primary_artist
    others = [t.primary_artist for t in pool if t.id != track.id and t.artists]
    question = ArtistQuestion(
        track=track,
        options=_build_options(correct, others, rng),
        correct_answer=correct,
        start_time=_random_start_time(track, rng),
    )
    return GameTrack(track=track, question=question)


async def generate_questions(
    pool: Sequence[Track],
    mode: GameMode,
    target_count: int,
    on_progress: Optional[ProgressCallback] = None,
    *,
    provider: Optional[LyricsProvider] = None,
    abort: Optional[asyncio.Event] = None,
    rng: Optional[random.Random] = None,
    settings: Optional[Settings] = None,
) -> List[GameTrack]:
    """Produce up to ``target_count`` questions from ``pool``.

    Survival mode has no quota and walks the whole pool. Setting ``abort``
    stops further lookups and returns what was produced so far.
    """
    cfg = settings or default_settings
    rng = rng or random.Random()
    is_survival = mode == "survival"

    candidates = list(pool) if is_survival else list(pool[: max(0, target_count) * cfg.CANDIDATE_MULTIPLIER])
    total = len(candidates)
    produced: List[GameTrack] = []
    checked = 0

    def quota_met() -> bool:
        return not is_survival and len(produced) >= target_count

    def report() -> None:
        if on_progress is not None:
            on_progress(checked, total)

    if mode not in LYRICS_MODES:
        build = generate_title_question if mode == "blind-test-title" else generate_artist_question
        for track in candidates:
            if quota_met() or (abort is not None and abort.is_set()):
                break
            produced.append(build(track, pool, rng=rng))
            checked += 1
            report()
        return produced

    if provider is None:
        raise ValueError(f"mode {mode!r} needs a lyrics provider")

    async def evaluate(track: Track) -> Optional[GameTrack]:
        nonlocal checked
        if abort is not None and abort.is_set():
            return None
        try:
            return await generate_lyrics_question(
                track,
                provider,
                timeout=cfg.LYRICS_TIMEOUT_SECONDS,
                min_lines=cfg.MIN_LYRIC_LINES,
                rng=rng,
            )
        finally:
            checked += 1
            report()

    batch_size = max(1, cfg.LYRICS_BATCH_SIZE)
    for start in range(0, total, batch_size):
        if abort is not None and abort.is_set():
            logger.info("Question generation cancelled after %d/%d tracks", checked, total)
            break

        batch = candidates[start:start + batch_size]
        results = await asyncio.gather(*(evaluate(track) for track in batch))
        produced.extend(r for r in results if r is not None)

        if quota_met():
            logger.info("Found enough tracks with lyrics (%d), stopping early", len(produced))
            break

    if not is_survival:
        produced = produced[:target_count]
    return produced


def require_questions(game_tracks: List[GameTrack], checked: int) -> List[GameTrack]:
    if not game_tracks:
        raise NoQuestionsError(f"No playable questions found among {checked} tracks")
    return game_tracks
