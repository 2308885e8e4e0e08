"""Playback device interface and the retry logic around starting a track."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Tuple, Type, TypeVar

from .db import Settings, settings as default_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Player(Protocol):
    """The playback device as seen by the game: positions are in milliseconds."""

    position: int
    duration: int
    is_paused: bool
    is_ready: bool

    async def play(self, uri: str) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    async def seek(self, position_ms: int) -> None: ...

    async def transfer_playback(self) -> None: ...


class PlaybackError(RuntimeError):
    pass


class DeviceNotReadyError(PlaybackError):
    pass


class TransientPlaybackError(PlaybackError):
    """Rate limiting, 5xx responses and network hiccups; worth retrying."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NoActiveDeviceError(TransientPlaybackError):
    def __init__(self, message: str = "No active device found"):
        super().__init__(message, status=404)


class TrackLoadError(PlaybackError):
    """The track could not be started; the current round cannot proceed."""


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (TransientPlaybackError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` until it succeeds, waiting ``base_delay * factor**n`` between tries.

    Exceptions outside ``retry_on`` propagate immediately; the last retryable
    one propagates once ``attempts`` is exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as exc:
            if attempt == attempts - 1:
                raise
            delay = base_delay * factor**attempt
            logger.warning("%s, retrying in %.2fs (attempt %d/%d)", exc, delay, attempt + 1, attempts)
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover


async def wait_until_ready(
    player: Player,
    timeout: float = 10.0,
    interval: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    waited = 0.0
    while not player.is_ready:
        if waited >= timeout:
            raise DeviceNotReadyError("Playback device not ready")
        await sleep(interval)
        waited += interval


async def start_track(
    player: Player,
    uri: str,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Start ``uri`` on ``player``, transferring playback once if no device is active."""
    cfg = settings or default_settings

    if not player.is_ready:
        logger.info("Waiting for playback device to be ready...")
        await wait_until_ready(player, cfg.DEVICE_READY_TIMEOUT_SECONDS, cfg.DEVICE_READY_POLL_SECONDS, sleep)

    transferred = False

    async def attempt() -> None:
        nonlocal transferred
        try:
            await player.play(uri)
        except NoActiveDeviceError:
            if transferred:
                raise
            transferred = True
            logger.warning("No active device found, attempting to transfer playback...")
            try:
                await player.transfer_playback()
            except PlaybackError as exc:
                logger.error("Failed to transfer playback: %s", exc)
            else:
                await sleep(cfg.TRANSFER_SETTLE_SECONDS)
            raise

    try:
        await retry_async(
            attempt,
            attempts=cfg.PLAY_RETRIES,
            base_delay=cfg.RETRY_BASE_DELAY_SECONDS,
            factor=cfg.RETRY_BACKOFF_FACTOR,
            sleep=sleep,
        )
    except PlaybackError as exc:
        raise TrackLoadError(f"Cannot play track {uri}: {exc}") from exc
