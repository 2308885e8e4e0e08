from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, List, Optional, Protocol

import aiohttp
from pydantic import BaseModel

from .db import db, settings

logger = logging.getLogger(__name__)


class LyricsData(BaseModel):
    id: Optional[int] = None
    trackName: str = ""
    artistName: str = ""
    albumName: Optional[str] = None
    duration: Optional[float] = None
    instrumental: bool = False
    plainLyrics: Optional[str] = None
    syncedLyrics: Optional[str] = None


class LyricsProvider(Protocol):
    async def fetch_lyrics(
        self, track_name: str, artist_name: str, duration_seconds: int
    ) -> Optional[LyricsData]: ...


class LyricsLookupError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class LrclibClient:
    """Fetch lyrics from LRCLIB (no API key required)."""

    def __init__(self, base_url: str | None = None, session: aiohttp.ClientSession | None = None):
        self.base_url = (base_url or settings.LRCLIB_API_URL).rstrip("/")
        self._session = session

    async def _get(self, path: str, params: dict[str, Any]) -> tuple[int, Any]:
        headers = {"User-Agent": settings.LRCLIB_USER_AGENT}
        if self._session is not None:
            async with self._session.get(f"{self.base_url}{path}", params=params, headers=headers) as resp:
                return resp.status, (await resp.json() if resp.status == 200 else None)

        async with aiohttp.ClientSession() as session:
            async with session.get(f"{self.base_url}{path}", params=params, headers=headers) as resp:
                return resp.status, (await resp.json() if resp.status == 200 else None)

    async def fetch_lyrics(
        self, track_name: str, artist_name: str, duration_seconds: int
    ) -> Optional[LyricsData]:
        """Return the LRCLIB record, or ``None`` when LRCLIB has no match.

        Network failures and unexpected statuses (rate limits, 5xx) raise so
        that callers never mistake them for a definitive "no lyrics".
        """
        params = {
            "track_name": track_name,
            "artist_name": artist_name,
            "duration": duration_seconds,
        }
        status, payload = await self._get("/get", params)

        if status == 404:
            return None
        if status != 200:
            raise LyricsLookupError(f"LRCLIB returned {status} for {artist_name} - {track_name}", status)
        return LyricsData.model_validate(payload)

    async def search(self, query: str) -> List[LyricsData]:
        try:
            status, payload = await self._get("/search", {"q": query})
        except (aiohttp.ClientError, ValueError) as exc:
            logger.warning("LRCLIB search failed for %r: %s", query, exc)
            return []
        if status != 200 or not payload:
            return []
        return [LyricsData.model_validate(item) for item in payload]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# cache miss marker; a cached ``None`` means "looked up, no lyrics"
MISSING: Any = _Missing()


def cache_key(track_name: str, artist_name: str, duration_seconds: int) -> str:
    normalized = f"{track_name.lower()}_{artist_name.lower()}_{duration_seconds}"
    return re.sub(r"[^a-z0-9_]", "_", normalized)


class LyricsCache:
    """Lyrics lookups memoised in the ``lyrics_cache`` collection."""

    def __init__(self, database: Any = None):
        self.collection = (database or db).lyrics_cache

    async def get(self, track_name: str, artist_name: str, duration_seconds: int) -> Any:
        doc = await self.collection.find_one({"track_id": cache_key(track_name, artist_name, duration_seconds)})
        if doc is None:
            return MISSING
        data = doc.get("lyrics_json")
        return LyricsData.model_validate(data) if data is not None else None

    async def set(
        self, track_name: str, artist_name: str, duration_seconds: int, data: Optional[LyricsData]
    ) -> None:
        track_id = cache_key(track_name, artist_name, duration_seconds)
        await self.collection.update_one(
            {"track_id": track_id},
            {
                "$set": {
                    "track_name": track_name,
                    "artist_name": artist_name,
                    "duration": duration_seconds,
                    "lyrics_json": data.model_dump() if data is not None else None,
                    "has_synced": bool(data and data.syncedLyrics),
                    "updated_at": datetime.utcnow(),
                }
            },
            upsert=True,
        )

    async def clear(self) -> int:
        return await self.collection.delete_many({})

    async def stats(self) -> dict[str, int]:
        return {
            "total": await self.collection.count_documents({}),
            "with_synced": await self.collection.count_documents({"has_synced": True}),
            "without_lyrics": await self.collection.count_documents({"lyrics_json": None}),
        }


class CachedLyricsProvider:
    """Read-through cache in front of another provider.

    A broken cache never breaks lookups; it only costs the latency of going to
    the upstream provider. Only definitive answers are stored: a failed
    upstream lookup raises before anything is written.
    """

    def __init__(self, provider: LyricsProvider, cache: LyricsCache | None = None):
        self.provider = provider
        self.cache = cache

    async def fetch_lyrics(
        self, track_name: str, artist_name: str, duration_seconds: int
    ) -> Optional[LyricsData]:
        if self.cache is not None:
            try:
                cached = await self.cache.get(track_name, artist_name, duration_seconds)
            except Exception:
                logger.exception("Error reading lyrics cache")
            else:
                if cached is not MISSING:
                    return cached

        data = await self.provider.fetch_lyrics(track_name, artist_name, duration_seconds)

        if self.cache is not None:
            try:
                await self.cache.set(track_name, artist_name, duration_seconds, data)
            except Exception:
                logger.exception("Error writing lyrics cache")
        return data
