"""Player XP and levels.

Every correct answer is worth 10 XP. Reaching level 2 costs 100 XP and each
later level costs 20% more than the one before it, i.e. level ``L`` costs
``floor(100 * 1.2 ** (L - 2))``. Stored ``level`` and ``current_xp`` are
always recomputed from ``total_xp``.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, List

from .db import db
from .models import LevelInfo, PlayerProgress, XPGain

XP_PER_CORRECT_ANSWER = 10
BASE_XP_FOR_LEVEL_2 = 100
LEVEL_MULTIPLIER = 1.2


def xp_for_level(level: int) -> int:
    """XP needed to go from ``level - 1`` to ``level``."""
    if level <= 1:
        return 0
    return math.floor(BASE_XP_FOR_LEVEL_2 * LEVEL_MULTIPLIER ** (level - 2))


def total_xp_for_level(level: int) -> int:
    return sum(xp_for_level(i) for i in range(2, level + 1))


def level_from_total_xp(total_xp: int) -> int:
    level = 1
    needed = 0
    while needed + xp_for_level(level + 1) <= total_xp:
        level += 1
        needed += xp_for_level(level)
    return level


def current_level_xp(total_xp: int) -> int:
    return total_xp - total_xp_for_level(level_from_total_xp(total_xp))


def progress_fraction(total_xp: int) -> float:
    """Share of the way to the next level, for progress bars."""
    level = level_from_total_xp(total_xp)
    return min(1.0, max(0.0, current_level_xp(total_xp) / xp_for_level(level + 1)))


def level_info(total_xp: int) -> LevelInfo:
    level = level_from_total_xp(total_xp)
    return LevelInfo(
        current_level=level,
        current_xp=current_level_xp(total_xp),
        xp_for_next_level=xp_for_level(level + 1),
        progress=progress_fraction(total_xp),
    )


def calculate_xp_gain(correct_answers: int) -> int:
    return correct_answers * XP_PER_CORRECT_ANSWER


def add_xp(total_xp: int, gain: int) -> XPGain:
    if gain < 0:
        raise ValueError("XP gain cannot be negative")
    new_total = total_xp + gain
    old_level = level_from_total_xp(total_xp)
    new_level = level_from_total_xp(new_total)
    return XPGain(
        xp_earned=gain,
        new_total_xp=new_total,
        old_level=old_level,
        new_level=new_level,
        leveled_up=new_level > old_level,
    )


class ProgressStore:
    def __init__(self, database: Any = None):
        self.collection = (database or db).player_progress

    async def get_or_create(self, user_id: str, username: str) -> PlayerProgress:
        doc = await self.collection.find_one({"user_id": user_id})
        if doc:
            return PlayerProgress(**doc)

        progress = PlayerProgress(user_id=user_id, username=username)
        await self.collection.insert_one(progress.model_dump())
        return progress

    async def award_xp(self, user_id: str, username: str, amount: int) -> XPGain:
        progress = await self.get_or_create(user_id, username)
        gain = add_xp(progress.total_xp, amount)

        await self.collection.update_one(
            {"user_id": user_id},
            {
                "$set": {
                    "level": gain.new_level,
                    "current_xp": current_level_xp(gain.new_total_xp),
                    "total_xp": gain.new_total_xp,
                    # keep the display name current
                    "username": username,
                    "updated_at": datetime.utcnow(),
                }
            },
        )
        return gain

    async def top_by_level(self, limit: int = 10) -> List[PlayerProgress]:
        cursor = self.collection.find({}).sort([("level", -1), ("current_xp", -1)]).limit(limit)
        return [PlayerProgress(**doc) async for doc in cursor]

    async def top_by_xp(self, limit: int = 10) -> List[PlayerProgress]:
        cursor = self.collection.find({}).sort("total_xp", -1).limit(limit)
        return [PlayerProgress(**doc) async for doc in cursor]
