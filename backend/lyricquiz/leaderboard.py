from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from .db import db
from .models import GameStats, RoundResult, ScoreEntry, XPGain
from .progression import ProgressStore, calculate_xp_gain
from .utils import sort_leaderboard

logger = logging.getLogger(__name__)


class Leaderboard:
    """Score history per finished game, aggregated into rankings on read."""

    def __init__(self, database: Any = None):
        self.collection = (database or db).leaderboard

    async def submit_score(
        self,
        user_id: str,
        username: str,
        score: int,
        total_questions: int,
        game_mode: str = "lyrics-quiz",
        source_type: str = "random",
        avatar_url: Optional[str] = None,
    ) -> ScoreEntry:
        if score < 0 or total_questions < 0:
            raise ValueError("Scores cannot be negative")
        if score > total_questions:
            raise ValueError("Score cannot exceed the number of questions")

        entry = ScoreEntry(
            id=uuid.uuid4().hex,
            user_id=user_id,
            username=username,
            avatar_url=avatar_url,
            score=score,
            total_questions=total_questions,
            game_mode=game_mode,
            source_type=source_type,
        )
        await self.collection.insert_one(entry.model_dump())
        return entry

    async def top_players(self, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        totals: Dict[str, dict] = {}
        async for doc in self.collection.find({}).sort("created_at", -1):
            row = totals.get(doc["user_id"])
            if row is None:
                totals[doc["user_id"]] = {
                    "user_id": doc["user_id"],
                    "username": doc["username"],
                    "avatar_url": doc.get("avatar_url"),
                    "total_score": doc["score"],
                    "total_games": 1,
                    "best_score": doc["score"],
                }
            else:
                row["total_score"] += doc["score"]
                row["total_games"] += 1
                row["best_score"] = max(row["best_score"], doc["score"])

        ranked = [{**row, "rank": i + 1} for i, row in enumerate(sort_leaderboard(list(totals.values())))]
        return {"leaderboard": ranked[offset:offset + limit], "total": len(ranked)}

    async def user_history(self, user_id: str, limit: int = 50) -> List[ScoreEntry]:
        cursor = self.collection.find({"user_id": user_id}).sort("created_at", -1).limit(limit)
        return [ScoreEntry(**doc) async for doc in cursor]

    async def user_stats(self, user_id: str, game_mode: Optional[str] = None) -> Dict[str, float]:
        query: Dict[str, Any] = {"user_id": user_id}
        if game_mode:
            query["game_mode"] = game_mode
        scores = [doc["score"] async for doc in self.collection.find(query)]

        if not scores:
            return {"total_games": 0, "total_score": 0, "best_score": 0, "average_score": 0}
        return {
            "total_games": len(scores),
            "total_score": sum(scores),
            "best_score": max(scores),
            "average_score": sum(scores) / len(scores),
        }


async def record_game(
    results: List[RoundResult],
    stats: GameStats,
    *,
    user_id: str,
    username: str,
    game_mode: str,
    source_type: str = "random",
    leaderboard: Optional[Leaderboard] = None,
    progress: Optional[ProgressStore] = None,
) -> Optional[XPGain]:
    """Persist a finished game's score and XP.

    Failures are logged and swallowed so the results screen is never blocked.
    """
    leaderboard = leaderboard or Leaderboard()
    progress = progress or ProgressStore()

    try:
        await leaderboard.submit_score(
            user_id,
            username,
            score=stats.correct_answers,
            total_questions=len(results),
            game_mode=game_mode,
            source_type=source_type,
        )
    except Exception:
        logger.exception("Error submitting score for %s", user_id)

    try:
        return await progress.award_xp(user_id, username, calculate_xp_gain(stats.correct_answers))
    except Exception:
        logger.exception("Error awarding XP to %s", user_id)
        return None
