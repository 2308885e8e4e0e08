from __future__ import annotations

from unittest import IsolatedAsyncioTestCase, mock

from . import leaderboard as leaderboard_module
from .db import InMemoryDatabase
from .leaderboard import Leaderboard, record_game
from .models import GameStats, RoundResult
from .progression import ProgressStore


def make_results(correct: list[bool]) -> list[RoundResult]:
    return [
        RoundResult(
            track_name=f"Song {i}",
            artist="Artist",
            album_name="Album",
            correct=ok,
            user_answer="x",
            correct_answer="x" if ok else "y",
            question_type="lyrics",
            time_to_answer=1.5,
        )
        for i, ok in enumerate(correct)
    ]


class LeaderboardTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.database = InMemoryDatabase()
        self.board = Leaderboard(self.database)

    async def test_rejects_invalid_scores(self):
        with self.assertRaises(ValueError):
            await self.board.submit_score("u1", "Ana", score=6, total_questions=5)
        with self.assertRaises(ValueError):
            await self.board.submit_score("u1", "Ana", score=-1, total_questions=5)

    async def test_top_players_aggregates_per_user(self):
        await self.board.submit_score("u1", "Ana", 3, 5)
        await self.board.submit_score("u1", "Ana", 5, 5)
        await self.board.submit_score("u2", "Ben", 4, 5)
        await self.board.submit_score("u3", "Cy", 9, 10)

        top = await self.board.top_players()

        self.assertEqual(top["total"], 3)
        rows = top["leaderboard"]
        self.assertEqual([r["user_id"] for r in rows], ["u3", "u1", "u2"])
        self.assertEqual(rows[1]["total_score"], 8)
        self.assertEqual(rows[1]["total_games"], 2)
        self.assertEqual(rows[1]["best_score"], 5)
        self.assertEqual([r["rank"] for r in rows], [1, 2, 3])

        page = await self.board.top_players(limit=1, offset=1)
        self.assertEqual([r["user_id"] for r in page["leaderboard"]], ["u1"])

    async def test_user_stats_and_history(self):
        await self.board.submit_score("u1", "Ana", 2, 5, game_mode="survival")
        await self.board.submit_score("u1", "Ana", 4, 5, game_mode="lyrics-quiz")

        stats = await self.board.user_stats("u1")
        self.assertEqual(stats["total_games"], 2)
        self.assertEqual(stats["best_score"], 4)
        self.assertEqual(stats["average_score"], 3)

        survival = await self.board.user_stats("u1", "survival")
        self.assertEqual(survival["total_games"], 1)

        empty = await self.board.user_stats("nobody")
        self.assertEqual(empty["total_games"], 0)

        history = await self.board.user_history("u1")
        self.assertEqual(len(history), 2)


class RecordGameTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.database = InMemoryDatabase()
        self.board = Leaderboard(self.database)
        self.progress = ProgressStore(self.database)

    async def test_records_score_and_awards_xp(self):
        results = make_results([True, True, False])
        stats = GameStats(correct_answers=2, total_questions=3)

        gain = await record_game(
            results, stats, user_id="u1", username="Ana", game_mode="lyrics-quiz",
            leaderboard=self.board, progress=self.progress,
        )

        self.assertEqual(gain.xp_earned, 20)
        history = await self.board.user_history("u1")
        self.assertEqual((history[0].score, history[0].total_questions), (2, 3))

    async def test_persistence_failures_are_swallowed(self):
        stats = GameStats(correct_answers=1, total_questions=1)

        with mock.patch.object(self.board, "submit_score", side_effect=RuntimeError("db down")), mock.patch.object(
            self.progress, "award_xp", side_effect=RuntimeError("db down")
        ), self.assertLogs(leaderboard_module.logger, level="ERROR") as logs:
            gain = await record_game(
                make_results([True]), stats, user_id="u1", username="Ana", game_mode="survival",
                leaderboard=self.board, progress=self.progress,
            )

        self.assertIsNone(gain)
        self.assertEqual(len(logs.records), 2)
