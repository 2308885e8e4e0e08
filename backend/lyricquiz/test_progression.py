from __future__ import annotations

from unittest import IsolatedAsyncioTestCase, TestCase

from .db import InMemoryDatabase
from .progression import (
    ProgressStore,
    add_xp,
    calculate_xp_gain,
    current_level_xp,
    level_from_total_xp,
    level_info,
    progress_fraction,
    total_xp_for_level,
    xp_for_level,
)


class LevelCurveTests(TestCase):
    def test_level_costs(self):
        self.assertEqual(xp_for_level(1), 0)
        self.assertEqual(xp_for_level(0), 0)
        self.assertEqual(xp_for_level(2), 100)
        self.assertEqual(xp_for_level(3), 120)
        self.assertEqual(xp_for_level(4), 144)
        self.assertEqual(total_xp_for_level(1), 0)
        self.assertEqual(total_xp_for_level(3), 220)

    def test_level_from_total_xp(self):
        self.assertEqual(level_from_total_xp(0), 1)
        self.assertEqual(level_from_total_xp(99), 1)
        self.assertEqual(level_from_total_xp(100), 2)
        self.assertEqual(level_from_total_xp(219), 2)
        self.assertEqual(level_from_total_xp(220), 3)

    def test_level_is_consistent_with_totals(self):
        for total in range(0, 3000, 7):
            level = level_from_total_xp(total)
            self.assertLessEqual(total_xp_for_level(level), total)
            self.assertGreater(total_xp_for_level(level + 1), total)
            self.assertEqual(current_level_xp(total), total - total_xp_for_level(level))

    def test_xp_gain(self):
        self.assertEqual(calculate_xp_gain(0), 0)
        self.assertEqual(calculate_xp_gain(7), 70)

    def test_add_xp_levels_up(self):
        gain = add_xp(0, 220)

        self.assertEqual(gain.new_total_xp, 220)
        self.assertEqual(gain.old_level, 1)
        self.assertEqual(gain.new_level, 3)
        self.assertTrue(gain.leveled_up)

    def test_add_xp_without_level_change(self):
        gain = add_xp(100, 10)

        self.assertEqual(gain.new_level, 2)
        self.assertFalse(gain.leveled_up)

    def test_progress_fraction(self):
        self.assertEqual(progress_fraction(0), 0.0)
        self.assertAlmostEqual(progress_fraction(50), 0.5)
        self.assertAlmostEqual(progress_fraction(160), 0.5)

        info = level_info(160)
        self.assertEqual(info.current_level, 2)
        self.assertEqual(info.current_xp, 60)
        self.assertEqual(info.xp_for_next_level, 120)


class ProgressStoreTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = ProgressStore(InMemoryDatabase())

    async def test_new_player_starts_at_level_one(self):
        progress = await self.store.get_or_create("u1", "Ana")

        self.assertEqual((progress.level, progress.current_xp, progress.total_xp), (1, 0, 0))

    async def test_award_xp_keeps_level_in_sync_with_total(self):
        await self.store.award_xp("u1", "Ana", 90)
        gain = await self.store.award_xp("u1", "Ana R.", 140)
        progress = await self.store.get_or_create("u1", "ignored")

        self.assertEqual(gain.old_level, 1)
        self.assertEqual(gain.new_level, 3)
        self.assertEqual(progress.total_xp, 230)
        self.assertEqual(progress.level, 3)
        self.assertEqual(progress.current_xp, 10)
        self.assertEqual(progress.username, "Ana R.")

    async def test_rankings(self):
        await self.store.award_xp("a", "A", 50)
        await self.store.award_xp("b", "B", 500)
        await self.store.award_xp("c", "C", 130)

        self.assertEqual([p.user_id for p in await self.store.top_by_xp()], ["b", "c", "a"])
        self.assertEqual([p.user_id for p in await self.store.top_by_level(limit=2)], ["b", "c"])
