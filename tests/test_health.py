import os
import sys
import asyncio
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import HealthSummary
from db import LocalStorageRepository
from health_store import HealthStore
from models import HealthEntry, HealthGoal

NOW = datetime.datetime(2024, 5, 15, 20, 0)


class HealthStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.local_path = "test_health_local.db"
        if os.path.exists(self.local_path):
            os.remove(self.local_path)
        self.store = HealthStore(LocalStorageRepository(self.local_path), clock=lambda: NOW)

    def tearDown(self) -> None:
        if os.path.exists(self.local_path):
            os.remove(self.local_path)

    def test_create_goal_defaults(self) -> None:
        goal = self.store.create_goal("Creatine", type="supplement", target=5, unit="g")
        self.assertTrue(goal.active)
        self.assertEqual(goal.frequency, "daily")
        self.assertEqual(goal.created_at, NOW.isoformat())
        self.assertEqual(self.store.goals, [goal])

    def test_invalid_goal_type_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.store.create_goal("Nap", type="napping")

    def test_daily_completion_rate(self) -> None:
        water = self.store.create_goal("Water", type="hydration")
        self.store.create_goal("Sleep 8h", type="sleep")
        self.store.mark_goal_complete(water.id, "2024-05-15")
        summary = self.store.daily_summary("2024-05-15")
        self.assertEqual(summary["total_goals"], 2)
        self.assertEqual(summary["completed_goals"], 1)
        self.assertEqual(summary["completion_rate"], 50)
        self.assertEqual(self.store.daily_summary()["date"], "2024-05-15")

    def test_daily_rate_without_goals(self) -> None:
        summary = self.store.daily_summary("2024-05-15")
        self.assertEqual(summary["total_goals"], 0)
        self.assertEqual(summary["completion_rate"], 0)

    def test_inactive_and_weekly_goals_do_not_count(self) -> None:
        daily = self.store.create_goal("Water", type="hydration")
        self.store.create_goal("Long run", type="activity", frequency="weekly")
        paused = self.store.create_goal("Vitamin D", type="supplement")
        self.store.toggle_goal_active(paused.id)
        self.store.mark_goal_complete(daily.id, "2024-05-15")
        self.assertEqual(self.store.daily_summary("2024-05-15")["completion_rate"], 100)
        self.assertEqual(len(self.store.active_goals_by_frequency("weekly")), 1)
        self.assertFalse(self.store.get_goal(paused.id).active)

    def test_mark_complete_upserts_entry(self) -> None:
        goal = self.store.create_goal("Water", type="hydration", target=3, unit="L")
        first = self.store.mark_goal_complete(goal.id, "2024-05-15", value=2)
        second = self.store.mark_goal_complete(goal.id, "2024-05-15", value=3, notes="done")
        self.assertEqual(first.id, second.id)
        entries = self.store.entries_for_date("2024-05-15")
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].value, 3)
        self.assertEqual(entries[0].notes, "done")
        self.assertEqual(entries[0].completed_at, NOW.isoformat())

    def test_mark_complete_for_missing_goal(self) -> None:
        self.assertIsNone(self.store.mark_goal_complete("missing", "2024-05-15"))
        self.assertEqual(self.store.entries, [])

    def test_mark_incomplete(self) -> None:
        goal = self.store.create_goal("Water")
        self.assertIsNone(self.store.mark_goal_incomplete(goal.id, "2024-05-15"))
        self.store.mark_goal_complete(goal.id, "2024-05-15")
        entry = self.store.mark_goal_incomplete(goal.id, "2024-05-15")
        self.assertFalse(entry.completed)
        self.assertIsNone(entry.completed_at)
        self.assertEqual(self.store.daily_summary("2024-05-15")["completed_goals"], 0)

    def test_update_entry_keeps_goal_and_date(self) -> None:
        goal = self.store.create_goal("Water")
        entry = self.store.mark_goal_complete(goal.id, "2024-05-15")
        updated = self.store.update_entry(entry.id, notes="late", date="2024-01-01")
        self.assertEqual(updated.notes, "late")
        self.assertEqual(updated.date, "2024-05-15")
        self.assertIsNone(self.store.update_entry("missing", notes="x"))

    def test_delete_goal_removes_entries(self) -> None:
        goal = self.store.create_goal("Water")
        other = self.store.create_goal("Sleep")
        self.store.mark_goal_complete(goal.id, "2024-05-14")
        self.store.mark_goal_complete(goal.id, "2024-05-15")
        self.store.mark_goal_complete(other.id, "2024-05-15")
        self.assertTrue(self.store.delete_goal(goal.id))
        self.assertEqual([e.goal_id for e in self.store.entries], [other.id])
        self.assertFalse(self.store.delete_goal(goal.id))

    def test_update_goal(self) -> None:
        goal = self.store.create_goal("Water")
        updated = self.store.update_goal(goal.id, target=4, unit="L")
        self.assertEqual((updated.target, updated.unit), (4, "L"))
        self.assertEqual(updated.id, goal.id)
        self.assertIsNone(self.store.update_goal("missing", target=1))

    def test_state_survives_reload(self) -> None:
        goal = self.store.create_goal("Water")
        self.store.mark_goal_complete(goal.id, "2024-05-15")
        reloaded = HealthStore(LocalStorageRepository(self.local_path), clock=lambda: NOW)
        asyncio.run(reloaded.load())
        self.assertEqual(reloaded.goals, self.store.goals)
        self.assertEqual(reloaded.entries, self.store.entries)

    def test_stats(self) -> None:
        goal = self.store.create_goal("Water")
        paused = self.store.create_goal("Stretch")
        self.store.toggle_goal_active(paused.id)
        for day in ("2024-05-13", "2024-05-14", "2024-05-15"):
            self.store.mark_goal_complete(goal.id, day)
        stats = self.store.stats()
        self.assertEqual(stats["total_goals"], 2)
        self.assertEqual(stats["active_goals"], 1)
        self.assertEqual(stats["current_streak"], 3)
        self.assertEqual(stats["longest_streak"], 3)
        self.assertEqual(stats["this_week_completion"], 43)
        self.assertEqual(stats["last_week_completion"], 0)


class HealthSummaryTest(unittest.TestCase):
    TODAY = datetime.date(2024, 5, 15)

    def setUp(self) -> None:
        self.goal = HealthGoal(id="g1", name="Water", type="hydration")

    def _entries(self, days):
        return [
            HealthEntry(goal_id="g1", date=f"2024-05-{day:02d}", completed=True)
            for day in days
        ]

    def test_streaks(self) -> None:
        entries = self._entries([15, 14, 13, 10, 9, 8, 7])
        self.assertEqual(
            HealthSummary.streaks([self.goal], entries, self.TODAY),
            {"current": 3, "longest": 4},
        )

    def test_streak_broken_today(self) -> None:
        entries = self._entries([14, 13])
        self.assertEqual(
            HealthSummary.streaks([self.goal], entries, self.TODAY),
            {"current": 0, "longest": 2},
        )

    def test_incomplete_entries_do_not_count(self) -> None:
        entries = [HealthEntry(goal_id="g1", date="2024-05-15", completed=False)]
        summary = HealthSummary.daily([self.goal], entries, self.TODAY)
        self.assertEqual(summary["completed_goals"], 0)
        self.assertEqual(len(summary["entries"]), 1)

    def test_weekly(self) -> None:
        weekly_goal = HealthGoal(name="Long run", type="activity", frequency="weekly")
        entries = self._entries([12, 13, 15, 19])
        weekly = HealthSummary.weekly([self.goal, weekly_goal], entries, self.TODAY)
        self.assertEqual(weekly["week_start"], "2024-05-12")
        self.assertEqual(weekly["week_end"], "2024-05-18")
        self.assertEqual(len(weekly["days"]), 7)
        self.assertEqual(weekly["perfect_days"], 3)
        self.assertEqual(weekly["total_daily_goals"], 7)
        self.assertEqual(weekly["completed_daily_goals"], 3)
        self.assertEqual(weekly["average_completion"], 43)
        self.assertEqual(weekly["weekly_goals"], [weekly_goal])

    def test_trends(self) -> None:
        sleep = HealthGoal(name="Sleep", type="sleep", active=False)
        entries = self._entries([15, 14, 13, 12, 11, 10, 9, 1])
        trends = HealthSummary.trends([self.goal, sleep], entries, self.TODAY)
        self.assertEqual(trends["recent_week_average"], 100)
        self.assertEqual(trends["previous_week_average"], 0)
        self.assertEqual(trends["week_over_week_change"], 100)
        self.assertEqual(trends["perfect_days"], 8)
        self.assertEqual(trends["active_days"], 30)
        self.assertEqual(trends["consistency"], 27)
        self.assertEqual(
            trends["goals_by_type"],
            {"hydration": {"total": 1, "active": 1}, "sleep": {"total": 1, "active": 0}},
        )

    def test_trends_without_goals(self) -> None:
        trends = HealthSummary.trends([], [], self.TODAY)
        self.assertEqual(trends["consistency"], 0)
        self.assertEqual(trends["active_days"], 0)
        self.assertEqual(trends["goals_by_type"], {})


if __name__ == "__main__":
    unittest.main()
