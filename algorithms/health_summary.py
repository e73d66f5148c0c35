import datetime
from typing import Dict, Iterable, List

from models import HealthEntry, HealthGoal
from .date_tools import DateTools
from .math_tools import MathTools


class HealthSummary:
    """Completion statistics for health goals.

    All dates are local calendar days. Only active goals with a daily
    frequency count toward a day's completion rate.
    """

    STREAK_WINDOW_DAYS = 30

    @staticmethod
    def daily_goals(goals: Iterable[HealthGoal]) -> List[HealthGoal]:
        return [g for g in goals if g.active and g.frequency == "daily"]

    @classmethod
    def daily(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        day: datetime.date,
    ) -> dict:
        day_str = DateTools.iso_day(day)
        total = len(cls.daily_goals(goals))
        day_entries = [e for e in entries if e.date == day_str]
        completed = len([e for e in day_entries if e.completed])
        rate = MathTools.round_half_up(completed / total * 100) if total > 0 else 0
        return {
            "date": day_str,
            "total_goals": total,
            "completed_goals": completed,
            "completion_rate": rate,
            "entries": day_entries,
        }

    @classmethod
    def trailing_days(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        today: datetime.date,
        days: int = STREAK_WINDOW_DAYS,
    ) -> List[dict]:
        """Daily summaries from ``today`` backwards, newest first."""
        goals = list(goals)
        entries = list(entries)
        return [
            cls.daily(goals, entries, today - datetime.timedelta(days=i))
            for i in range(days)
        ]

    @staticmethod
    def is_perfect(summary: dict) -> bool:
        return summary["total_goals"] > 0 and summary["completion_rate"] == 100

    @classmethod
    def streaks(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        today: datetime.date,
    ) -> dict:
        days = cls.trailing_days(goals, entries, today)
        current = 0
        for summary in days:
            if not cls.is_perfect(summary):
                break
            current += 1
        longest = run = 0
        for summary in days:
            run = run + 1 if cls.is_perfect(summary) else 0
            longest = max(longest, run)
        return {"current": current, "longest": longest}

    @classmethod
    def week_average(
        cls,
        goals: List[HealthGoal],
        entries: List[HealthEntry],
        week_start: datetime.date,
    ) -> int:
        rates = [
            cls.daily(goals, entries, week_start + datetime.timedelta(days=i))[
                "completion_rate"
            ]
            for i in range(7)
        ]
        return MathTools.round_half_up(sum(rates) / 7)

    @classmethod
    def stats(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        today: datetime.date,
    ) -> dict:
        goals = list(goals)
        entries = list(entries)
        streaks = cls.streaks(goals, entries, today)
        this_week = DateTools.week_dates(today)[0]
        last_week = this_week - datetime.timedelta(days=7)
        return {
            "total_goals": len(goals),
            "active_goals": len([g for g in goals if g.active]),
            "current_streak": streaks["current"],
            "longest_streak": streaks["longest"],
            "this_week_completion": cls.week_average(goals, entries, this_week),
            "last_week_completion": cls.week_average(goals, entries, last_week),
        }

    @classmethod
    def weekly(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        today: datetime.date,
    ) -> dict:
        """Summarise the Sunday to Saturday week containing ``today``."""
        goals = list(goals)
        entries = list(entries)
        days = [cls.daily(goals, entries, d) for d in DateTools.week_dates(today)]
        return {
            "week_start": days[0]["date"],
            "week_end": days[-1]["date"],
            "days": days,
            "average_completion": MathTools.round_half_up(
                sum(d["completion_rate"] for d in days) / 7
            ),
            "total_daily_goals": sum(d["total_goals"] for d in days),
            "completed_daily_goals": sum(d["completed_goals"] for d in days),
            "perfect_days": len([d for d in days if cls.is_perfect(d)]),
            "weekly_goals": [g for g in goals if g.active and g.frequency == "weekly"],
        }

    @classmethod
    def trends(
        cls,
        goals: Iterable[HealthGoal],
        entries: Iterable[HealthEntry],
        today: datetime.date,
    ) -> dict:
        goals = list(goals)
        days = cls.trailing_days(goals, entries, today)
        recent = sum(d["completion_rate"] for d in days[:7]) / 7
        previous = sum(d["completion_rate"] for d in days[7:14]) / 7
        perfect = len([d for d in days if cls.is_perfect(d)])
        active = len([d for d in days if d["total_goals"] > 0])
        by_type: Dict[str, Dict[str, int]] = {}
        for goal in goals:
            counts = by_type.setdefault(goal.type, {"total": 0, "active": 0})
            counts["total"] += 1
            if goal.active:
                counts["active"] += 1
        return {
            "recent_week_average": MathTools.round_half_up(recent),
            "previous_week_average": MathTools.round_half_up(previous),
            "week_over_week_change": MathTools.round_half_up(recent - previous),
            "perfect_days": perfect,
            "active_days": active,
            "consistency": MathTools.round_half_up(perfect / active * 100) if active else 0,
            "goals_by_type": by_type,
        }
