import datetime
from typing import Dict, Iterable, List

from models import Workout
from .date_tools import DateTools
from .math_tools import MathTools


class WeeklyRecap:
    """Compare the trailing seven days of training with the seven days before."""

    IMPROVED_LIMIT = 5
    MUSCLE_GROUP_LIMIT = 6

    @staticmethod
    def windows(now: datetime.datetime) -> tuple[datetime.datetime, datetime.datetime]:
        """Return the start of this week's and last week's windows."""
        this_start = DateTools.start_of_day(now - datetime.timedelta(days=7))
        return this_start, this_start - datetime.timedelta(days=7)

    @classmethod
    def partition(
        cls, workouts: Iterable[Workout], now: datetime.datetime
    ) -> tuple[List[Workout], List[Workout]]:
        this_start, last_start = cls.windows(now)
        this_week: List[Workout] = []
        last_week: List[Workout] = []
        for w in workouts:
            if not w.completed:
                continue
            when = DateTools.parse_timestamp(w.date)
            if this_start <= when <= now:
                this_week.append(w)
            elif last_start <= when < this_start:
                last_week.append(w)
        return this_week, last_week

    @staticmethod
    def _volume(workouts: Iterable[Workout]) -> float:
        return sum(
            MathTools.exercise_volume(ex) for w in workouts for ex in w.exercises
        )

    @classmethod
    def muscle_groups(
        cls, this_week: List[Workout], last_week: List[Workout]
    ) -> List[dict]:
        counts: Dict[str, Dict[str, int]] = {}
        for key, group in (("current", this_week), ("previous", last_week)):
            for w in group:
                for ex in w.exercises:
                    done = len(MathTools.completed_sets(ex.sets))
                    for muscle in ex.exercise.muscle_groups:
                        entry = counts.setdefault(muscle, {"current": 0, "previous": 0})
                        entry[key] += done
        stats = [
            {
                "name": name,
                "current_sets": c["current"],
                "previous_sets": c["previous"],
                "change": c["current"] - c["previous"],
                "change_percent": MathTools.percent_change(c["current"], c["previous"]),
            }
            for name, c in counts.items()
        ]
        return sorted(stats, key=lambda m: m["current_sets"], reverse=True)

    @classmethod
    def exercise_progress(
        cls, this_week: List[Workout], last_week: List[Workout]
    ) -> List[dict]:
        maxima: Dict[str, Dict[str, float]] = {}
        for prefix, group in (("current", this_week), ("previous", last_week)):
            for w in group:
                for ex in w.exercises:
                    data = maxima.setdefault(
                        ex.exercise.name,
                        {
                            "current_weight": 0,
                            "current_reps": 0,
                            "previous_weight": 0,
                            "previous_reps": 0,
                        },
                    )
                    data[f"{prefix}_weight"] = max(
                        data[f"{prefix}_weight"], MathTools.max_weight(ex.sets)
                    )
                    data[f"{prefix}_reps"] = max(
                        data[f"{prefix}_reps"], MathTools.max_reps(ex.sets)
                    )

        progress = []
        for name, d in maxima.items():
            if d["current_weight"] <= 0 and d["previous_weight"] <= 0:
                continue
            weight_up = d["current_weight"] > d["previous_weight"] > 0
            reps_up = d["current_reps"] > d["previous_reps"] > 0
            if weight_up and reps_up:
                kind = "both"
            elif weight_up:
                kind = "weight"
            elif reps_up:
                kind = "reps"
            else:
                kind = "none"
            progress.append(
                {
                    "name": name,
                    "current_max_weight": d["current_weight"],
                    "previous_max_weight": d["previous_weight"],
                    "current_max_reps": d["current_reps"],
                    "previous_max_reps": d["previous_reps"],
                    "improved": weight_up or reps_up,
                    "improvement_type": kind,
                }
            )
        return progress

    @classmethod
    def compute(cls, workouts: Iterable[Workout], now: datetime.datetime) -> dict:
        this_week, last_week = cls.partition(workouts, now)
        this_volume = cls._volume(this_week)
        last_volume = cls._volume(last_week)
        progress = cls.exercise_progress(this_week, last_week)
        improved = [p for p in progress if p["improved"]]
        return {
            "this_week_workouts": len(this_week),
            "last_week_workouts": len(last_week),
            "this_week_volume": this_volume,
            "last_week_volume": last_volume,
            "volume_change": MathTools.percent_change(this_volume, last_volume),
            "improved_exercises": improved[: cls.IMPROVED_LIMIT],
            "progress_count": len(improved),
            "total_exercises": len(progress),
            "muscle_groups": cls.muscle_groups(this_week, last_week)[
                : cls.MUSCLE_GROUP_LIMIT
            ],
        }
