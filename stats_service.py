from __future__ import annotations
import datetime
from typing import Dict, List, Optional

from algorithms import DateTools, MathTools, WeeklyRecap, WorkoutRecap
from health_store import HealthStore
from models import WorkoutSummary
from store_base import Clock
from workout_store import WorkoutStore


class StatisticsService:
    """Compute workout statistics from the current store snapshot."""

    def __init__(
        self,
        store: WorkoutStore,
        health_store: HealthStore | None = None,
        clock: Optional[Clock] = None,
        weight_unit: str = "lbs",
    ) -> None:
        self.store = store
        self.health = health_store
        self.clock: Clock = clock or store.clock
        self.weight_unit = weight_unit

    def summary(self) -> WorkoutSummary:
        return self.store.refresh_summary()

    def weekly_recap(self, now: datetime.datetime | None = None) -> Dict:
        return WeeklyRecap.compute(self.store.workouts, now or self.clock())

    def workout_recap(self, workout_id: str) -> Dict:
        """Return the recap for ``workout_id`` against earlier history."""
        workout = self.store.get_workout(workout_id)
        if workout is None:
            raise ValueError("workout not found")
        return WorkoutRecap.compute(workout, self.store.workouts, self.weight_unit)

    def latest_recap(self) -> Optional[Dict]:
        completed = [w for w in self.store.workouts if w.completed]
        if not completed:
            return None
        latest = max(completed, key=lambda w: DateTools.parse_timestamp(w.date))
        return self.workout_recap(latest.id)

    def progress_streak(self) -> Dict[str, int]:
        return WorkoutRecap.progress_streak(self.store.workouts)

    def exercise_history(self, exercise_id: str) -> List[Dict]:
        """Per-workout bests for one exercise, newest first."""
        result = []
        for workout in self.store.get_exercise_history(exercise_id):
            for ex in workout.exercises:
                if ex.exercise.id != exercise_id:
                    continue
                result.append(
                    {
                        "workout_id": workout.id,
                        "workout_name": workout.name,
                        "date": workout.date,
                        "max_weight": MathTools.max_weight(ex.sets),
                        "max_reps": MathTools.max_reps(ex.sets),
                        "volume": MathTools.volume(ex.sets),
                        "sets": len(MathTools.completed_sets(ex.sets)),
                        "notes": ex.notes,
                    }
                )
        return result

    def overview(self) -> Dict:
        """Dashboard figures: summary, weekly recap and health stats when available."""
        data = {
            "summary": self.summary().model_dump(),
            "weekly_recap": self.weekly_recap(),
        }
        if self.health is not None:
            data["health"] = self.health.stats()
        return data
