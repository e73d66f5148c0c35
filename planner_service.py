from __future__ import annotations
import datetime
from typing import List, Optional

from loguru import logger

from algorithms import DateTools, MathTools
from exercise_catalog import ExerciseCatalog
from models import PlannedExercise, PreviousSet, Workout
from workout_store import WorkoutStore


class PlannerService:
    """Handles planned workouts: scheduling, filling and starting them."""

    def __init__(self, store: WorkoutStore, catalog: ExerciseCatalog) -> None:
        self.store = store
        self.catalog = catalog

    def _plan(self, plan_id: str) -> Workout:
        plan = self.store.get_workout(plan_id)
        if plan is None or not plan.planned:
            raise ValueError("planned workout not found")
        return plan

    def planned_workouts(self) -> List[Workout]:
        plans = [w for w in self.store.workouts if w.planned]
        return sorted(plans, key=lambda w: DateTools.parse_timestamp(w.date))

    def week_days(self, day: datetime.date | None = None) -> List[dict]:
        """Return the Sunday to Saturday week around ``day`` with each day's workouts."""
        day = day or self.store.clock().date()
        return [
            {"date": DateTools.iso_day(d), "workouts": self.store.get_workouts_by_date(d)}
            for d in DateTools.week_dates(day)
        ]

    def create_plan(self, name: str, date: str) -> Workout:
        return self.store.create_planned_workout(name, date)

    def previous_sets(self, exercise_name: str) -> List[PreviousSet]:
        """Snapshot the completed sets from the latest workout that did ``exercise_name``."""
        history = sorted(
            (w for w in self.store.workouts if w.completed),
            key=lambda w: DateTools.parse_timestamp(w.date),
            reverse=True,
        )
        for workout in history:
            for ex in workout.exercises:
                if ex.exercise.name != exercise_name:
                    continue
                return [
                    PreviousSet(
                        weight=MathTools.as_number(s.weight) or None,
                        reps=MathTools.as_number(s.reps) or None,
                    )
                    for s in MathTools.completed_sets(ex.sets)
                ]
        return []

    def plan_exercise(self, plan_id: str, exercise_id: str) -> Optional[Workout]:
        """Append a catalog exercise to a plan; an exercise already planned is ignored."""
        plan = self._plan(plan_id)
        exercise = self.catalog.get(exercise_id)
        if exercise is None:
            raise ValueError("exercise not found")
        if any(pe.id == exercise_id for pe in plan.planned_exercises):
            logger.debug("{} already planned in {}", exercise.name, plan_id)
            return None
        previous = self.previous_sets(exercise.name)
        weights = [p.weight for p in previous if p.weight]
        reps = [p.reps for p in previous if p.reps]
        planned = PlannedExercise(
            **exercise.model_dump(),
            reference_weight=max(weights) if weights else None,
            reference_reps=max(reps) if reps else None,
            previous_sets=previous,
        )
        return self.store.update_planned_workout(
            plan_id, planned_exercises=plan.planned_exercises + [planned]
        )

    def remove_planned_exercise(self, plan_id: str, exercise_id: str) -> Workout:
        plan = self._plan(plan_id)
        remaining = [pe for pe in plan.planned_exercises if pe.id != exercise_id]
        return self.store.update_planned_workout(plan_id, planned_exercises=remaining)

    def reorder_planned_exercises(self, plan_id: str, exercise_ids: List[str]) -> Workout:
        plan = self._plan(plan_id)
        by_id = {pe.id: pe for pe in plan.planned_exercises}
        if sorted(exercise_ids) != sorted(by_id):
            raise ValueError("exercise ids must match the planned exercises")
        return self.store.update_planned_workout(
            plan_id, planned_exercises=[by_id[i] for i in exercise_ids]
        )

    def duplicate_plan(self, plan_id: str, new_date: str) -> Workout:
        plan = self._plan(plan_id)
        copy = self.store.create_planned_workout(plan.name, new_date)
        return self.store.update_planned_workout(
            copy.id,
            notes=plan.notes,
            planned_exercises=[pe.model_copy(deep=True) for pe in plan.planned_exercises],
        )

    def start_plan(self, plan_id: str) -> Optional[Workout]:
        return self.store.start_planned_workout(self._plan(plan_id))
