import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from algorithms import DateTools, MathTools
from db import AsyncWorkoutRepository, LocalStorageRepository
from models import (
    Exercise,
    Workout,
    WorkoutExercise,
    WorkoutSet,
    WorkoutSummary,
)
from store_base import ACTIVE_WORKOUT_KEY, WORKOUT_DATA_KEY, Clock, LocalFirstStore

PLACEHOLDER_DURATION = 1800


class WorkoutStore(LocalFirstStore):
    """Owns the active workout and the history of completed and planned workouts.

    Mutations whose precondition does not hold are ignored and return ``None``
    or ``False``. The active workout is cached locally after every change.
    History lives in the local cache unless a remote repository and a user id
    are configured.
    """

    def __init__(
        self,
        local: LocalStorageRepository,
        remote: Optional[AsyncWorkoutRepository] = None,
        user_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(local, user_id if remote is not None else None, clock)
        self.remote = remote
        self._active: Optional[Workout] = None
        self._history: List[Workout] = []
        self._summary = WorkoutSummary()

    # ------------------------------------------------------------------
    # loading and persistence
    # ------------------------------------------------------------------
    async def load(self) -> None:
        raw_active = self.local.get_json(ACTIVE_WORKOUT_KEY)
        self._active = Workout.model_validate(raw_active) if raw_active else None
        if self.remote_enabled:
            try:
                history = await self.remote.fetch_for_user(self.user_id)
            except Exception:
                logger.exception("Failed to load workouts for {}", self.user_id)
                history = []
        else:
            data = self.local.get_json(WORKOUT_DATA_KEY, {}) or {}
            history = [Workout.model_validate(w) for w in data.get("workouts", [])]
        self._set_history(history)
        logger.debug("Loaded {} workouts", len(history))

    def _set_active(self, workout: Optional[Workout]) -> None:
        self._active = workout
        if workout is None:
            self.local.remove_item(ACTIVE_WORKOUT_KEY)
        else:
            self.local.set_json(ACTIVE_WORKOUT_KEY, workout.model_dump())

    def _set_history(self, workouts: List[Workout]) -> None:
        self._history = workouts
        self._summary = self.summarize(workouts, self.clock())

    def _save_local_history(self) -> None:
        self.local.set_json(
            WORKOUT_DATA_KEY, {"workouts": [w.model_dump() for w in self._history]}
        )

    def _persist(self, workout: Workout) -> None:
        if self.remote_enabled:
            self._dispatch("workout save", self.remote.save(self.user_id, workout))
        else:
            self._save_local_history()

    def _persist_removal(self, workout_id: str) -> None:
        if self.remote_enabled:
            self._dispatch("workout delete", self.remote.delete(workout_id))
        else:
            self._save_local_history()

    # ------------------------------------------------------------------
    # read views
    # ------------------------------------------------------------------
    @property
    def active_workout(self) -> Optional[Workout]:
        return self._active

    @property
    def workouts(self) -> List[Workout]:
        return list(self._history)

    @property
    def summary(self) -> WorkoutSummary:
        return self._summary

    def refresh_summary(self) -> WorkoutSummary:
        """Recompute the summary against the current clock."""
        self._summary = self.summarize(self._history, self.clock())
        return self._summary

    def get_workout(self, workout_id: str) -> Optional[Workout]:
        for w in self._history:
            if w.id == workout_id:
                return w
        return None

    def get_workouts_by_date(
        self, day: Union[str, datetime.date, datetime.datetime]
    ) -> List[Workout]:
        """Workouts in history whose date falls on the local calendar ``day``."""
        target = DateTools.local_date(day)
        return [w for w in self._history if DateTools.same_day(w.date, target)]

    def get_exercise_history(self, exercise_id: str) -> List[Workout]:
        """Completed workouts containing ``exercise_id``, newest first."""
        found = [
            w
            for w in self._history
            if w.completed and any(ex.exercise.id == exercise_id for ex in w.exercises)
        ]
        return sorted(found, key=lambda w: DateTools.parse_timestamp(w.date), reverse=True)

    @staticmethod
    def summarize(workouts: List[Workout], now: datetime.datetime) -> WorkoutSummary:
        if not workouts:
            return WorkoutSummary()
        week_start = DateTools.start_of_week(now)
        completed = [w for w in workouts if w.completed]
        this_week = [
            w for w in completed if DateTools.parse_timestamp(w.date) >= week_start
        ]
        frequency: Dict[str, int] = {}
        for w in workouts:
            for ex in w.exercises:
                frequency[ex.exercise.name] = frequency.get(ex.exercise.name, 0) + 1
        favorite = None
        best = 0
        for name, count in frequency.items():
            if count > best:
                favorite, best = name, count
        return WorkoutSummary(
            total_workouts=len(completed),
            this_week_workouts=len(this_week),
            total_duration=sum(w.duration or 0 for w in completed),
            favorite_exercise=favorite,
        )

    # ------------------------------------------------------------------
    # active workout
    # ------------------------------------------------------------------
    def start_workout(self, name: str) -> Workout:
        if self._active is not None:
            logger.info("Discarding unsaved workout {}", self._active.name)
        workout = Workout(name=name, date=self.clock().isoformat())
        self._set_active(workout)
        return workout

    def add_exercise_to_workout(self, exercise: Exercise) -> Optional[WorkoutExercise]:
        if self._active is None:
            logger.debug("No active workout; ignoring add exercise")
            return None
        entry = WorkoutExercise(
            exercise=exercise, sets=[WorkoutSet(exercise_id=exercise.id)]
        )
        self._set_active(
            self._active.model_copy(
                update={"exercises": self._active.exercises + [entry]}
            )
        )
        return entry

    def remove_exercise_from_workout(self, workout_exercise_id: str) -> bool:
        if self._active is None:
            return False
        remaining = [ex for ex in self._active.exercises if ex.id != workout_exercise_id]
        if len(remaining) == len(self._active.exercises):
            return False
        self._set_active(self._active.model_copy(update={"exercises": remaining}))
        return True

    def _find_active_exercise(self, workout_exercise_id: str) -> Optional[WorkoutExercise]:
        if self._active is None:
            return None
        for ex in self._active.exercises:
            if ex.id == workout_exercise_id:
                return ex
        return None

    def _replace_sets(
        self,
        workout_exercise_id: str,
        change: Callable[[WorkoutExercise], Optional[List[WorkoutSet]]],
    ) -> bool:
        target = self._find_active_exercise(workout_exercise_id)
        if target is None:
            logger.debug("Exercise {} not in active workout", workout_exercise_id)
            return False
        sets = change(target)
        if sets is None:
            return False
        exercises = [
            ex.model_copy(update={"sets": sets}) if ex.id == workout_exercise_id else ex
            for ex in self._active.exercises
        ]
        self._set_active(self._active.model_copy(update={"exercises": exercises}))
        return True

    def add_set_to_exercise(self, workout_exercise_id: str) -> bool:
        return self._replace_sets(
            workout_exercise_id,
            lambda ex: ex.sets + [WorkoutSet(exercise_id=ex.exercise.id)],
        )

    def duplicate_last_set(self, workout_exercise_id: str) -> bool:
        def change(ex: WorkoutExercise) -> Optional[List[WorkoutSet]]:
            if not ex.sets:
                return None
            last = ex.sets[-1]
            return ex.sets + [
                WorkoutSet(exercise_id=ex.exercise.id, weight=last.weight, reps=last.reps)
            ]

        return self._replace_sets(workout_exercise_id, change)

    def remove_set_from_exercise(self, workout_exercise_id: str, set_id: str) -> bool:
        def change(ex: WorkoutExercise) -> Optional[List[WorkoutSet]]:
            if len(ex.sets) <= 1:
                logger.debug("Refusing to remove the only set of {}", ex.id)
                return None
            remaining = [s for s in ex.sets if s.id != set_id]
            return remaining if len(remaining) != len(ex.sets) else None

        return self._replace_sets(workout_exercise_id, change)

    def update_set(self, workout_exercise_id: str, set_id: str, **fields: Any) -> bool:
        """Merge ``fields`` into a set of the active workout.

        A missing exercise or set is ignored like any other unmet precondition.
        Field names outside ``WorkoutSet`` are a caller error and raise
        ``ValueError``; the REST layer reports them as a 400.
        """
        fields.pop("id", None)
        unknown = set(fields) - set(WorkoutSet.model_fields)
        if unknown:
            raise ValueError(f"unknown set fields: {', '.join(sorted(unknown))}")

        def change(ex: WorkoutExercise) -> Optional[List[WorkoutSet]]:
            if not any(s.id == set_id for s in ex.sets):
                return None
            return [
                WorkoutSet.model_validate({**s.model_dump(), **fields})
                if s.id == set_id
                else s
                for s in ex.sets
            ]

        return self._replace_sets(workout_exercise_id, change)

    def reorder_sets(self, workout_exercise_id: str, sets: List[WorkoutSet]) -> bool:
        """Replace the set order; ``sets`` must hold exactly the exercise's current sets."""

        def change(ex: WorkoutExercise) -> Optional[List[WorkoutSet]]:
            if sorted(s.id for s in sets) != sorted(s.id for s in ex.sets):
                logger.debug("Set order for {} does not match its sets", ex.id)
                return None
            return list(sets)

        return self._replace_sets(workout_exercise_id, change)

    def reorder_exercises(self, exercises: List[WorkoutExercise]) -> bool:
        if self._active is None:
            return False
        self._set_active(self._active.model_copy(update={"exercises": list(exercises)}))
        return True

    def update_exercise_notes(self, workout_exercise_id: str, notes: Optional[str]) -> bool:
        """Set notes on every exercise with this id, in the active workout and in history."""

        def contains(workout: Workout) -> bool:
            return any(ex.id == workout_exercise_id for ex in workout.exercises)

        def annotate(workout: Workout) -> Workout:
            if not contains(workout):
                return workout
            return workout.model_copy(
                update={
                    "exercises": [
                        ex.model_copy(update={"notes": notes})
                        if ex.id == workout_exercise_id
                        else ex
                        for ex in workout.exercises
                    ]
                }
            )

        in_active = self._active is not None and contains(self._active)
        if in_active:
            self._set_active(annotate(self._active))
        in_history = any(contains(w) for w in self._history)
        if in_history:
            self._set_history([annotate(w) for w in self._history])
            if self.remote_enabled:
                self._dispatch(
                    "exercise notes update",
                    self.remote.update_exercise_notes(workout_exercise_id, notes),
                )
            else:
                self._save_local_history()
        return in_active or in_history

    def complete_workout(self) -> Optional[Workout]:
        """Move the active workout into history and return the completed copy."""
        if self._active is None:
            return None
        exercises = []
        for ex in self._active.exercises:
            sets = [
                s.model_copy(update={"completed": True})
                if not s.completed
                and MathTools.as_number(s.weight) > 0
                and MathTools.as_number(s.reps) > 0
                else s
                for s in ex.sets
            ]
            exercises.append(ex.model_copy(update={"sets": sets}))
        done = self._active.model_copy(
            update={
                "exercises": exercises,
                "completed": True,
                "duration": PLACEHOLDER_DURATION,
            }
        )
        self._set_history(self._history + [done])
        self._set_active(None)
        self._persist(done)
        logger.info("Completed workout {}", done.name)
        return done

    def cancel_workout(self) -> None:
        self._set_active(None)

    # ------------------------------------------------------------------
    # planned workouts
    # ------------------------------------------------------------------
    def create_planned_workout(
        self, name: str, date: Union[str, datetime.date, datetime.datetime]
    ) -> Workout:
        if not isinstance(date, str):
            date = date.isoformat()
        workout = Workout(name=name, date=date, planned=True)
        self._set_history(self._history + [workout])
        self._persist(workout)
        return workout

    def update_planned_workout(self, workout_id: str, **fields: Any) -> Optional[Workout]:
        current = self.get_workout(workout_id)
        if current is None:
            logger.debug("Planned workout {} not found", workout_id)
            return None
        fields.pop("id", None)
        updated = Workout.model_validate({**current.model_dump(), **fields})
        self._set_history([updated if w.id == workout_id else w for w in self._history])
        self._persist(updated)
        return updated

    def delete_planned_workout(self, workout_id: str) -> bool:
        current = self.get_workout(workout_id)
        if current is None or not current.planned:
            return False
        return self.delete_workout(workout_id)

    def delete_workout(self, workout_id: str) -> bool:
        if self.get_workout(workout_id) is None:
            return False
        self._set_history([w for w in self._history if w.id != workout_id])
        self._persist_removal(workout_id)
        return True

    def start_planned_workout(self, planned: Workout) -> Optional[Workout]:
        """Begin a new active workout seeded from ``planned``.

        Each planned exercise gets one set per previous-set snapshot, or a
        single empty set. The template itself stays in history.
        """
        if not planned.planned_exercises:
            return None
        exercises = []
        for pe in planned.planned_exercises:
            exercise = Exercise(
                id=pe.id,
                name=pe.name,
                type=pe.type,
                muscle_groups=list(pe.muscle_groups),
                instructions=pe.instructions,
            )
            if pe.previous_sets:
                sets = [
                    WorkoutSet(exercise_id=pe.id, weight=ps.weight, reps=ps.reps)
                    for ps in pe.previous_sets
                ]
            else:
                sets = [WorkoutSet(exercise_id=pe.id)]
            exercises.append(WorkoutExercise(exercise=exercise, sets=sets))
        workout = Workout(
            name=planned.name, exercises=exercises, date=self.clock().isoformat()
        )
        self._set_active(workout)
        return workout
