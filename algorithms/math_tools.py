import math
from typing import Any, Iterable

from models import WorkoutExercise, WorkoutSet


class MathTools:
    """Provides essential numeric utilities for workout calculations."""

    @staticmethod
    def as_number(value: Any) -> float:
        """Return ``value`` as a number, treating absent or non-numeric input as 0."""
        if value is None or isinstance(value, bool):
            return 0
        if isinstance(value, (int, float)):
            return 0 if math.isnan(value) else value
        if isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                return 0
            if math.isnan(number) or math.isinf(number):
                return 0
            return int(number) if number.is_integer() else number
        return 0

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round halves toward positive infinity."""
        return int(math.floor(value + 0.5))

    @classmethod
    def percent_change(cls, current: float, previous: float) -> int:
        """Return the rounded relative change from ``previous`` to ``current``.

        A change from nothing to something is reported as 100 and no change
        from nothing as 0.
        """
        if previous == 0:
            return 100 if current > 0 else 0
        return cls.round_half_up((current - previous) / previous * 100)

    @staticmethod
    def completed_sets(sets: Iterable[WorkoutSet]) -> list[WorkoutSet]:
        return [s for s in sets if s.completed]

    @classmethod
    def volume(cls, sets: Iterable[WorkoutSet]) -> float:
        """Compute training volume as the sum of weight times reps over completed sets."""
        vol = 0
        for s in cls.completed_sets(sets):
            vol += cls.as_number(s.weight) * cls.as_number(s.reps)
        return vol

    @classmethod
    def max_weight(cls, sets: Iterable[WorkoutSet]) -> float:
        return max([0] + [cls.as_number(s.weight) for s in cls.completed_sets(sets)])

    @classmethod
    def max_reps(cls, sets: Iterable[WorkoutSet]) -> float:
        return max([0] + [cls.as_number(s.reps) for s in cls.completed_sets(sets)])

    @classmethod
    def exercise_volume(cls, exercise: WorkoutExercise) -> float:
        return cls.volume(exercise.sets)

    @staticmethod
    def format_number(value: float) -> str:
        """Render ``value`` without a trailing ``.0`` for whole numbers."""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
