from __future__ import annotations
import datetime
import uuid
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field

ExerciseType = Literal["strength"]
HealthGoalType = Literal["supplement", "hydration", "sleep", "activity", "custom"]
HealthGoalFrequency = Literal["daily", "weekly"]

# Weight and reps hold a number once entered, or the raw text while it is pending.
SetValue = Optional[Union[int, float, str]]


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.datetime.now().isoformat()


class Exercise(BaseModel):
    id: str
    name: str
    type: ExerciseType = "strength"
    muscle_groups: List[str] = Field(default_factory=list)
    instructions: Optional[str] = None


class WorkoutSet(BaseModel):
    id: str = Field(default_factory=new_id)
    exercise_id: str
    weight: SetValue = None
    reps: SetValue = None
    duration: Optional[float] = None
    distance: Optional[float] = None
    completed: bool = False


class WorkoutExercise(BaseModel):
    id: str = Field(default_factory=new_id)
    exercise: Exercise
    sets: List[WorkoutSet] = Field(default_factory=list)
    notes: Optional[str] = None


class PreviousSet(BaseModel):
    weight: Optional[Union[int, float]] = None
    reps: Optional[Union[int, float]] = None


class PlannedExercise(Exercise):
    """A catalog exercise scheduled in a plan, with the sets used to seed it."""

    reference_weight: Optional[Union[int, float]] = None
    reference_reps: Optional[Union[int, float]] = None
    previous_sets: List[PreviousSet] = Field(default_factory=list)


class Workout(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    exercises: List[WorkoutExercise] = Field(default_factory=list)
    date: str = Field(default_factory=now_iso)
    duration: Optional[float] = None
    notes: Optional[str] = None
    completed: bool = False
    planned: bool = False
    planned_exercises: List[PlannedExercise] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return not self.completed and not self.planned


class WorkoutSummary(BaseModel):
    total_workouts: int = 0
    this_week_workouts: int = 0
    total_duration: float = 0
    favorite_exercise: Optional[str] = None


class HealthGoal(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    type: HealthGoalType = "custom"
    frequency: HealthGoalFrequency = "daily"
    target: Optional[float] = None
    unit: Optional[str] = None
    emoji: Optional[str] = None
    description: Optional[str] = None
    active: bool = True
    created_at: str = Field(default_factory=now_iso)


class HealthEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    goal_id: str
    date: str
    completed: bool = False
    value: Optional[float] = None
    notes: Optional[str] = None
    completed_at: Optional[str] = None
