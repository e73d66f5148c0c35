from typing import Iterable, List, Optional

from loguru import logger

from db import AsyncCustomExerciseRepository, LocalStorageRepository
from exceptions import DuplicateExerciseError
from models import Exercise, new_id
from store_base import CUSTOM_EXERCISES_KEY, Clock, LocalFirstStore

BUILT_IN_EXERCISES: List[Exercise] = [
    Exercise(
        id="1",
        name="Bench Press",
        muscle_groups=["chest", "triceps", "shoulders"],
        instructions="Lie on a bench with your feet on the ground. Grip the barbell with hands slightly wider than shoulder-width apart. Lower the barbell to your chest, then press it back up.",
    ),
    Exercise(
        id="2",
        name="Squat",
        muscle_groups=["quadriceps", "hamstrings", "glutes"],
        instructions="Stand with feet shoulder-width apart. Lower your body by bending your knees and pushing your hips back as if sitting in a chair. Lower until thighs are parallel to the ground, then return to standing.",
    ),
    Exercise(
        id="3",
        name="Deadlift",
        muscle_groups=["back", "hamstrings", "glutes"],
        instructions="Stand with feet hip-width apart, barbell over midfoot. Bend at hips and knees to grip the bar. Keeping back straight, stand up with the weight by driving through your heels.",
    ),
    Exercise(
        id="4",
        name="Pull Up",
        muscle_groups=["back", "biceps"],
        instructions="Hang from a bar with palms facing away from you. Pull your body up until your chin is over the bar, then lower with control.",
    ),
    Exercise(
        id="6",
        name="Plank",
        muscle_groups=["core", "shoulders"],
        instructions="Start in push-up position. Keep your body in a straight line from head to heels, engaging your core muscles.",
    ),
    Exercise(
        id="7",
        name="Shoulder Press",
        muscle_groups=["shoulders", "triceps"],
        instructions="Hold weights at shoulder height with palms facing forward. Press weights overhead until arms are extended, then lower back to starting position.",
    ),
    Exercise(
        id="8",
        name="Bicycle Crunch",
        muscle_groups=["core", "obliques"],
        instructions="Lie on your back with hands behind head. Bring opposite elbow to opposite knee while extending the other leg.",
    ),
    Exercise(
        id="11",
        name="Dumbbell Row",
        muscle_groups=["back", "biceps", "forearms"],
        instructions="Place one knee and hand on a bench, with the other foot on the floor. Hold a dumbbell in your free hand, arm extended. Pull the weight up to your side while keeping your back flat.",
    ),
    Exercise(
        id="12",
        name="Barbell Curl",
        muscle_groups=["biceps", "forearms"],
        instructions="Stand with feet shoulder-width apart, holding a barbell with an underhand grip. Keeping elbows close to sides, curl the weight up toward your shoulders, then lower with control.",
    ),
    Exercise(
        id="13",
        name="Tricep Dips",
        muscle_groups=["triceps", "shoulders"],
        instructions="Sit on the edge of a bench or chair, hands gripping the edge. Slide your butt off the bench, lower your body by bending your elbows, then push back up.",
    ),
    Exercise(
        id="14",
        name="Leg Press",
        muscle_groups=["quadriceps", "hamstrings", "glutes"],
        instructions="Sit in the leg press machine with feet on the platform shoulder-width apart. Release the safety bars, lower the platform by bending your knees, then push it back up.",
    ),
    Exercise(
        id="15",
        name="Lat Pulldown",
        muscle_groups=["back", "biceps", "shoulders"],
        instructions="Sit at a lat pulldown machine, grasp the bar with a wide grip. Pull the bar down to chest level while keeping your back straight, then slowly return to the starting position.",
    ),
    Exercise(
        id="16",
        name="Romanian Deadlift",
        muscle_groups=["hamstrings", "glutes", "lower back"],
        instructions="Stand holding a barbell in front of your thighs. Keeping your back straight and knees slightly bent, hinge at the hips to lower the bar toward the floor, then return to standing.",
    ),
    Exercise(
        id="17",
        name="Incline Bench Press",
        muscle_groups=["upper chest", "shoulders", "triceps"],
        instructions="Lie on an incline bench with feet on the floor. Grip the barbell with hands wider than shoulder-width. Lower the bar to your upper chest, then press back up.",
    ),
    Exercise(
        id="18",
        name="Face Pull",
        muscle_groups=["rear delts", "upper back", "rotator cuff"],
        instructions="Stand facing a cable machine with rope attachment at head height. Pull the rope toward your face, separating the ends as you pull, then slowly return to start.",
    ),
    Exercise(
        id="19",
        name="Dumbbell Lateral Raise",
        muscle_groups=["shoulders", "traps"],
        instructions="Stand holding dumbbells at your sides. Keeping a slight bend in the elbows, raise the weights out to the sides until arms are parallel to the floor, then lower with control.",
    ),
    Exercise(
        id="20",
        name="Cable Crossover",
        muscle_groups=["chest", "shoulders"],
        instructions="Stand between two cable machines with handles at chest height. With arms extended, pull the handles forward and across your body, then slowly return to the starting position.",
    ),
]


class ExerciseCatalog(LocalFirstStore):
    """Built-in exercises followed by the user's custom ones."""

    def __init__(
        self,
        local: LocalStorageRepository,
        remote: Optional[AsyncCustomExerciseRepository] = None,
        user_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(local, user_id if remote is not None else None, clock)
        self.remote = remote
        self._custom: List[Exercise] = []

    async def load(self) -> None:
        if self.remote_enabled:
            try:
                self._custom = await self.remote.fetch_for_user(self.user_id)
            except Exception:
                logger.exception("Failed to load custom exercises")
                self._custom = []
            return
        raw = self.local.get_json(CUSTOM_EXERCISES_KEY, [])
        self._custom = [Exercise.model_validate(item) for item in raw]

    @property
    def custom_exercises(self) -> List[Exercise]:
        return list(self._custom)

    def all_exercises(self) -> List[Exercise]:
        return BUILT_IN_EXERCISES + self._custom

    def get(self, exercise_id: str) -> Optional[Exercise]:
        for ex in self.all_exercises():
            if ex.id == exercise_id:
                return ex
        return None

    def get_by_name(self, name: str) -> Optional[Exercise]:
        wanted = name.strip().lower()
        for ex in self.all_exercises():
            if ex.name.lower() == wanted:
                return ex
        return None

    def is_custom(self, exercise_id: str) -> bool:
        return any(ex.id == exercise_id for ex in self._custom)

    def search(
        self, query: str = "", muscle_group: Optional[str] = None
    ) -> List[Exercise]:
        """Return exercises whose name contains ``query`` and that train ``muscle_group``."""
        needle = query.strip().lower()
        results = []
        for ex in self.all_exercises():
            if needle and needle not in ex.name.lower():
                continue
            if muscle_group and muscle_group != "all" and muscle_group not in ex.muscle_groups:
                continue
            results.append(ex)
        return results

    def muscle_groups(self) -> List[str]:
        groups = {g for ex in self.all_exercises() for g in ex.muscle_groups}
        return sorted(groups)

    def add_custom(
        self,
        name: str,
        muscle_groups: Iterable[str] = (),
        instructions: Optional[str] = None,
    ) -> Exercise:
        name = name.strip()
        if not name:
            raise ValueError("exercise name is required")
        if self.get_by_name(name) is not None:
            raise DuplicateExerciseError(name)
        exercise = Exercise(
            id=f"custom-{new_id()}",
            name=name,
            muscle_groups=list(muscle_groups),
            instructions=instructions,
        )
        self._custom = self._custom + [exercise]
        logger.info("Added custom exercise {}", name)
        if self.remote_enabled:
            self._dispatch(
                "custom exercise upsert", self.remote.upsert(self.user_id, exercise)
            )
        else:
            self._save_local()
        return exercise

    def delete_custom(self, exercise_id: str) -> bool:
        if not self.is_custom(exercise_id):
            logger.debug("Refusing to delete non-custom exercise {}", exercise_id)
            return False
        self._custom = [ex for ex in self._custom if ex.id != exercise_id]
        if self.remote_enabled:
            self._dispatch("custom exercise delete", self.remote.delete(exercise_id))
        else:
            self._save_local()
        return True

    def _save_local(self) -> None:
        self.local.set_json(
            CUSTOM_EXERCISES_KEY, [ex.model_dump() for ex in self._custom]
        )
