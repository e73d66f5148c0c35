import datetime
from typing import Optional

from loguru import logger

from exercise_catalog import ExerciseCatalog
from rest_api import FitnessAPI
from workout_store import WorkoutStore

# (days ago, workout name, [(exercise id, [(weight, reps), ...]), ...])
SAMPLE_SESSIONS = [
    (15, "Push Day", [("1", [(125, 8), (125, 8)]), ("7", [(65, 10), (65, 9)])]),
    (8, "Push Day", [("1", [(130, 8), (130, 7)]), ("7", [(70, 10)])]),
    (6, "Leg Day", [("2", [(185, 5), (185, 5), (185, 5)]), ("14", [(270, 10)])]),
    (2, "Push Day", [("1", [(135, 8), (135, 8)]), ("7", [(70, 12)])]),
]


def seed_workouts(
    store: WorkoutStore,
    catalog: ExerciseCatalog,
    now: Optional[datetime.datetime] = None,
) -> int:
    """Log the sample sessions through ``store``.

    Nothing is seeded when the store already has history or a workout in
    progress, since logging a session replaces the active workout.
    """
    if store.workouts:
        return 0
    if store.active_workout is not None:
        logger.warning("Not seeding while {} is in progress", store.active_workout.name)
        return 0
    now = now or store.clock()
    original_clock = store.clock
    try:
        for days_ago, name, plan in SAMPLE_SESSIONS:
            when = now - datetime.timedelta(days=days_ago)
            store.clock = lambda when=when: when
            store.start_workout(name)
            for exercise_id, sets in plan:
                entry = store.add_exercise_to_workout(catalog.get(exercise_id))
                for _ in sets[1:]:
                    store.add_set_to_exercise(entry.id)
                current = next(
                    ex for ex in store.active_workout.exercises if ex.id == entry.id
                )
                for workout_set, (weight, reps) in zip(current.sets, sets):
                    store.update_set(entry.id, workout_set.id, weight=weight, reps=reps)
            store.complete_workout()
    finally:
        store.clock = original_clock
    store.refresh_summary()
    return len(SAMPLE_SESSIONS)


def seed(
    db_path: str = "fitness.db",
    local_path: str = "local_storage.db",
    yaml_path: str = "settings.yaml",
) -> None:
    api = FitnessAPI(db_path, local_path, yaml_path)
    count = seed_workouts(api.workouts, api.catalog)
    if not count:
        print("Database already contains workouts or one is in progress")
        return
    print(f"Seed data inserted ({count} workouts)")


if __name__ == "__main__":
    seed()
