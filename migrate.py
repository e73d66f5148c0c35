import argparse
import asyncio
from typing import Dict, List, Optional

from loguru import logger

from db import (
    AsyncCustomExerciseRepository,
    AsyncHealthEntryRepository,
    AsyncHealthGoalRepository,
    AsyncWorkoutRepository,
    LocalStorageRepository,
)
from exceptions import MigrationError
from logging_config import configure_logging
from models import Exercise, HealthEntry, HealthGoal, Workout
from store_base import (
    CUSTOM_EXERCISES_KEY,
    HEALTH_DATA_KEY,
    MIGRATED_FLAG_KEY,
    WORKOUT_DATA_KEY,
)

MIGRATION_FAILED_MESSAGE = "Some data may not have been saved. Please try again."


class LocalDataMigrator:
    """Copy data recorded in local-only mode into the relational store for a user."""

    def __init__(
        self,
        local: LocalStorageRepository,
        workouts: AsyncWorkoutRepository,
        custom_exercises: AsyncCustomExerciseRepository,
        goals: AsyncHealthGoalRepository,
        entries: AsyncHealthEntryRepository,
    ) -> None:
        self.local = local
        self.workouts = workouts
        self.custom_exercises = custom_exercises
        self.goals = goals
        self.entries = entries

    def _local_workouts(self) -> List[dict]:
        data = self.local.get_json(WORKOUT_DATA_KEY, {}) or {}
        return data.get("workouts", [])

    def _local_health(self) -> Dict[str, List[dict]]:
        data = self.local.get_json(HEALTH_DATA_KEY, {}) or {}
        return {"goals": data.get("goals", []), "entries": data.get("entries", [])}

    def _local_custom(self) -> List[dict]:
        return self.local.get_json(CUSTOM_EXERCISES_KEY, []) or []

    def has_local_data(self) -> bool:
        health = self._local_health()
        return bool(
            self._local_workouts()
            or health["goals"]
            or health["entries"]
            or self._local_custom()
        )

    def is_migrated(self) -> bool:
        return self.local.get_item(MIGRATED_FLAG_KEY) == "true"

    def should_offer(self, user_id: Optional[str]) -> bool:
        """Offer migration to a signed-in user while local data remains."""
        return bool(user_id) and self.has_local_data()

    def dismiss(self) -> None:
        self.local.set_item(MIGRATED_FLAG_KEY, "true")

    async def migrate(self, user_id: str) -> Dict[str, int]:
        """Upsert every local record for ``user_id``.

        All records are attempted even after a failure. Any failure raises
        :class:`MigrationError` at the end and leaves the local data in place.
        """
        errors: List[str] = []
        counts = {"workouts": 0, "health_goals": 0, "health_entries": 0, "custom_exercises": 0}

        async def attempt(label: str, key: str, make, write) -> None:
            try:
                await write(user_id, make())
            except Exception:
                logger.exception("Migration error ({})", label)
                errors.append(label)
            else:
                counts[key] += 1

        for raw in self._local_workouts():
            await attempt(
                f"workout {raw.get('name')}",
                "workouts",
                lambda raw=raw: Workout.model_validate(raw),
                self.workouts.save,
            )
        health = self._local_health()
        for raw in health["goals"]:
            await attempt(
                f"health goal {raw.get('name')}",
                "health_goals",
                lambda raw=raw: HealthGoal.model_validate(raw),
                self.goals.upsert,
            )
        for raw in health["entries"]:
            await attempt(
                f"health entry {raw.get('id')}",
                "health_entries",
                lambda raw=raw: HealthEntry.model_validate(raw),
                self.entries.upsert,
            )
        for raw in self._local_custom():
            await attempt(
                f"custom exercise {raw.get('name')}",
                "custom_exercises",
                lambda raw=raw: Exercise.model_validate(raw),
                self.custom_exercises.upsert,
            )

        if errors:
            logger.error("Migration finished with {} errors", len(errors))
            raise MigrationError(MIGRATION_FAILED_MESSAGE)

        self.local.set_item(MIGRATED_FLAG_KEY, "true")
        for key in (WORKOUT_DATA_KEY, HEALTH_DATA_KEY, CUSTOM_EXERCISES_KEY):
            self.local.remove_item(key)
        logger.info("Migrated local data for {}: {}", user_id, counts)
        return counts


def build_migrator(db_path: str, local_path: str) -> LocalDataMigrator:
    return LocalDataMigrator(
        LocalStorageRepository(local_path),
        AsyncWorkoutRepository(db_path),
        AsyncCustomExerciseRepository(db_path),
        AsyncHealthGoalRepository(db_path),
        AsyncHealthEntryRepository(db_path),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Copy local data to the database")
    parser.add_argument("--db", default="fitness.db")
    parser.add_argument("--local", default="local_storage.db")
    parser.add_argument("--user", required=True)
    args = parser.parse_args()
    configure_logging()
    migrator = build_migrator(args.db, args.local)
    if not migrator.has_local_data():
        print("No local data to migrate")
        return
    try:
        counts = asyncio.run(migrator.migrate(args.user))
    except MigrationError as e:
        raise SystemExit(str(e))
    print(f"Migrated {counts}")


if __name__ == "__main__":
    main()
