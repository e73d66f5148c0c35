import asyncio
import datetime
from typing import Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Request, Response
from loguru import logger

from config import APP_VERSION, YamlConfig
from db import (
    AsyncCustomExerciseRepository,
    AsyncHealthEntryRepository,
    AsyncHealthGoalRepository,
    AsyncWorkoutRepository,
    LocalStorageRepository,
)
from exceptions import DuplicateExerciseError, MigrationError
from exercise_catalog import ExerciseCatalog
from health_store import HealthStore
from migrate import LocalDataMigrator
from planner_service import PlannerService
from stats_service import StatisticsService
from store_base import Clock
from workout_store import WorkoutStore


class ApiKeyGuard:
    """Reject requests that do not carry the configured ``X-API-Key`` header."""

    OPEN_PATHS = {"/health"}

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    async def __call__(self, request: Request, call_next):
        if request.url.path not in self.OPEN_PATHS:
            if request.headers.get("X-API-Key") != self.api_key:
                return Response("invalid api key", status_code=401)
        return await call_next(request)


def _result(changed: bool, workout=None) -> Dict:
    return {"status": "updated" if changed else "ignored", "workout": workout}


class FitnessAPI:
    """Provides REST endpoints for workout logging, planning and health goals."""

    def __init__(
        self,
        db_path: str = "fitness.db",
        local_path: str = "local_storage.db",
        yaml_path: str = "settings.yaml",
        user_id: Optional[str] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = YamlConfig(yaml_path)
        self.settings = self.config.settings()
        self.user_id = user_id if user_id is not None else self.settings.user_id
        self.clock = clock
        self.local = LocalStorageRepository(local_path)
        self.workout_repo = AsyncWorkoutRepository(db_path)
        self.custom_repo = AsyncCustomExerciseRepository(db_path)
        self.goal_repo = AsyncHealthGoalRepository(db_path)
        self.entry_repo = AsyncHealthEntryRepository(db_path)
        self.migrator = LocalDataMigrator(
            self.local,
            self.workout_repo,
            self.custom_repo,
            self.goal_repo,
            self.entry_repo,
        )
        self._build_stores()
        self.app = FastAPI(
            title="Fitness API",
            description="REST API for workout logging, planning and health goals",
            version=APP_VERSION,
        )
        if self.settings.api_key:
            self.app.middleware("http")(ApiKeyGuard(self.settings.api_key))
        self._setup_routes()

    def _build_stores(self) -> None:
        self.workouts = WorkoutStore(self.local, self.workout_repo, self.user_id, self.clock)
        self.catalog = ExerciseCatalog(self.local, self.custom_repo, self.user_id, self.clock)
        self.health = HealthStore(
            self.local, self.goal_repo, self.entry_repo, self.user_id, self.clock
        )
        self.planner = PlannerService(self.workouts, self.catalog)
        self.statistics = StatisticsService(
            self.workouts, self.health, weight_unit=self.settings.weight_unit
        )
        asyncio.run(self._load())

    async def _load(self) -> None:
        await self.workouts.load()
        await self.catalog.load()
        await self.health.load()
        logger.info(
            "Loaded stores in {} mode",
            "remote" if self.workouts.remote_enabled else "local-only",
        )

    def _require_active(self):
        if self.workouts.active_workout is None:
            raise HTTPException(status_code=404, detail="no active workout")
        return self.workouts.active_workout

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and storage connectivity.",
        )
        def health():
            try:
                self.local.keys()
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - storage failure
                raise HTTPException(status_code=500, detail=str(e))

        # exercise catalog
        @self.app.get("/exercises")
        def list_exercises(query: str = "", muscle_group: str = None):
            return self.catalog.search(query, muscle_group)

        @self.app.get("/exercises/muscle_groups")
        def list_muscle_groups():
            return self.catalog.muscle_groups()

        @self.app.post("/exercises/custom")
        def add_custom_exercise(
            name: str, muscle_groups: str = "", instructions: str = None
        ):
            groups = [g.strip() for g in muscle_groups.split("|") if g.strip()]
            try:
                return self.catalog.add_custom(name, groups, instructions)
            except DuplicateExerciseError as e:
                raise HTTPException(status_code=409, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.delete("/exercises/custom/{exercise_id}")
        def delete_custom_exercise(exercise_id: str):
            if not self.catalog.delete_custom(exercise_id):
                raise HTTPException(status_code=404, detail="custom exercise not found")
            return {"status": "deleted"}

        @self.app.get("/exercises/{exercise_id}")
        def get_exercise(exercise_id: str):
            exercise = self.catalog.get(exercise_id)
            if exercise is None:
                raise HTTPException(status_code=404, detail="exercise not found")
            return exercise

        @self.app.get("/exercises/{exercise_id}/history")
        def exercise_history(exercise_id: str):
            return self.statistics.exercise_history(exercise_id)

        # active workout
        @self.app.get("/active_workout")
        def get_active_workout():
            return self.workouts.active_workout

        @self.app.post("/active_workout")
        def start_workout(name: str):
            return self.workouts.start_workout(name)

        @self.app.delete("/active_workout")
        def cancel_workout():
            self.workouts.cancel_workout()
            return {"status": "cancelled"}

        @self.app.post("/active_workout/complete")
        def complete_workout():
            self._require_active()
            done = self.workouts.complete_workout()
            return {"workout": done, "recap": self.statistics.workout_recap(done.id)}

        @self.app.post("/active_workout/exercises")
        def add_exercise(exercise_id: str):
            self._require_active()
            exercise = self.catalog.get(exercise_id)
            if exercise is None:
                raise HTTPException(status_code=404, detail="exercise not found")
            return self.workouts.add_exercise_to_workout(exercise)

        @self.app.put("/active_workout/exercises/order")
        def reorder_exercises(ids: List[str] = Body(...)):
            active = self._require_active()
            by_id = {ex.id: ex for ex in active.exercises}
            if sorted(ids) != sorted(by_id):
                raise HTTPException(status_code=400, detail="ids must match the workout exercises")
            changed = self.workouts.reorder_exercises([by_id[i] for i in ids])
            return _result(changed, self.workouts.active_workout)

        @self.app.delete("/active_workout/exercises/{workout_exercise_id}")
        def remove_exercise(workout_exercise_id: str):
            changed = self.workouts.remove_exercise_from_workout(workout_exercise_id)
            return _result(changed, self.workouts.active_workout)

        @self.app.post("/active_workout/exercises/{workout_exercise_id}/sets")
        def add_set(workout_exercise_id: str):
            changed = self.workouts.add_set_to_exercise(workout_exercise_id)
            return _result(changed, self.workouts.active_workout)

        @self.app.post("/active_workout/exercises/{workout_exercise_id}/sets/duplicate")
        def duplicate_set(workout_exercise_id: str):
            changed = self.workouts.duplicate_last_set(workout_exercise_id)
            return _result(changed, self.workouts.active_workout)

        @self.app.put("/active_workout/exercises/{workout_exercise_id}/sets/order")
        def reorder_sets(workout_exercise_id: str, ids: List[str] = Body(...)):
            active = self._require_active()
            target = next((ex for ex in active.exercises if ex.id == workout_exercise_id), None)
            if target is None:
                raise HTTPException(status_code=404, detail="exercise not found")
            by_id = {s.id: s for s in target.sets}
            if sorted(ids) != sorted(by_id):
                raise HTTPException(status_code=400, detail="ids must match the exercise sets")
            changed = self.workouts.reorder_sets(workout_exercise_id, [by_id[i] for i in ids])
            return _result(changed, self.workouts.active_workout)

        @self.app.put("/active_workout/exercises/{workout_exercise_id}/sets/{set_id}")
        def update_set(workout_exercise_id: str, set_id: str, fields: Dict = Body(...)):
            try:
                changed = self.workouts.update_set(workout_exercise_id, set_id, **fields)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return _result(changed, self.workouts.active_workout)

        @self.app.delete("/active_workout/exercises/{workout_exercise_id}/sets/{set_id}")
        def remove_set(workout_exercise_id: str, set_id: str):
            changed = self.workouts.remove_set_from_exercise(workout_exercise_id, set_id)
            return _result(changed, self.workouts.active_workout)

        @self.app.put("/workout_exercises/{workout_exercise_id}/notes")
        def update_exercise_notes(workout_exercise_id: str, notes: str = Body(None)):
            if not self.workouts.update_exercise_notes(workout_exercise_id, notes):
                raise HTTPException(status_code=404, detail="exercise not found")
            return {"status": "updated"}

        # history
        @self.app.get("/workouts")
        def list_workouts(date: str = None):
            if date:
                try:
                    return self.workouts.get_workouts_by_date(date)
                except ValueError as e:
                    raise HTTPException(status_code=400, detail=str(e))
            return self.workouts.workouts

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: str):
            workout = self.workouts.get_workout(workout_id)
            if workout is None:
                raise HTTPException(status_code=404, detail="workout not found")
            return workout

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: str):
            if not self.workouts.delete_workout(workout_id):
                raise HTTPException(status_code=404, detail="workout not found")
            return {"status": "deleted"}

        @self.app.get("/workouts/{workout_id}/recap")
        def workout_recap(workout_id: str):
            try:
                return self.statistics.workout_recap(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        # planned workouts
        @self.app.get("/planned_workouts")
        def list_planned_workouts():
            return self.planner.planned_workouts()

        @self.app.post("/planned_workouts")
        def create_planned_workout(name: str, date: str):
            return self.planner.create_plan(name, date)

        @self.app.put("/planned_workouts/{plan_id}")
        def update_planned_workout(
            plan_id: str, name: str = None, date: str = None, notes: str = None
        ):
            fields = {
                k: v for k, v in {"name": name, "date": date, "notes": notes}.items() if v is not None
            }
            plan = self.workouts.get_workout(plan_id)
            if plan is None or not plan.planned:
                raise HTTPException(status_code=404, detail="planned workout not found")
            return self.workouts.update_planned_workout(plan_id, **fields)

        @self.app.delete("/planned_workouts/{plan_id}")
        def delete_planned_workout(plan_id: str):
            if not self.workouts.delete_planned_workout(plan_id):
                raise HTTPException(status_code=404, detail="planned workout not found")
            return {"status": "deleted"}

        @self.app.post("/planned_workouts/{plan_id}/exercises")
        def plan_exercise(plan_id: str, exercise_id: str):
            try:
                plan = self.planner.plan_exercise(plan_id, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            if plan is None:
                raise HTTPException(status_code=409, detail="exercise already planned")
            return plan

        @self.app.put("/planned_workouts/{plan_id}/exercises/order")
        def reorder_planned_exercises(plan_id: str, ids: List[str] = Body(...)):
            if self.workouts.get_workout(plan_id) is None:
                raise HTTPException(status_code=404, detail="planned workout not found")
            try:
                return self.planner.reorder_planned_exercises(plan_id, ids)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.delete("/planned_workouts/{plan_id}/exercises/{exercise_id}")
        def remove_planned_exercise(plan_id: str, exercise_id: str):
            try:
                return self.planner.remove_planned_exercise(plan_id, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/planned_workouts/{plan_id}/duplicate")
        def duplicate_plan(plan_id: str, date: str):
            try:
                return self.planner.duplicate_plan(plan_id, date)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/planned_workouts/{plan_id}/start")
        def start_planned_workout(plan_id: str):
            try:
                workout = self.planner.start_plan(plan_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            if workout is None:
                raise HTTPException(status_code=400, detail="plan has no exercises")
            return workout

        @self.app.get("/planner/week")
        def planner_week(date: str = None):
            day = datetime.date.fromisoformat(date) if date else None
            return self.planner.week_days(day)

        # analytics
        @self.app.get("/summary")
        def workout_summary():
            return self.statistics.summary()

        @self.app.get("/stats/weekly_recap")
        def weekly_recap():
            return self.statistics.weekly_recap()

        @self.app.get("/stats/streak")
        def progress_streak():
            return self.statistics.progress_streak()

        @self.app.get("/stats/overview")
        def overview():
            return self.statistics.overview()

        # health goals
        @self.app.get("/health_goals")
        def list_health_goals(frequency: str = None):
            if frequency:
                return self.health.active_goals_by_frequency(frequency)
            return self.health.goals

        @self.app.post("/health_goals")
        def create_health_goal(
            name: str,
            goal_type: str = "custom",
            frequency: str = "daily",
            target: float = None,
            unit: str = None,
            emoji: str = None,
            description: str = None,
        ):
            try:
                return self.health.create_goal(
                    name, goal_type, frequency, target, unit, emoji, description
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.put("/health_goals/{goal_id}")
        def update_health_goal(goal_id: str, fields: Dict = Body(...)):
            try:
                goal = self.health.update_goal(goal_id, **fields)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if goal is None:
                raise HTTPException(status_code=404, detail="health goal not found")
            return goal

        @self.app.delete("/health_goals/{goal_id}")
        def delete_health_goal(goal_id: str):
            if not self.health.delete_goal(goal_id):
                raise HTTPException(status_code=404, detail="health goal not found")
            return {"status": "deleted"}

        @self.app.post("/health_goals/{goal_id}/toggle")
        def toggle_health_goal(goal_id: str):
            goal = self.health.toggle_goal_active(goal_id)
            if goal is None:
                raise HTTPException(status_code=404, detail="health goal not found")
            return goal

        @self.app.post("/health_goals/{goal_id}/complete")
        def complete_health_goal(
            goal_id: str, date: str, value: float = None, notes: str = None
        ):
            entry = self.health.mark_goal_complete(goal_id, date, value, notes)
            if entry is None:
                raise HTTPException(status_code=404, detail="health goal not found")
            return entry

        @self.app.post("/health_goals/{goal_id}/incomplete")
        def incomplete_health_goal(goal_id: str, date: str):
            entry = self.health.mark_goal_incomplete(goal_id, date)
            if entry is None:
                raise HTTPException(status_code=404, detail="health entry not found")
            return entry

        @self.app.get("/health_entries")
        def list_health_entries(date: str = None, goal_id: str = None):
            if date and goal_id:
                entry = self.health.entry_for_goal_and_date(goal_id, date)
                return [entry] if entry else []
            if date:
                return self.health.entries_for_date(date)
            entries = self.health.entries
            if goal_id:
                entries = [e for e in entries if e.goal_id == goal_id]
            return entries

        @self.app.put("/health_entries/{entry_id}")
        def update_health_entry(entry_id: str, fields: Dict = Body(...)):
            try:
                entry = self.health.update_entry(entry_id, **fields)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if entry is None:
                raise HTTPException(status_code=404, detail="health entry not found")
            return entry

        @self.app.get("/health_summary/daily")
        def health_daily(date: str = None):
            try:
                return self.health.daily_summary(date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/health_summary/weekly")
        def health_weekly():
            return self.health.weekly_summary()

        @self.app.get("/health_summary/stats")
        def health_stats():
            return self.health.stats()

        @self.app.get("/health_summary/trends")
        def health_trends():
            return self.health.trends()

        # migration
        @self.app.get("/migrate")
        def migration_status():
            return {
                "has_local_data": self.migrator.has_local_data(),
                "migrated": self.migrator.is_migrated(),
                "offer": self.migrator.should_offer(self.user_id),
            }

        @self.app.post("/migrate")
        def migrate():
            if not self.user_id:
                raise HTTPException(status_code=400, detail="user id required")
            try:
                counts = asyncio.run(self.migrator.migrate(self.user_id))
            except MigrationError as e:
                raise HTTPException(status_code=502, detail=str(e))
            self._build_stores()
            return counts

        @self.app.post("/migrate/dismiss")
        def dismiss_migration():
            self.migrator.dismiss()
            return {"status": "dismissed"}


def create_app(yaml_path: str = "settings.yaml"):
    """Build an application from the settings file."""
    config = YamlConfig(yaml_path)
    settings = config.settings()
    return FitnessAPI(
        settings.db_path, settings.local_storage_path, yaml_path, settings.user_id
    ).app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app())
