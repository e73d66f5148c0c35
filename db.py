import sqlite3
import aiosqlite
import datetime
import json
from contextlib import contextmanager, asynccontextmanager
from typing import Any, List, Optional, Tuple

from loguru import logger

from models import (
    Exercise,
    HealthEntry,
    HealthGoal,
    PlannedExercise,
    PreviousSet,
    Workout,
    WorkoutExercise,
    WorkoutSet,
)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    date TEXT NOT NULL,
                    duration REAL,
                    notes TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    planned INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT
                );""",
            [
                "id",
                "user_id",
                "name",
                "date",
                "duration",
                "notes",
                "completed",
                "planned",
                "updated_at",
            ],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL,
                    exercise_type TEXT NOT NULL DEFAULT 'strength',
                    muscle_groups TEXT NOT NULL DEFAULT '[]',
                    instructions TEXT,
                    notes TEXT,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "exercise_name",
                "exercise_type",
                "muscle_groups",
                "instructions",
                "notes",
                "sort_order",
            ],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id TEXT PRIMARY KEY,
                    workout_exercise_id TEXT NOT NULL,
                    weight TEXT,
                    reps TEXT,
                    duration REAL,
                    distance REAL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_exercise_id",
                "weight",
                "reps",
                "duration",
                "distance",
                "completed",
                "sort_order",
            ],
        ),
        "planned_exercises": (
            """CREATE TABLE planned_exercises (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    exercise_name TEXT NOT NULL,
                    exercise_type TEXT NOT NULL DEFAULT 'strength',
                    muscle_groups TEXT NOT NULL DEFAULT '[]',
                    instructions TEXT,
                    reference_weight REAL,
                    reference_reps REAL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "exercise_name",
                "exercise_type",
                "muscle_groups",
                "instructions",
                "reference_weight",
                "reference_reps",
                "sort_order",
            ],
        ),
        "planned_exercise_previous_sets": (
            """CREATE TABLE planned_exercise_previous_sets (
                    id TEXT PRIMARY KEY,
                    planned_exercise_id TEXT NOT NULL,
                    weight REAL,
                    reps REAL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(planned_exercise_id) REFERENCES planned_exercises(id) ON DELETE CASCADE
                );""",
            ["id", "planned_exercise_id", "weight", "reps", "sort_order"],
        ),
        "custom_exercises": (
            """CREATE TABLE custom_exercises (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'strength',
                    muscle_groups TEXT NOT NULL DEFAULT '[]',
                    instructions TEXT,
                    created_at TEXT
                );""",
            [
                "id",
                "user_id",
                "name",
                "type",
                "muscle_groups",
                "instructions",
                "created_at",
            ],
        ),
        "health_goals": (
            """CREATE TABLE health_goals (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    frequency TEXT NOT NULL,
                    target REAL,
                    unit TEXT,
                    emoji TEXT,
                    description TEXT,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "name",
                "type",
                "frequency",
                "target",
                "unit",
                "emoji",
                "description",
                "active",
                "created_at",
            ],
        ),
        "health_entries": (
            """CREATE TABLE health_entries (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    goal_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    value REAL,
                    notes TEXT,
                    completed_at TEXT,
                    UNIQUE (goal_id, date),
                    FOREIGN KEY(goal_id) REFERENCES health_goals(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "goal_id",
                "date",
                "completed",
                "value",
                "notes",
                "completed_at",
            ],
        ),
    }

    def __init__(self, db_path: str = "fitness.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            # renames must not rewrite child REFERENCES clauses
            cursor.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("exercise_type", "type"):
                        return "'strength'"
                    if col == "muscle_groups":
                        return "'[]'"
                    if col in ("sort_order", "completed", "planned"):
                        return "0"
                    if col == "active":
                        return "1"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class LocalStorageRepository(BaseRepository):
    """String key-value cache kept on the device, values stored as JSON text."""

    _TABLE_DEFINITIONS = {
        "local_storage": (
            """CREATE TABLE local_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "local_storage.db") -> None:
        super().__init__(db_path)

    def get_item(self, key: str) -> Optional[str]:
        rows = self.fetch_all("SELECT value FROM local_storage WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def set_item(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO local_storage (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )

    def remove_item(self, key: str) -> None:
        self.execute("DELETE FROM local_storage WHERE key = ?;", (key,))

    def keys(self) -> List[str]:
        return [r[0] for r in self.fetch_all("SELECT key FROM local_storage ORDER BY key;")]

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable local data under {}", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value))


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


def _encode_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _decode_value(text: Optional[str]) -> Any:
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for workouts with their exercises, sets and plans."""

    _WORKOUT_COLUMNS = "id, name, date, duration, notes, completed, planned"

    async def save(self, user_id: str, workout: Workout) -> None:
        """Insert or replace ``workout`` together with all of its child rows."""
        async with self._async_connection() as conn:
            await conn.execute(
                "INSERT INTO workouts (id, user_id, name, date, duration, notes, completed, planned, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET user_id=excluded.user_id, name=excluded.name, date=excluded.date, "
                "duration=excluded.duration, notes=excluded.notes, completed=excluded.completed, "
                "planned=excluded.planned, updated_at=excluded.updated_at;",
                (
                    workout.id,
                    user_id,
                    workout.name,
                    workout.date,
                    workout.duration,
                    workout.notes,
                    int(workout.completed),
                    int(workout.planned),
                    datetime.datetime.now().isoformat(),
                ),
            )
            await conn.execute(
                "DELETE FROM workout_exercises WHERE workout_id = ?;", (workout.id,)
            )
            await conn.execute(
                "DELETE FROM planned_exercises WHERE workout_id = ?;", (workout.id,)
            )
            for pos, ex in enumerate(workout.exercises):
                await conn.execute(
                    "INSERT INTO workout_exercises (id, workout_id, exercise_id, exercise_name, exercise_type, muscle_groups, instructions, notes, sort_order) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        ex.id,
                        workout.id,
                        ex.exercise.id,
                        ex.exercise.name,
                        ex.exercise.type,
                        json.dumps(ex.exercise.muscle_groups),
                        ex.exercise.instructions,
                        ex.notes,
                        pos,
                    ),
                )
                for set_pos, s in enumerate(ex.sets):
                    await conn.execute(
                        "INSERT INTO workout_sets (id, workout_exercise_id, weight, reps, duration, distance, completed, sort_order) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                        (
                            s.id,
                            ex.id,
                            _encode_value(s.weight),
                            _encode_value(s.reps),
                            s.duration,
                            s.distance,
                            int(s.completed),
                            set_pos,
                        ),
                    )
            for pos, pe in enumerate(workout.planned_exercises):
                pe_row_id = f"{workout.id}:{pos}"
                await conn.execute(
                    "INSERT INTO planned_exercises (id, workout_id, exercise_id, exercise_name, exercise_type, muscle_groups, instructions, reference_weight, reference_reps, sort_order) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        pe_row_id,
                        workout.id,
                        pe.id,
                        pe.name,
                        pe.type,
                        json.dumps(pe.muscle_groups),
                        pe.instructions,
                        pe.reference_weight,
                        pe.reference_reps,
                        pos,
                    ),
                )
                for set_pos, ps in enumerate(pe.previous_sets):
                    await conn.execute(
                        "INSERT INTO planned_exercise_previous_sets (id, planned_exercise_id, weight, reps, sort_order) "
                        "VALUES (?, ?, ?, ?, ?);",
                        (f"{pe_row_id}:{set_pos}", pe_row_id, ps.weight, ps.reps, set_pos),
                    )

    async def _load(self, where: str, params: Tuple) -> List[Workout]:
        workout_rows = await self.fetch_all(
            f"SELECT {self._WORKOUT_COLUMNS} FROM workouts WHERE {where} ORDER BY date, id;",
            params,
        )
        if not workout_rows:
            return []
        scope = f"SELECT id FROM workouts WHERE {where}"
        exercise_rows = await self.fetch_all(
            "SELECT id, workout_id, exercise_id, exercise_name, exercise_type, muscle_groups, instructions, notes "
            f"FROM workout_exercises WHERE workout_id IN ({scope}) ORDER BY sort_order;",
            params,
        )
        set_rows = await self.fetch_all(
            "SELECT s.id, s.workout_exercise_id, s.weight, s.reps, s.duration, s.distance, s.completed, e.exercise_id "
            "FROM workout_sets s JOIN workout_exercises e ON e.id = s.workout_exercise_id "
            f"WHERE e.workout_id IN ({scope}) ORDER BY s.sort_order;",
            params,
        )
        planned_rows = await self.fetch_all(
            "SELECT id, workout_id, exercise_id, exercise_name, exercise_type, muscle_groups, instructions, reference_weight, reference_reps "
            f"FROM planned_exercises WHERE workout_id IN ({scope}) ORDER BY sort_order;",
            params,
        )
        previous_rows = await self.fetch_all(
            "SELECT p.planned_exercise_id, p.weight, p.reps "
            "FROM planned_exercise_previous_sets p JOIN planned_exercises e ON e.id = p.planned_exercise_id "
            f"WHERE e.workout_id IN ({scope}) ORDER BY p.sort_order;",
            params,
        )

        sets_by_exercise: dict[str, list[WorkoutSet]] = {}
        for sid, we_id, weight, reps, duration, distance, completed, ex_id in set_rows:
            sets_by_exercise.setdefault(we_id, []).append(
                WorkoutSet(
                    id=sid,
                    exercise_id=ex_id,
                    weight=_decode_value(weight),
                    reps=_decode_value(reps),
                    duration=duration,
                    distance=distance,
                    completed=bool(completed),
                )
            )
        exercises_by_workout: dict[str, list[WorkoutExercise]] = {}
        for we_id, wid, ex_id, name, ex_type, muscles, instructions, notes in exercise_rows:
            exercises_by_workout.setdefault(wid, []).append(
                WorkoutExercise(
                    id=we_id,
                    exercise=Exercise(
                        id=ex_id,
                        name=name,
                        type=ex_type,
                        muscle_groups=json.loads(muscles or "[]"),
                        instructions=instructions,
                    ),
                    sets=sets_by_exercise.get(we_id, []),
                    notes=notes,
                )
            )
        previous_by_planned: dict[str, list[PreviousSet]] = {}
        for pe_id, weight, reps in previous_rows:
            previous_by_planned.setdefault(pe_id, []).append(
                PreviousSet(weight=_number(weight), reps=_number(reps))
            )
        planned_by_workout: dict[str, list[PlannedExercise]] = {}
        for pe_id, wid, ex_id, name, ex_type, muscles, instructions, ref_w, ref_r in planned_rows:
            planned_by_workout.setdefault(wid, []).append(
                PlannedExercise(
                    id=ex_id,
                    name=name,
                    type=ex_type,
                    muscle_groups=json.loads(muscles or "[]"),
                    instructions=instructions,
                    reference_weight=_number(ref_w),
                    reference_reps=_number(ref_r),
                    previous_sets=previous_by_planned.get(pe_id, []),
                )
            )

        workouts: list[Workout] = []
        for wid, name, date, duration, notes, completed, planned in workout_rows:
            workouts.append(
                Workout(
                    id=wid,
                    name=name,
                    date=date,
                    duration=duration,
                    notes=notes,
                    completed=bool(completed),
                    planned=bool(planned),
                    exercises=exercises_by_workout.get(wid, []),
                    planned_exercises=planned_by_workout.get(wid, []),
                )
            )
        return workouts

    async def fetch_for_user(self, user_id: str) -> List[Workout]:
        return await self._load("user_id = ?", (user_id,))

    async def fetch_detail(self, workout_id: str) -> Workout:
        rows = await self._load("id = ?", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        return rows[0]

    async def update_exercise_notes(
        self, workout_exercise_id: str, notes: Optional[str]
    ) -> None:
        await self.execute(
            "UPDATE workout_exercises SET notes = ? WHERE id = ?;",
            (notes, workout_exercise_id),
        )

    async def delete(self, workout_id: str) -> None:
        rows = await self.fetch_all(
            "SELECT id FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        await self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class AsyncCustomExerciseRepository(AsyncBaseRepository):
    """Async repository for user-created exercises."""

    async def upsert(self, user_id: str, exercise: Exercise) -> None:
        await self.execute(
            "INSERT INTO custom_exercises (id, user_id, name, type, muscle_groups, instructions, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET user_id=excluded.user_id, name=excluded.name, type=excluded.type, "
            "muscle_groups=excluded.muscle_groups, instructions=excluded.instructions;",
            (
                exercise.id,
                user_id,
                exercise.name,
                exercise.type,
                json.dumps(exercise.muscle_groups),
                exercise.instructions,
                datetime.datetime.now().isoformat(),
            ),
        )

    async def fetch_for_user(self, user_id: str) -> List[Exercise]:
        rows = await self.fetch_all(
            "SELECT id, name, type, muscle_groups, instructions FROM custom_exercises WHERE user_id = ? ORDER BY created_at, id;",
            (user_id,),
        )
        return [
            Exercise(
                id=eid,
                name=name,
                type=ex_type,
                muscle_groups=json.loads(muscles or "[]"),
                instructions=instructions,
            )
            for eid, name, ex_type, muscles, instructions in rows
        ]

    async def delete(self, exercise_id: str) -> None:
        await self.execute("DELETE FROM custom_exercises WHERE id = ?;", (exercise_id,))


class AsyncHealthGoalRepository(AsyncBaseRepository):
    """Async repository for health goals."""

    async def upsert(self, user_id: str, goal: HealthGoal) -> None:
        await self.execute(
            "INSERT INTO health_goals (id, user_id, name, type, frequency, target, unit, emoji, description, active, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET name=excluded.name, type=excluded.type, frequency=excluded.frequency, "
            "target=excluded.target, unit=excluded.unit, emoji=excluded.emoji, description=excluded.description, "
            "active=excluded.active;",
            (
                goal.id,
                user_id,
                goal.name,
                goal.type,
                goal.frequency,
                goal.target,
                goal.unit,
                goal.emoji,
                goal.description,
                int(goal.active),
                goal.created_at,
            ),
        )

    async def fetch_for_user(self, user_id: str) -> List[HealthGoal]:
        rows = await self.fetch_all(
            "SELECT id, name, type, frequency, target, unit, emoji, description, active, created_at "
            "FROM health_goals WHERE user_id = ? ORDER BY created_at;",
            (user_id,),
        )
        return [
            HealthGoal(
                id=gid,
                name=name,
                type=g_type,
                frequency=frequency,
                target=target,
                unit=unit,
                emoji=emoji,
                description=description,
                active=bool(active),
                created_at=created_at,
            )
            for gid, name, g_type, frequency, target, unit, emoji, description, active, created_at in rows
        ]

    async def delete(self, goal_id: str) -> None:
        await self.execute("DELETE FROM health_goals WHERE id = ?;", (goal_id,))


class AsyncHealthEntryRepository(AsyncBaseRepository):
    """Async repository for daily health entries."""

    async def upsert(self, user_id: str, entry: HealthEntry) -> None:
        await self.execute(
            "INSERT INTO health_entries (id, user_id, goal_id, date, completed, value, notes, completed_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET completed=excluded.completed, value=excluded.value, "
            "notes=excluded.notes, completed_at=excluded.completed_at;",
            (
                entry.id,
                user_id,
                entry.goal_id,
                entry.date,
                int(entry.completed),
                entry.value,
                entry.notes,
                entry.completed_at,
            ),
        )

    async def fetch_for_user(self, user_id: str) -> List[HealthEntry]:
        rows = await self.fetch_all(
            "SELECT id, goal_id, date, completed, value, notes, completed_at "
            "FROM health_entries WHERE user_id = ? ORDER BY date;",
            (user_id,),
        )
        return [
            HealthEntry(
                id=eid,
                goal_id=goal_id,
                date=date,
                completed=bool(completed),
                value=value,
                notes=notes,
                completed_at=completed_at,
            )
            for eid, goal_id, date, completed, value, notes, completed_at in rows
        ]

    async def delete(self, entry_id: str) -> None:
        await self.execute("DELETE FROM health_entries WHERE id = ?;", (entry_id,))
