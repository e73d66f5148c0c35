import os
import sqlite3
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database


class TestSchemaMigration:
    def _create_old_workouts(self, db_file):
        conn = sqlite3.connect(str(db_file))
        conn.execute(
            "CREATE TABLE workouts (id TEXT PRIMARY KEY, user_id TEXT NOT NULL, name TEXT NOT NULL, date TEXT NOT NULL, completed INTEGER NOT NULL DEFAULT 0)"
        )
        conn.execute(
            "INSERT INTO workouts VALUES ('w1', 'user-1', 'Push Day', '2024-05-14', 1)"
        )
        return conn

    def test_adds_missing_columns(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = self._create_old_workouts(db_file)
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        cols = [row[1] for row in conn.execute("PRAGMA table_info(workouts)")]
        assert "planned" in cols
        assert "updated_at" in cols
        row = conn.execute(
            "SELECT id, name, completed, planned, duration FROM workouts"
        ).fetchone()
        assert row == ("w1", "Push Day", 1, 0, None)
        conn.close()

    def test_drops_existing_backup_table(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = self._create_old_workouts(db_file)
        conn.execute("CREATE TABLE workouts_old (id TEXT)")
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='workouts_old'"
        )
        assert cur.fetchone() is None
        conn.close()

    def test_child_references_survive_rename(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = self._create_old_workouts(db_file)
        conn.execute(Database._TABLE_DEFINITIONS["workout_exercises"][0])
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        parents = [row[2] for row in conn.execute("PRAGMA foreign_key_list(workout_exercises)")]
        assert parents == ["workouts"]
        conn.close()
