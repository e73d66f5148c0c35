import os
import sys
import asyncio
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import LocalStorageRepository
from exceptions import DuplicateExerciseError
from exercise_catalog import BUILT_IN_EXERCISES, ExerciseCatalog
from store_base import CUSTOM_EXERCISES_KEY


class ExerciseCatalogTest(unittest.TestCase):
    def setUp(self) -> None:
        self.local_path = "test_catalog_local.db"
        if os.path.exists(self.local_path):
            os.remove(self.local_path)
        self.local = LocalStorageRepository(self.local_path)
        self.catalog = ExerciseCatalog(self.local)

    def tearDown(self) -> None:
        if os.path.exists(self.local_path):
            os.remove(self.local_path)

    def test_built_ins_are_strength_exercises(self) -> None:
        ids = [ex.id for ex in BUILT_IN_EXERCISES]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertTrue(all(ex.type == "strength" for ex in BUILT_IN_EXERCISES))
        self.assertEqual(self.catalog.get("1").name, "Bench Press")
        self.assertIsNone(self.catalog.get("999"))

    def test_add_custom_exercise(self) -> None:
        ex = self.catalog.add_custom("  Hip Thrust ", ["glutes"], "Drive hips up.")
        self.assertTrue(ex.id.startswith("custom-"))
        self.assertEqual(ex.name, "Hip Thrust")
        self.assertTrue(self.catalog.is_custom(ex.id))
        self.assertEqual(self.catalog.all_exercises()[-1], ex)
        self.assertEqual(self.local.get_json(CUSTOM_EXERCISES_KEY)[0]["id"], ex.id)

    def test_duplicate_name_is_rejected(self) -> None:
        self.catalog.add_custom("Hip Thrust", ["glutes"])
        with self.assertRaises(DuplicateExerciseError):
            self.catalog.add_custom("hip thrust")
        with self.assertRaises(DuplicateExerciseError):
            self.catalog.add_custom("BENCH PRESS")
        self.assertEqual(len(self.catalog.custom_exercises), 1)

    def test_empty_name_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.catalog.add_custom("   ")

    def test_delete_custom_only(self) -> None:
        ex = self.catalog.add_custom("Hip Thrust", ["glutes"])
        self.assertFalse(self.catalog.delete_custom("1"))
        self.assertIsNotNone(self.catalog.get("1"))
        self.assertTrue(self.catalog.delete_custom(ex.id))
        self.assertIsNone(self.catalog.get(ex.id))
        self.assertEqual(self.local.get_json(CUSTOM_EXERCISES_KEY), [])

    def test_search(self) -> None:
        names = [ex.name for ex in self.catalog.search("bench")]
        self.assertEqual(names, ["Bench Press", "Incline Bench Press"])
        chest = [ex.name for ex in self.catalog.search(muscle_group="chest")]
        self.assertEqual(chest, ["Bench Press", "Cable Crossover"])
        self.assertEqual(len(self.catalog.search(muscle_group="all")), len(BUILT_IN_EXERCISES))
        self.assertEqual(
            [ex.name for ex in self.catalog.search("press", "quadriceps")], ["Leg Press"]
        )
        self.assertEqual(self.catalog.search("curl", "chest"), [])

    def test_muscle_groups_include_custom(self) -> None:
        self.assertNotIn("calves", self.catalog.muscle_groups())
        self.catalog.add_custom("Calf Raise", ["calves"])
        groups = self.catalog.muscle_groups()
        self.assertIn("calves", groups)
        self.assertEqual(groups, sorted(groups))

    def test_custom_exercises_survive_reload(self) -> None:
        ex = self.catalog.add_custom("Hip Thrust", ["glutes"])
        reloaded = ExerciseCatalog(LocalStorageRepository(self.local_path))
        asyncio.run(reloaded.load())
        self.assertEqual(reloaded.custom_exercises, [ex])


if __name__ == "__main__":
    unittest.main()
