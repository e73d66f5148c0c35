import os
import sys
import asyncio
import datetime
import itertools
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import LocalStorageRepository
from models import (
    Exercise,
    PlannedExercise,
    PreviousSet,
    Workout,
    WorkoutExercise,
    WorkoutSet,
)
from store_base import ACTIVE_WORKOUT_KEY, WORKOUT_DATA_KEY
from workout_store import WorkoutStore

NOW = datetime.datetime(2024, 5, 15, 12, 0)  # a Wednesday
BENCH = Exercise(id="1", name="Bench Press", muscle_groups=["chest", "triceps"])
SQUAT = Exercise(id="2", name="Squat", muscle_groups=["quadriceps", "glutes"])


def completed_workout(name, date, exercises, duration=1800):
    return Workout(
        name=name,
        date=date,
        completed=True,
        duration=duration,
        exercises=[
            WorkoutExercise(
                exercise=ex,
                sets=[WorkoutSet(exercise_id=ex.id, weight=135, reps=8, completed=True)],
            )
            for ex in exercises
        ],
    )


class WorkoutStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.local_path = "test_workout_store_local.db"
        if os.path.exists(self.local_path):
            os.remove(self.local_path)
        self.local = LocalStorageRepository(self.local_path)
        self.store = WorkoutStore(self.local, clock=lambda: NOW)

    def tearDown(self) -> None:
        if os.path.exists(self.local_path):
            os.remove(self.local_path)

    def _active_exercise(self):
        return self.store.active_workout.exercises[0]

    def test_start_workout(self) -> None:
        workout = self.store.start_workout("Push Day")
        self.assertEqual(workout.name, "Push Day")
        self.assertFalse(workout.completed)
        self.assertFalse(workout.planned)
        self.assertEqual(workout.exercises, [])
        self.assertEqual(workout.date, NOW.isoformat())
        self.assertIs(self.store.active_workout, workout)

    def test_start_workout_discards_previous_active(self) -> None:
        first = self.store.start_workout("First")
        second = self.store.start_workout("Second")
        self.assertNotEqual(first.id, second.id)
        self.assertEqual(self.store.active_workout.name, "Second")
        self.assertEqual(self.store.workouts, [])

    def test_add_exercise_seeds_one_empty_set(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        self.assertNotEqual(entry.id, BENCH.id)
        self.assertEqual(len(entry.sets), 1)
        first = entry.sets[0]
        self.assertEqual(first.exercise_id, BENCH.id)
        self.assertIsNone(first.weight)
        self.assertIsNone(first.reps)
        self.assertFalse(first.completed)

    def test_operations_without_active_workout_are_ignored(self) -> None:
        self.assertIsNone(self.store.add_exercise_to_workout(BENCH))
        self.assertFalse(self.store.remove_exercise_from_workout("x"))
        self.assertFalse(self.store.add_set_to_exercise("x"))
        self.assertFalse(self.store.duplicate_last_set("x"))
        self.assertFalse(self.store.remove_set_from_exercise("x", "y"))
        self.assertFalse(self.store.update_set("x", "y", weight=10))
        self.assertFalse(self.store.reorder_sets("x", []))
        self.assertFalse(self.store.reorder_exercises([]))
        self.assertIsNone(self.store.complete_workout())
        self.assertIsNone(self.store.active_workout)
        self.assertEqual(self.store.workouts, [])

    def test_remove_exercise(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        self.store.add_exercise_to_workout(SQUAT)
        self.assertTrue(self.store.remove_exercise_from_workout(entry.id))
        names = [ex.exercise.name for ex in self.store.active_workout.exercises]
        self.assertEqual(names, ["Squat"])

    def test_remove_only_set_is_refused(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        only = entry.sets[0]
        self.assertFalse(self.store.remove_set_from_exercise(entry.id, only.id))
        self.assertEqual(len(self._active_exercise().sets), 1)

        self.assertTrue(self.store.add_set_to_exercise(entry.id))
        self.assertTrue(self.store.remove_set_from_exercise(entry.id, only.id))
        sets = self._active_exercise().sets
        self.assertEqual(len(sets), 1)
        self.assertNotEqual(sets[0].id, only.id)

    def test_duplicate_last_set(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        set_id = entry.sets[0].id
        self.store.update_set(entry.id, set_id, weight=135, reps=8, completed=True)
        self.assertTrue(self.store.duplicate_last_set(entry.id))
        sets = self._active_exercise().sets
        self.assertEqual(len(sets), 2)
        self.assertEqual((sets[1].weight, sets[1].reps), (135, 8))
        self.assertFalse(sets[1].completed)
        self.assertNotEqual(sets[0].id, sets[1].id)

    def test_update_set_merges_fields(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        set_id = entry.sets[0].id
        self.assertTrue(self.store.update_set(entry.id, set_id, weight=100))
        self.assertTrue(self.store.update_set(entry.id, set_id, reps="8"))
        updated = self._active_exercise().sets[0]
        self.assertEqual(updated.weight, 100)
        self.assertEqual(updated.reps, "8")
        self.assertEqual(updated.id, set_id)
        self.assertFalse(self.store.update_set(entry.id, "missing", weight=1))
        with self.assertRaises(ValueError):
            self.store.update_set(entry.id, set_id, rpe=9)

    def test_reorder_sets_and_exercises(self) -> None:
        self.store.start_workout("Push Day")
        bench = self.store.add_exercise_to_workout(BENCH)
        squat = self.store.add_exercise_to_workout(SQUAT)
        self.store.add_set_to_exercise(bench.id)
        sets = self.store.active_workout.exercises[0].sets
        self.assertTrue(self.store.reorder_sets(bench.id, list(reversed(sets))))
        self.assertEqual(
            [s.id for s in self.store.active_workout.exercises[0].sets],
            [sets[1].id, sets[0].id],
        )
        current = self.store.active_workout.exercises
        self.assertTrue(self.store.reorder_exercises([current[1], current[0]]))
        self.assertEqual(
            [ex.id for ex in self.store.active_workout.exercises], [squat.id, bench.id]
        )

    def test_reorder_sets_requires_same_sets(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        self.store.add_set_to_exercise(entry.id)
        before = self._active_exercise().sets
        stranger = WorkoutSet(exercise_id=BENCH.id)
        self.assertFalse(self.store.reorder_sets(entry.id, []))
        self.assertFalse(self.store.reorder_sets(entry.id, before[:1]))
        self.assertFalse(self.store.reorder_sets(entry.id, [before[0], stranger]))
        self.assertFalse(self.store.reorder_sets(entry.id, before + [stranger]))
        self.assertEqual(self._active_exercise().sets, before)

    def test_complete_workout_marks_filled_sets(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        for _ in range(3):
            self.store.add_set_to_exercise(entry.id)
        ids = [s.id for s in self._active_exercise().sets]
        self.store.update_set(entry.id, ids[0], weight=135, reps=8)
        self.store.update_set(entry.id, ids[1], weight="", reps=8)
        self.store.update_set(entry.id, ids[2], completed=True)
        self.store.update_set(entry.id, ids[3], weight="140", reps="6")
        active = self.store.active_workout

        done = self.store.complete_workout()

        self.assertIsNone(self.store.active_workout)
        self.assertIsNot(done, active)
        self.assertTrue(done.completed)
        self.assertEqual(done.duration, 1800)
        flags = [s.completed for s in done.exercises[0].sets]
        self.assertEqual(flags, [True, False, True, True])
        self.assertEqual(self.store.workouts, [done])
        self.assertEqual(self.store.summary.total_workouts, 1)

    def test_cancel_workout(self) -> None:
        self.store.start_workout("Push Day")
        self.store.cancel_workout()
        self.assertIsNone(self.store.active_workout)
        self.assertIsNone(self.local.get_item(ACTIVE_WORKOUT_KEY))
        self.assertEqual(self.store.workouts, [])

    def test_update_exercise_notes_in_active_and_history(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        done = self.store.complete_workout()
        self.assertTrue(self.store.update_exercise_notes(entry.id, "felt strong"))
        self.assertEqual(
            self.store.get_workout(done.id).exercises[0].notes, "felt strong"
        )
        self.assertEqual(done.exercises[0].notes, None)

        self.store.start_workout("Legs")
        legs = self.store.add_exercise_to_workout(SQUAT)
        self.assertTrue(self.store.update_exercise_notes(legs.id, "deep"))
        self.assertEqual(self.store.active_workout.exercises[0].notes, "deep")
        self.assertFalse(self.store.update_exercise_notes("missing", "x"))

    def test_active_workout_survives_reload(self) -> None:
        self.store.start_workout("Push Day")
        entry = self.store.add_exercise_to_workout(BENCH)
        self.store.update_set(entry.id, entry.sets[0].id, weight=135, reps=8)

        reloaded = WorkoutStore(LocalStorageRepository(self.local_path), clock=lambda: NOW)
        asyncio.run(reloaded.load())
        self.assertEqual(reloaded.active_workout, self.store.active_workout)

    def test_history_saved_locally(self) -> None:
        self.store.start_workout("Push Day")
        self.store.add_exercise_to_workout(BENCH)
        done = self.store.complete_workout()
        data = self.local.get_json(WORKOUT_DATA_KEY)
        self.assertEqual([w["id"] for w in data["workouts"]], [done.id])

        reloaded = WorkoutStore(LocalStorageRepository(self.local_path), clock=lambda: NOW)
        asyncio.run(reloaded.load())
        self.assertEqual(reloaded.workouts, [done])
        self.assertIsNone(reloaded.active_workout)

    def test_summary_total_is_order_independent(self) -> None:
        workouts = [
            completed_workout("A", "2024-05-13T10:00:00", [BENCH]),
            completed_workout("B", "2024-05-01T10:00:00", [SQUAT]),
            Workout(name="Plan", date="2024-05-20", planned=True),
            completed_workout("C", "2024-05-14T10:00:00", [BENCH, SQUAT]),
        ]
        for order in itertools.permutations(workouts):
            summary = WorkoutStore.summarize(list(order), NOW)
            self.assertEqual(summary.total_workouts, 3)
            self.assertEqual(summary.this_week_workouts, 2)
            self.assertEqual(summary.total_duration, 5400)

    def test_summary_favorite_exercise(self) -> None:
        workouts = [
            completed_workout("A", "2024-05-13T10:00:00", [SQUAT]),
            completed_workout("B", "2024-05-14T10:00:00", [BENCH]),
        ]
        self.assertEqual(WorkoutStore.summarize(workouts, NOW).favorite_exercise, "Squat")
        workouts.append(completed_workout("C", "2024-05-14T18:00:00", [BENCH]))
        self.assertEqual(WorkoutStore.summarize(workouts, NOW).favorite_exercise, "Bench Press")
        self.assertEqual(WorkoutStore.summarize([], NOW).total_workouts, 0)

    def test_week_starts_on_sunday_midnight(self) -> None:
        workouts = [
            completed_workout("Sat", "2024-05-11T23:59:00", [BENCH]),
            completed_workout("Sun", "2024-05-12T00:00:00", [BENCH]),
        ]
        self.assertEqual(WorkoutStore.summarize(workouts, NOW).this_week_workouts, 1)

    def test_planned_workout_lifecycle(self) -> None:
        plan = self.store.create_planned_workout("Leg Day", "2024-05-18")
        self.assertTrue(plan.planned)
        self.assertFalse(plan.completed)
        self.assertEqual(plan.planned_exercises, [])
        self.assertEqual(self.store.get_workout(plan.id), plan)
        self.assertEqual(self.store.summary.total_workouts, 0)

        updated = self.store.update_planned_workout(plan.id, notes="heavy", name="Legs")
        self.assertEqual((updated.name, updated.notes), ("Legs", "heavy"))
        self.assertEqual(updated.id, plan.id)
        self.assertIsNone(self.store.update_planned_workout("missing", notes="x"))

        self.assertTrue(self.store.delete_planned_workout(plan.id))
        self.assertIsNone(self.store.get_workout(plan.id))
        self.assertFalse(self.store.delete_planned_workout(plan.id))

    def test_delete_planned_ignores_completed_workouts(self) -> None:
        self.store.start_workout("Push Day")
        done = self.store.complete_workout()
        self.assertFalse(self.store.delete_planned_workout(done.id))
        self.assertTrue(self.store.delete_workout(done.id))
        self.assertEqual(self.store.workouts, [])

    def test_start_planned_workout_seeds_sets(self) -> None:
        plan = self.store.create_planned_workout("Push Day", "2024-05-16")
        plan = self.store.update_planned_workout(
            plan.id,
            planned_exercises=[
                PlannedExercise(
                    **BENCH.model_dump(),
                    previous_sets=[
                        PreviousSet(weight=135, reps=8),
                        PreviousSet(weight=135, reps=7),
                        PreviousSet(weight=125, reps=10),
                    ],
                ),
                PlannedExercise(**SQUAT.model_dump()),
            ],
        )

        workout = self.store.start_planned_workout(plan)

        self.assertIs(self.store.active_workout, workout)
        self.assertNotEqual(workout.id, plan.id)
        self.assertEqual(workout.name, "Push Day")
        self.assertFalse(workout.planned)
        bench, squat = workout.exercises
        self.assertEqual(
            [(s.weight, s.reps) for s in bench.sets], [(135, 8), (135, 7), (125, 10)]
        )
        self.assertFalse(any(s.completed for s in bench.sets))
        self.assertEqual(len(squat.sets), 1)
        self.assertIsNone(squat.sets[0].weight)
        self.assertIsNone(squat.sets[0].reps)
        ids = [s.id for ex in workout.exercises for s in ex.sets]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertTrue(self.store.get_workout(plan.id).planned)

    def test_start_planned_workout_without_exercises_is_ignored(self) -> None:
        plan = self.store.create_planned_workout("Empty", "2024-05-16")
        self.assertIsNone(self.store.start_planned_workout(plan))
        self.assertIsNone(self.store.active_workout)

    def test_get_workouts_by_date(self) -> None:
        self.store.create_planned_workout("Morning", "2024-05-16T07:00:00")
        self.store.create_planned_workout("Evening", "2024-05-16T21:30:00")
        self.store.create_planned_workout("Next", "2024-05-17T00:00:00")
        names = [w.name for w in self.store.get_workouts_by_date(datetime.date(2024, 5, 16))]
        self.assertEqual(names, ["Morning", "Evening"])
        self.assertEqual(len(self.store.get_workouts_by_date("2024-05-17")), 1)

    def test_exercise_history_newest_first(self) -> None:
        for day in (1, 3, 2):
            when = datetime.datetime(2024, 5, day, 9, 0)
            self.store.clock = lambda when=when: when
            self.store.start_workout(f"Day {day}")
            self.store.add_exercise_to_workout(BENCH)
            self.store.complete_workout()
        history = self.store.get_exercise_history(BENCH.id)
        self.assertEqual([w.name for w in history], ["Day 3", "Day 2", "Day 1"])
        self.assertEqual(self.store.get_exercise_history(SQUAT.id), [])


if __name__ == "__main__":
    unittest.main()
