from typing import Iterable, List, Optional

from models import Workout, WorkoutExercise
from .date_tools import DateTools
from .math_tools import MathTools


class WorkoutRecap:
    """Compare one workout with the training that came before it."""

    COMPOUND_LIFTS = ["Bench Press", "Squat", "Deadlift", "Overhead Press", "Barbell Row"]
    COMPOUND_INCREMENT = 5
    ACCESSORY_INCREMENT = 2.5
    GOAL_LIMIT = 3

    @staticmethod
    def _newest_first(workouts: Iterable[Workout]) -> List[Workout]:
        return sorted(
            workouts,
            key=lambda w: DateTools.parse_timestamp(w.date),
            reverse=True,
        )

    @classmethod
    def previous_workouts(
        cls, target: Workout, all_workouts: Iterable[Workout]
    ) -> List[Workout]:
        """Completed workouts strictly older than ``target``, newest first."""
        when = DateTools.parse_timestamp(target.date)
        return cls._newest_first(
            w
            for w in all_workouts
            if w.completed
            and w.id != target.id
            and DateTools.parse_timestamp(w.date) < when
        )

    @staticmethod
    def _find(workout: Workout, name: str) -> Optional[WorkoutExercise]:
        for ex in workout.exercises:
            if ex.exercise.name == name:
                return ex
        return None

    @classmethod
    def compare_exercise(
        cls, current: WorkoutExercise, baseline: Optional[WorkoutExercise]
    ) -> dict:
        cur_weight = MathTools.max_weight(current.sets)
        prev_weight = MathTools.max_weight(baseline.sets) if baseline else 0
        cur_volume = MathTools.volume(current.sets)
        prev_volume = MathTools.volume(baseline.sets) if baseline else 0
        if cur_weight > prev_weight and prev_weight > 0:
            status, change = "progressed", cur_weight - prev_weight
        elif cur_weight < prev_weight and prev_weight > 0:
            status, change = "decreased", prev_weight - cur_weight
        else:
            status, change = "maintained", 0
        return {
            "name": current.exercise.name,
            "current_max_weight": cur_weight,
            "current_max_reps": MathTools.max_reps(current.sets),
            "current_total_volume": cur_volume,
            "current_sets": len(MathTools.completed_sets(current.sets)),
            "previous_max_weight": prev_weight,
            "previous_max_reps": MathTools.max_reps(baseline.sets) if baseline else 0,
            "previous_total_volume": prev_volume,
            "previous_sets": len(MathTools.completed_sets(baseline.sets)) if baseline else 0,
            "status": status,
            "change": change,
            "volume_change": cur_volume - prev_volume if prev_volume > 0 else 0,
        }

    @classmethod
    def comparisons(cls, target: Workout, all_workouts: Iterable[Workout]) -> List[dict]:
        history = cls.previous_workouts(target, all_workouts)
        result = []
        for ex in target.exercises:
            baseline = None
            for w in history:
                baseline = cls._find(w, ex.exercise.name)
                if baseline is not None:
                    break
            result.append(cls.compare_exercise(ex, baseline))
        return result

    @staticmethod
    def personal_records(comparisons: Iterable[dict], unit: str = "lbs") -> List[dict]:
        records = []
        for comp in comparisons:
            if comp["status"] == "progressed" and comp["previous_max_weight"] > 0:
                records.append(
                    {
                        "exercise_name": comp["name"],
                        "improvement": f"+{MathTools.format_number(comp['change'])} {unit}",
                        "previous_value": comp["previous_max_weight"],
                        "new_value": comp["current_max_weight"],
                        "type": "weight",
                    }
                )
            if (
                comp["current_max_reps"] > comp["previous_max_reps"]
                and comp["previous_max_reps"] > 0
                and comp["current_max_weight"] >= comp["previous_max_weight"]
            ):
                gained = comp["current_max_reps"] - comp["previous_max_reps"]
                records.append(
                    {
                        "exercise_name": comp["name"],
                        "improvement": f"+{MathTools.format_number(gained)} reps",
                        "previous_value": comp["previous_max_reps"],
                        "new_value": comp["current_max_reps"],
                        "type": "reps",
                    }
                )
        return records

    @classmethod
    def progress_streak(cls, all_workouts: Iterable[Workout]) -> dict:
        """Return the current and best run of workouts that beat an earlier max weight.

        A workout progresses when any of its exercises lifts more than the same
        exercise did in the nearest older workout containing it.
        """
        history = cls._newest_first(w for w in all_workouts if w.completed)
        flags = []
        for i, workout in enumerate(history):
            progressed = False
            for ex in workout.exercises:
                for older in history[i + 1:]:
                    prev = cls._find(older, ex.exercise.name)
                    if prev is None:
                        continue
                    if MathTools.max_weight(ex.sets) > MathTools.max_weight(prev.sets):
                        progressed = True
                    break
                if progressed:
                    break
            flags.append(progressed)

        current = 0
        for flag in flags:
            if not flag:
                break
            current += 1
        best = run = 0
        for flag in flags:
            run = run + 1 if flag else 0
            best = max(best, run)
        return {"current": current, "best": best}

    @classmethod
    def next_goals(cls, comparisons: List[dict], unit: str = "lbs") -> List[dict]:
        goals = []
        for comp in comparisons[: cls.GOAL_LIMIT]:
            name = comp["name"]
            compound = any(lift.lower() in name.lower() for lift in cls.COMPOUND_LIFTS)
            increment = cls.COMPOUND_INCREMENT if compound else cls.ACCESSORY_INCREMENT
            if comp["status"] == "decreased":
                target = comp["previous_max_weight"]
                text = f"{name}: Match {MathTools.format_number(target)} {unit}"
                action = "match"
            else:
                target = comp["current_max_weight"] + increment
                text = f"{name}: Try {MathTools.format_number(target)} {unit}"
                action = "increase"
            goals.append(
                {"exercise": name, "action": action, "target_weight": target, "text": text}
            )
        return goals

    @classmethod
    def compute(
        cls, target: Workout, all_workouts: Iterable[Workout], unit: str = "lbs"
    ) -> dict:
        all_workouts = list(all_workouts)
        comparisons = cls.comparisons(target, all_workouts)
        total_volume = sum(MathTools.exercise_volume(ex) for ex in target.exercises)
        total_sets = sum(len(MathTools.completed_sets(ex.sets)) for ex in target.exercises)

        previous = cls.previous_workouts(target, all_workouts)
        previous_stats = None
        volume_change = 0
        sets_change = 0
        if previous:
            last = previous[0]
            previous_stats = {
                "id": last.id,
                "volume": sum(MathTools.exercise_volume(ex) for ex in last.exercises),
                "sets": sum(len(MathTools.completed_sets(ex.sets)) for ex in last.exercises),
            }
            volume_change = MathTools.percent_change(total_volume, previous_stats["volume"])
            sets_change = total_sets - previous_stats["sets"]

        return {
            "workout_id": target.id,
            "name": target.name,
            "date": target.date,
            "comparisons": comparisons,
            "personal_records": cls.personal_records(comparisons, unit),
            "total_volume": total_volume,
            "total_sets": total_sets,
            "previous_workout": previous_stats,
            "volume_change": volume_change,
            "sets_change": sets_change,
            "streak": cls.progress_streak(all_workouts),
            "next_goals": cls.next_goals(comparisons, unit),
        }

    @staticmethod
    def format_summary(recap: dict, unit: str = "lbs") -> str:
        """Render a recap as shareable plain text."""
        volume = f"Total Volume: {MathTools.format_number(recap['total_volume'])} {unit}"
        if recap["previous_workout"] and recap["volume_change"]:
            volume += f" ({recap['volume_change']:+d}%)"
        lines = [
            "Workout Complete!",
            recap["name"],
            DateTools.parse_timestamp(recap["date"]).strftime("%b %d, %Y"),
            "",
            volume,
            f"Sets Completed: {recap['total_sets']}",
        ]
        if recap["personal_records"]:
            lines.append("")
            lines.append("Personal Records:")
            for pr in recap["personal_records"]:
                lines.append(f"  - {pr['exercise_name']}: {pr['improvement']}")
        if recap["streak"]["current"] > 0:
            lines.append("")
            lines.append(f"{recap['streak']['current']} workout progress streak!")
        return "\n".join(lines)
