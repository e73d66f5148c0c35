import argparse
import asyncio
import json
import sys

from algorithms import WorkoutRecap
from exceptions import MigrationError
from logging_config import configure_logging
from rest_api import FitnessAPI
from seed_sample_data import seed_workouts


def build_api(args: argparse.Namespace) -> FitnessAPI:
    api = FitnessAPI(args.db, args.local, args.yaml, args.user)
    configure_logging(api.settings.log_level)
    return api


def export_workouts(api: FitnessAPI, out_path: str) -> int:
    """Write the workout history as JSON to ``out_path`` (``-`` for stdout)."""
    data = json.dumps(
        {"workouts": [w.model_dump() for w in api.workouts.workouts]}, indent=2
    )
    if out_path == "-":
        print(data)
    else:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(data)
    return len(api.workouts.workouts)


def demo_data(api: FitnessAPI) -> None:
    """Populate the history with demo workouts if empty."""
    count = seed_workouts(api.workouts, api.catalog)
    if not count:
        print("History already contains workouts or one is in progress")
        return
    print(f"Demo data inserted ({count} workouts)")


def print_summary(api: FitnessAPI) -> None:
    summary = api.statistics.summary()
    recap = api.statistics.weekly_recap()
    print(f"Total workouts: {summary.total_workouts}")
    print(f"This week: {summary.this_week_workouts}")
    print(f"Total duration: {int(summary.total_duration // 60)} min")
    print(f"Favorite exercise: {summary.favorite_exercise or '-'}")
    print(
        f"Volume (7 days): {recap['this_week_volume']} ({recap['volume_change']:+d}%)"
    )
    for item in recap["improved_exercises"]:
        print(f"  improved: {item['name']} ({item['improvement_type']})")


def print_recap(api: FitnessAPI, workout_id: str = None) -> None:
    if workout_id:
        recap = api.statistics.workout_recap(workout_id)
    else:
        recap = api.statistics.latest_recap()
    if recap is None:
        print("No completed workouts")
        return
    print(WorkoutRecap.format_summary(recap, api.settings.weight_unit))


def _add_storage_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db", default="fitness.db")
    parser.add_argument("--local", default="local_storage.db")
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument("--user", default=None)


def main() -> None:
    parser = argparse.ArgumentParser(description="Fitness tracker commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    _add_storage_args(srv)
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    demo = sub.add_parser("demo")
    _add_storage_args(demo)

    summ = sub.add_parser("summary")
    _add_storage_args(summ)

    rec = sub.add_parser("recap")
    _add_storage_args(rec)
    rec.add_argument("--workout", default=None)

    exp = sub.add_parser("export")
    _add_storage_args(exp)
    exp.add_argument("--out", default="workouts.json")

    mig = sub.add_parser("migrate")
    _add_storage_args(mig)

    args = parser.parse_args()
    api = build_api(args)

    if args.cmd == "serve":
        import uvicorn

        uvicorn.run(api.app, host=args.host, port=args.port)
    elif args.cmd == "demo":
        demo_data(api)
    elif args.cmd == "summary":
        print_summary(api)
    elif args.cmd == "recap":
        try:
            print_recap(api, args.workout)
        except ValueError as e:
            sys.exit(str(e))
    elif args.cmd == "export":
        count = export_workouts(api, args.out)
        if args.out != "-":
            print(f"Exported {count} workouts to {args.out}")
    elif args.cmd == "migrate":
        if not api.user_id:
            sys.exit("--user is required to migrate")
        try:
            counts = asyncio.run(api.migrator.migrate(api.user_id))
        except MigrationError as e:
            sys.exit(str(e))
        print(f"Migrated {counts}")


if __name__ == "__main__":
    main()
