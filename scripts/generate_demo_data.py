from __future__ import annotations

import argparse
import csv
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Sequence

from fittracker import mock_data, storage
from fittracker.models import WeightEntry, WorkoutExercise, WorkoutSet

DEFAULT_CLIENTS = [
    ("Kovács Anna", "anna.demo@example.com"),
    ("Nagy Béla", "bela.demo@example.com"),
    ("Szabó Csilla", "csilla.demo@example.com"),
]


def _build_weight_entries(days: int, start: date, rng: random.Random) -> list[tuple[date, WeightEntry]]:
    entries: list[tuple[date, WeightEntry]] = []
    weight = round(rng.uniform(62, 95), 1)
    for offset in range(days):
        day = start + timedelta(days=offset)
        weight = round(weight + rng.uniform(-0.35, 0.2), 1)
        entry = WeightEntry(
            date="",
            weight=weight,
            sleep=rng.randint(5, 9),
            stress=rng.randint(2, 7),
            fatigue=rng.randint(2, 7),
            motivation=rng.randint(5, 10),
            training=rng.randint(5, 10),
            notes=rng.choice(["", "Jól aludtam.", "Nehéz nap volt.", "Pihenőnap."]) or None,
        )
        entries.append((day, entry))
    return entries


def _build_workouts(weeks: int, rng: random.Random) -> list[tuple[str, int, list[WorkoutExercise]]]:
    workouts: list[tuple[str, int, list[WorkoutExercise]]] = []
    for sheet in mock_data.mock_workout_sheets(weeks):
        for week in sheet.weeks:
            for exercise in week.exercises:
                base = exercise.previous_week_best.weight if exercise.previous_week_best else 20.0
                load = round(base + 2.5 * (week.week_number - 1) + rng.choice([0.0, 2.5]), 1)
                exercise.sets = [
                    WorkoutSet(weight=load, reps=rng.randint(6, 12)) for _ in range(max(exercise.work_sets, 1))
                ]
            workouts.append((sheet.name, week.week_number, week.exercises))
    return workouts


def _write_csv(path: Path, rows: Sequence[dict[str, object]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = ["email", "date", "weight", "sleep", "stress", "fatigue", "motivation", "training", "notes"]
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow({name: row.get(name) for name in fieldnames})


def seed(days: int, weeks: int, start: date, seed_value: int, clients: Sequence[tuple[str, str]]) -> list[dict[str, object]]:
    """Register demo clients and fill their weight and workout stores."""
    rng = random.Random(seed_value)
    exported: list[dict[str, object]] = []
    for name, email in clients:
        if storage.get_client_by_email(email) is None:
            storage.add_client(name, email)
        for day, entry in _build_weight_entries(days, start, rng):
            saved = storage.save_weight_entry(email, entry, today=day)
            exported.append({"email": email, **saved})
        for sheet_name, week_number, exercises in _build_workouts(weeks, rng):
            storage.save_workout(email, sheet_name, week_number, exercises)
        storage.record_client_activity(
            email,
            workout=rng.random() < 0.6,
            weight=rng.random() < 0.7,
            meal=rng.random() < 0.5,
        )
    return exported


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the local data directory with demo clients.")
    parser.add_argument("--days", type=int, default=28, help="Number of daily weight check-ins per client.")
    parser.add_argument("--weeks", type=int, default=4, help="Program weeks of saved workouts per client.")
    parser.add_argument(
        "--start-date",
        type=date.fromisoformat,
        default=(date.today() - timedelta(days=27)).isoformat(),
        help="First check-in date (YYYY-MM-DD). Defaults to 27 days before today.",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility.")
    parser.add_argument("--csv", type=Path, default=None, help="Optionally export the weight entries as .csv.")
    args = parser.parse_args()

    if isinstance(args.start_date, str):
        start = date.fromisoformat(args.start_date)
    else:
        start = args.start_date

    rows = seed(days=args.days, weeks=args.weeks, start=start, seed_value=args.seed, clients=DEFAULT_CLIENTS)
    if args.csv:
        _write_csv(args.csv, rows)

    print(f"Seeded {len(DEFAULT_CLIENTS)} demo clients with {len(rows)} weight entries")


if __name__ == "__main__":
    main()
