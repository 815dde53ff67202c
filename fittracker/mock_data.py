"""Static fixtures served whenever a client's spreadsheet is missing or unreadable.

Every helper builds fresh objects so callers are free to mutate the result.
"""

from __future__ import annotations

from .config import get_config
from .models import (
    DailyMeals,
    MealIngredient,
    MealOption,
    Supplement,
    UserProgress,
    WeightEntry,
    WorkoutExercise,
    WorkoutSet,
    WorkoutSheet,
    WorkoutWeek,
)

# (sheet name, [(exercise, work sets, rep range, video, previous best weight, previous best reps)])
_WORKOUT_TEMPLATE: list[tuple[str, list[tuple[str, int, str, str, float, int]]]] = [
    (
        "Felsőtest 1",
        [
            ("Fekvenyomás 1 kezességgel", 3, "6-10", "https://example.com/video1", 80.0, 8),
            ("Tárogatás gépen", 3, "8-12", "https://example.com/video2", 60.0, 10),
            ("Oldalemeles padhoz dőlve", 4, "10-15", "https://example.com/video3", 15.0, 12),
        ],
    ),
    (
        "Láb",
        [
            ("Guggolás", 4, "8-12", "https://example.com/video4", 100.0, 10),
            ("Román felhúzás", 3, "10-12", "https://example.com/video5", 80.0, 10),
        ],
    ),
    (
        "Felsőtest 2",
        [
            ("Húzódzkodás", 3, "5-8", "https://example.com/video6", 10.0, 6),
        ],
    ),
    (
        "Push/Pull",
        [
            ("Vállnomás", 4, "8-10", "https://example.com/video7", 40.0, 8),
        ],
    ),
]

FALLBACK_EXERCISES: tuple[str, ...] = ("Guggolás", "Fekvenyomás", "Húzódzkodás")


def fallback_exercise_names() -> list[str]:
    return list(FALLBACK_EXERCISES)


def mock_user_progress() -> UserProgress:
    return UserProgress(total_workouts=12, weekly_workouts=4, has_minimum_workouts=True)


def mock_workout_sheets(weeks: int | None = None) -> list[WorkoutSheet]:
    """Four demo sheets; from week two on each exercise remembers last week's best set."""
    week_count = weeks or get_config().program_weeks
    sheets: list[WorkoutSheet] = []
    for sheet_name, exercises in _WORKOUT_TEMPLATE:
        sheet_weeks: list[WorkoutWeek] = []
        for week_index in range(week_count):
            week_exercises = [
                WorkoutExercise(
                    name=name,
                    work_sets=work_sets,
                    rep_range=rep_range,
                    video_url=video,
                    sets=[],
                    previous_week_best=WorkoutSet(weight=best_weight, reps=best_reps) if week_index > 0 else None,
                )
                for name, work_sets, rep_range, video, best_weight, best_reps in exercises
            ]
            sheet_weeks.append(WorkoutWeek(week_number=week_index + 1, exercises=week_exercises))
        sheets.append(WorkoutSheet(name=sheet_name, weeks=sheet_weeks))
    return sheets


def mock_meal_options() -> dict[str, list[MealOption]]:
    return {
        "breakfast": [
            MealOption(
                name="Reggeli szendvics",
                amount="1 db",
                calories=350,
                ingredients=[
                    MealIngredient("Teljes kiőrlésű kenyér", "2", "szelet"),
                    MealIngredient("Sonka", "50", "g"),
                    MealIngredient("Sajt", "30", "g"),
                    MealIngredient("Paradicsom", "1", "db"),
                ],
            ),
            MealOption(
                name="Joghurt müzlivel",
                amount="200g",
                calories=150,
                ingredients=[
                    MealIngredient("Görög joghurt", "150", "g"),
                    MealIngredient("Müzli", "30", "g"),
                    MealIngredient("Méz", "1", "tk"),
                ],
            ),
        ],
        "lunch": [
            MealOption(
                name="Csirkemell rizzsel",
                amount="300g",
                calories=450,
                ingredients=[
                    MealIngredient("Csirkemell", "150", "g"),
                    MealIngredient("Basmati rizs", "80", "g"),
                    MealIngredient("Brokkoli", "100", "g"),
                    MealIngredient("Olívaolaj", "1", "ek"),
                ],
            ),
        ],
        "dinner": [
            MealOption(
                name="Lazac zöldségekkel",
                amount="250g",
                calories=380,
                ingredients=[
                    MealIngredient("Lazacfilé", "120", "g"),
                    MealIngredient("Édesburgonya", "100", "g"),
                    MealIngredient("Spárga", "80", "g"),
                ],
            ),
        ],
    }


def mock_daily_meals() -> DailyMeals:
    options = mock_meal_options()
    return DailyMeals(
        breakfast=[options["breakfast"][0]],
        lunch=[options["lunch"][0]],
        dinner=[options["dinner"][0]],
        total_calories=1180,
        meal_count=3,
    )


def mock_weight_entries() -> list[WeightEntry]:
    return [
        WeightEntry(date="2024.05.28", weight=91.60, sleep=8, stress=3, fatigue=4, motivation=8, training=7),
        WeightEntry(date="2024.05.29", weight=91.40, sleep=7, stress=4, fatigue=5, motivation=7, training=8),
    ]


def mock_supplements() -> list[Supplement]:
    return [
        Supplement(
            name="Omega 3",
            description="Esszenciális zsírsav, hormon termelés",
            dosage="Reggel 2db",
            timing="Reggel",
            category="vitamin",
            purchase_link="https://example.com/omega3",
        ),
        Supplement(
            name="C-vitamin",
            description="Általános egészség, gyulladás csökkentés",
            dosage="Reggel 2db",
            timing="Reggel",
            category="vitamin",
            purchase_link="https://example.com/vitamin-c",
        ),
        Supplement(
            name="Magnézium",
            description="Nyugtató hatású",
            dosage="Este 3 db",
            timing="Este",
            category="sleep",
            purchase_link="https://example.com/magnesium",
        ),
    ]
