from __future__ import annotations

import pytest

from fittracker.models import (
    DailyMeals,
    MealOption,
    Supplement,
    ValidationError,
    WeightEntry,
    WorkoutExercise,
    WorkoutSet,
    coerce_number,
    normalise_email,
    parse_number_cell,
    parse_rep_range,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("91,6 kg", 91.6),
        ("350 kcal", 350.0),
        (" 12", 12.0),
        (7, 7.0),
        ("-2.5", -2.5),
        ("n/a", None),
        ("", None),
        (None, None),
        (True, None),
    ],
)
def test_parse_number_cell(value, expected):
    assert parse_number_cell(value) == expected


def test_parse_rep_range():
    assert parse_rep_range("6-10") == (6, 10)
    assert parse_rep_range(" 8 ") == (8, 8)
    assert parse_rep_range("12–8") == (8, 12)
    assert parse_rep_range("sok") is None
    assert parse_rep_range(None) is None


def test_coerce_number_guards():
    assert coerce_number("82,5", field="weight") == 82.5
    with pytest.raises(ValidationError):
        coerce_number("  ")
    with pytest.raises(ValidationError):
        coerce_number(None)
    with pytest.raises(ValidationError):
        coerce_number(True)
    with pytest.raises(ValidationError):
        coerce_number("3.5", allow_float=False)
    with pytest.raises(ValidationError, match="<= 10"):
        coerce_number(11, maximum=10)


def test_normalise_email():
    assert normalise_email("  Anna@Example.COM ") == "anna@example.com"
    with pytest.raises(ValidationError):
        normalise_email("anna@")
    with pytest.raises(ValidationError):
        normalise_email(None)


def test_workout_exercise_from_dict():
    exercise = WorkoutExercise.from_dict(
        {
            "name": " Fekvenyomás ",
            "work_sets": "3",
            "sets": [{"weight": "80,5", "reps": "8"}, "junk"],
            "previous_week_best": {"weight": 80, "reps": 7},
        }
    )
    assert exercise.name == "Fekvenyomás"
    assert exercise.work_sets == 3
    assert exercise.sets == [WorkoutSet(80.5, 8)]
    assert exercise.previous_week_best.volume == 560
    assert exercise.to_dict()["previous_week_best"] == {"weight": 80.0, "reps": 7}

    with pytest.raises(ValidationError):
        WorkoutExercise.from_dict({"name": "  "})
    with pytest.raises(ValidationError):
        WorkoutExercise.from_dict({"name": "X", "sets": "80x8"})


def test_meal_option_from_dict_and_daily_sections():
    option = MealOption.from_dict({"name": "Tojás", "calories": "156 kcal", "ingredients": [{"name": "Tojás", "amount": 2, "unit": "db"}]})
    assert option.calories == 156.0
    assert option.ingredients[0].amount == "2"
    with pytest.raises(ValidationError):
        MealOption.from_dict({"calories": 10})

    meals = DailyMeals(breakfast=[option], snack=[])
    assert set(meals.sections()) == {"breakfast", "lunch", "dinner"}
    assert "snack" not in meals.to_dict()


def test_weight_entry_omits_empty_notes():
    assert "notes" not in WeightEntry(date="2024.05.28", weight=91.6).to_dict()
    assert WeightEntry(date="2024.05.28", weight=91.6, notes="jó").to_dict()["notes"] == "jó"


def test_supplement_rejects_unknown_category():
    with pytest.raises(ValidationError):
        Supplement(name="Kreatin", description="", dosage="5 g", timing="Reggel", category="protein")
    assert "purchase_link" not in Supplement(name="D3", description="", dosage="1", timing="Reggel").to_dict()
