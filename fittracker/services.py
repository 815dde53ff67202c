from __future__ import annotations

import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from .constants import MEAL_TYPE_LABELS, MEAL_TYPES
from .models import (
    MealOption,
    ShoppingListItem,
    Supplement,
    ValidationError,
    WeightEntry,
    WorkoutExercise,
    WorkoutSet,
    coerce_number,
    parse_number_cell,
)

# ---------------------------------------------------------------------------
# Workout logger
# ---------------------------------------------------------------------------

_SET_FIELDS = ("reps", "weight")


@dataclass
class LoggedExercise:
    id: str
    name: str
    sets: list[WorkoutSet] = field(default_factory=lambda: [WorkoutSet()])

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "sets": [item.to_dict() for item in self.sets]}


class WorkoutLog:
    """Free-form workout being typed in: exercises, each with at least one set."""

    def __init__(self, exercises: Iterable[LoggedExercise] | None = None) -> None:
        self.exercises: list[LoggedExercise] = list(exercises or [])

    @classmethod
    def from_payload(cls, payload: Iterable[Mapping[str, Any]]) -> "WorkoutLog":
        log = cls()
        for item in payload:
            exercise = log.add_exercise(str(item.get("name") or ""))
            if exercise is None:
                continue
            sets = [WorkoutSet.from_dict(raw) for raw in item.get("sets") or [] if isinstance(raw, Mapping)]
            if sets:
                exercise.sets = sets
        return log

    def _find(self, exercise_id: str) -> LoggedExercise:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        raise KeyError(exercise_id)

    def add_exercise(self, name: str) -> LoggedExercise | None:
        clean = (name or "").strip()
        if not clean:
            return None
        exercise = LoggedExercise(id=uuid.uuid4().hex[:8], name=clean)
        self.exercises.append(exercise)
        return exercise

    def add_set(self, exercise_id: str) -> None:
        self._find(exercise_id).sets.append(WorkoutSet())

    def update_set(self, exercise_id: str, set_index: int, field_name: str, value: Any) -> None:
        if field_name not in _SET_FIELDS:
            raise ValidationError(f"field must be one of {', '.join(_SET_FIELDS)}; received {field_name!r}.")
        target = self._find(exercise_id).sets[set_index]
        number = parse_number_cell(value) or 0.0
        if field_name == "reps":
            target.reps = int(number)
        else:
            target.weight = number

    def remove_set(self, exercise_id: str, set_index: int) -> None:
        exercise = self._find(exercise_id)
        if len(exercise.sets) <= 1:
            return
        del exercise.sets[set_index]

    def remove_exercise(self, exercise_id: str) -> None:
        self.exercises = [exercise for exercise in self.exercises if exercise.id != exercise_id]

    def to_exercises(self) -> list[WorkoutExercise]:
        return [WorkoutExercise(name=item.name, sets=list(item.sets)) for item in self.exercises]

    def to_payload(self) -> list[dict[str, Any]]:
        return [exercise.to_dict() for exercise in self.exercises]


def summarize_workout(exercises: Sequence[WorkoutExercise]) -> dict[str, Any]:
    """
    Post-workout statistics shown after saving a week.

    ``total_weight`` is lifted volume over sets with both weight and reps. Each set
    beating last week's best set adds its volume gain to ``total_volume_increase``.
    ``strength_percentage`` averages, over exercises that have a previous best,
    how much the best set of today beats it (negative changes count as 0).
    """
    total_weight = 0.0
    total_volume_increase = 0.0
    improvement_count = 0
    for exercise in exercises:
        previous = exercise.previous_week_best
        for item in exercise.sets:
            if item.weight <= 0 or item.reps <= 0:
                continue
            total_weight += item.volume
            if previous is not None:
                gain = item.volume - previous.volume
                if gain > 0:
                    total_volume_increase += gain
                    improvement_count += 1

    with_previous = [exercise for exercise in exercises if exercise.previous_week_best is not None]
    strength_percentage = 0.0
    if with_previous:
        total_percentage = 0.0
        for exercise in with_previous:
            best = max(exercise.sets, key=lambda item: item.volume, default=WorkoutSet())
            previous_volume = exercise.previous_week_best.volume  # type: ignore[union-attr]
            if best.weight > 0 and previous_volume > 0:
                total_percentage += max(0.0, (best.volume - previous_volume) / previous_volume * 100)
        strength_percentage = total_percentage / len(with_previous)

    return {
        "total_weight": round(total_weight),
        "total_volume_increase": round(total_volume_increase),
        "improvement_count": improvement_count,
        "strength_percentage": round(strength_percentage, 1),
        "completed_exercises": sum(1 for exercise in exercises if exercise.completed),
        "exercise_count": len(exercises),
    }


# ---------------------------------------------------------------------------
# Weight tracker
# ---------------------------------------------------------------------------


def validate_weight_input(value: Any) -> float:
    """The body weight a client types in: required and strictly positive."""
    weight = coerce_number(value, field="weight")
    if weight <= 0:
        raise ValidationError("weight must be a positive number.")
    return weight


def build_weight_entry(payload: Mapping[str, Any]) -> WeightEntry:
    def score(name: str) -> float:
        raw = payload.get(name)
        if raw in (None, ""):
            return 0.0
        return coerce_number(raw, field=name, minimum=0, maximum=10)

    notes = str(payload.get("notes") or "").strip()
    return WeightEntry(
        date="",
        weight=validate_weight_input(payload.get("weight")),
        sleep=score("sleep"),
        stress=score("stress"),
        fatigue=score("fatigue"),
        motivation=score("motivation"),
        training=score("training"),
        notes=notes or None,
    )


def weight_trend(entries: Sequence[WeightEntry | Mapping[str, Any]]) -> float:
    """Last minus first weight; 0 with fewer than two entries."""
    if len(entries) < 2:
        return 0.0

    def weight_of(entry: WeightEntry | Mapping[str, Any]) -> float:
        if isinstance(entry, WeightEntry):
            return entry.weight
        return parse_number_cell(entry.get("weight")) or 0.0

    return round(weight_of(entries[-1]) - weight_of(entries[0]), 2)


# ---------------------------------------------------------------------------
# Meal planner / viewer
# ---------------------------------------------------------------------------

FOOD_SUGGESTIONS: tuple[str, ...] = (
    "Csirkemell",
    "Lazac",
    "Tuna",
    "Tojás",
    "Zabpehely",
    "Barnarizi",
    "Édesburgonya",
    "Brokkoli",
    "Spenót",
    "Banán",
    "Alma",
    "Mandula",
    "Görög joghurt",
    "Avokádó",
)


@dataclass
class PlannedFood:
    id: str
    name: str
    amount: str
    meal_type: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "amount": self.amount, "meal_type": self.meal_type}


class MealPlan:
    def __init__(self) -> None:
        self.foods: list[PlannedFood] = []

    @classmethod
    def from_payload(cls, payload: Iterable[Mapping[str, Any]]) -> "MealPlan":
        plan = cls()
        for item in payload:
            plan.add_food(item.get("name"), item.get("amount"), item.get("meal_type") or "breakfast")
        return plan

    def add_food(self, name: Any, amount: Any, meal_type: str = "breakfast") -> PlannedFood:
        clean_name = str(name or "").strip()
        clean_amount = str(amount or "").strip()
        if not clean_name or not clean_amount:
            raise ValidationError("Food name and amount are both required.")
        if meal_type not in MEAL_TYPES:
            raise ValidationError(f"meal_type must be one of {', '.join(MEAL_TYPES)}; received {meal_type!r}.")
        food = PlannedFood(id=uuid.uuid4().hex[:8], name=clean_name, amount=clean_amount, meal_type=meal_type)
        self.foods.append(food)
        return food

    def remove_food(self, food_id: str) -> None:
        self.foods = [food for food in self.foods if food.id != food_id]

    def grouped(self) -> dict[str, list[PlannedFood]]:
        groups: dict[str, list[PlannedFood]] = {}
        for food in self.foods:
            groups.setdefault(food.meal_type, []).append(food)
        return groups

    def validate_for_save(self) -> list[dict[str, Any]]:
        if not self.foods:
            raise ValidationError("Add at least one food before saving the plan.")
        return [food.to_dict() for food in self.foods]


def generate_shopping_list(selected: Iterable[tuple[MealOption, float]]) -> list[ShoppingListItem]:
    """
    Merge the ingredients of the selected meals into one shopping list.

    Ingredients with the same name and unit are summed (amount times quantity);
    each item remembers which meals asked for it, in order.
    """
    items: "OrderedDict[tuple[str, str], ShoppingListItem]" = OrderedDict()
    for option, quantity in selected:
        for ingredient in option.ingredients:
            amount = (parse_number_cell(ingredient.amount) or 0.0) * quantity
            key = (ingredient.name, ingredient.unit)
            if key in items:
                items[key].total_amount += amount
                items[key].meals.append(option.name)
            else:
                items[key] = ShoppingListItem(
                    ingredient=ingredient.name,
                    total_amount=amount,
                    unit=ingredient.unit,
                    meals=[option.name],
                )
    return list(items.values())


def resolve_meal_selection(
    options: Mapping[str, Sequence[MealOption]],
    selection: Iterable[Mapping[str, Any]],
) -> list[tuple[MealOption, float]]:
    """Turn ``[{meal_type, name, quantity}]`` picks into meal options."""
    resolved: list[tuple[MealOption, float]] = []
    for pick in selection:
        meal_type = str(pick.get("meal_type") or "")
        name = str(pick.get("name") or "").strip()
        match = next((option for option in options.get(meal_type, []) if option.name == name), None)
        if match is None:
            raise ValidationError(f"Unknown meal option {name!r} for {meal_type or 'unknown meal'}.")
        quantity = coerce_number(pick.get("quantity", 1), field="quantity", minimum=0)
        resolved.append((match, quantity))
    return resolved


def daily_calorie_summary(meals: Mapping[str, Sequence[MealOption]], target: float) -> dict[str, Any]:
    sections = {
        meal_type: {
            "label": MEAL_TYPE_LABELS.get(meal_type, meal_type),
            "calories": sum(option.calories for option in options),
        }
        for meal_type, options in meals.items()
        if options
    }
    total = sum(section["calories"] for section in sections.values())
    progress = min(total / target * 100, 100.0) if target > 0 else 0.0
    return {
        "total_calories": total,
        "target": target,
        "remaining": max(target - total, 0),
        "progress_percent": round(progress, 1),
        "sections": sections,
    }


# ---------------------------------------------------------------------------
# Supplements
# ---------------------------------------------------------------------------

CATEGORY_LABELS = {
    "vitamin": "Vitamin",
    "digestive": "Emésztés",
    "joint": "Ízület",
    "extract": "Kivonat",
    "sleep": "Alvás",
    "pre-workout": "Edzés előtti",
}


def category_label(category: str) -> str:
    return CATEGORY_LABELS.get(category, "Egyéb")


def apply_supplement_state(supplements: Sequence[Supplement], taken: Mapping[str, bool]) -> list[Supplement]:
    for supplement in supplements:
        supplement.taken = bool(taken.get(supplement.name, False))
    return list(supplements)


def toggle_supplement(supplements: Sequence[Supplement], index: int) -> tuple[list[Supplement], str]:
    """Flip one supplement's ``taken`` flag; returns the new list and a confirmation."""
    if index < 0 or index >= len(supplements):
        raise ValidationError(f"No supplement at position {index}.")
    updated = [
        replace(item, taken=not item.taken) if position == index else item
        for position, item in enumerate(supplements)
    ]
    target = updated[index]
    if target.taken:
        message = f"{target.name} hozzáadva a mai listához."
    else:
        message = f"{target.name} eltávolítva a mai listából."
    return updated, message


def supplement_progress(supplements: Sequence[Supplement]) -> dict[str, Any]:
    taken = sum(1 for item in supplements if item.taken)
    total = len(supplements)
    return {
        "taken": taken,
        "total": total,
        "percent": round(taken / total * 100) if total else 0,
    }


def purchase_action(supplement: Supplement) -> dict[str, Any]:
    if supplement.purchase_link:
        return {"ok": True, "url": supplement.purchase_link, "message": f"Megnyílik a {supplement.name} vásárlási oldala."}
    return {"ok": False, "error": "Ehhez a kiegészítőhöz nincs beállítva vásárlási link."}


# ---------------------------------------------------------------------------
# Admin dashboard
# ---------------------------------------------------------------------------

_ACTIVITY_FLAGS = ("workout_completed", "weight_logged", "meal_plan_followed")


def activity_status(client: Mapping[str, Any]) -> str:
    done = sum(1 for flag in _ACTIVITY_FLAGS if client.get(flag))
    return f"{done}/{len(_ACTIVITY_FLAGS)}"


def admin_overview(clients: Sequence[Mapping[str, Any]], today: date | None = None) -> dict[str, Any]:
    """Headline numbers for the coach: registry size and today's activity."""
    day = (today or date.today()).isoformat()
    total = len(clients)
    completed_flags = sum(1 for client in clients for flag in _ACTIVITY_FLAGS if client.get(flag))
    return {
        "total_clients": total,
        "active_today": sum(1 for client in clients if str(client.get("last_activity") or "").startswith(day)),
        "workouts_completed": sum(1 for client in clients if client.get("workout_completed")),
        "weekly_average": round(completed_flags / (total * len(_ACTIVITY_FLAGS)) * 100) if total else 0,
        "clients": [{**client, "status": activity_status(client)} for client in clients],
    }


# ---------------------------------------------------------------------------
# Install hint
# ---------------------------------------------------------------------------

_IOS_RE = re.compile(r"iPad|iPhone|iPod")
_ANDROID_RE = re.compile(r"Android")


def install_hint(user_agent: str | None) -> dict[str, Any]:
    """Home-screen install instructions matching the requesting device."""
    agent = user_agent or ""
    if _IOS_RE.search(agent):
        return {
            "platform": "ios",
            "supported": True,
            "title": "iOS Telepítés",
            "message": "Safari böngészőben nyisd meg az oldalt, majd kattints a 'Megosztás' gombra "
            "és válaszd a 'Hozzáadás a kezdőképernyőhöz' opciót.",
        }
    if _ANDROID_RE.search(agent):
        return {
            "platform": "android",
            "supported": True,
            "title": "Android Telepítés",
            "message": "Chrome böngészőben a címsor mellett megjelenik egy 'Telepítés' ikon. "
            "Kattints rá és kövesd az utasításokat.",
        }
    return {
        "platform": "desktop",
        "supported": False,
        "title": "Telepítés nem támogatott",
        "message": "Ez az eszköz nem támogatja az automatikus telepítést. Próbáld meg egy mobileszközön!",
    }
