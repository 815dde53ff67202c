from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .constants import NO_ACTIVITY_MARKER, SUPPLEMENT_CATEGORIES

__all__ = [
    "coerce_number",
    "parse_number_cell",
    "parse_rep_range",
    "normalise_email",
    "ValidationError",
    "WorkoutSet",
    "WorkoutExercise",
    "WorkoutWeek",
    "WorkoutSheet",
    "UserProgress",
    "MealIngredient",
    "MealOption",
    "ShoppingListItem",
    "DailyMeals",
    "WeightEntry",
    "Supplement",
    "Client",
]

_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
_REP_RANGE_RE = re.compile(r"^\s*(\d+)\s*(?:[-–—/]\s*(\d+))?\s*$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    maximum: float | None = None,
    allow_float: bool = True,
) -> float:
    """
    Convert arbitrary input into a float with guardrails.

    The `minimum` and `maximum` bounds (inclusive) trigger a ValidationError when
    breached. When `allow_float` is False, the coerced number must be whole.
    Comma decimal separators are accepted since clients type them that way.
    """
    if value is None:
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if not allow_float and number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}; received {number}.")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}; received {number}.")

    return number


def parse_number_cell(value: Any) -> float | None:
    """
    Pull the first number out of a spreadsheet cell.

    Handles ``"91,6 kg"``, ``"350 kcal"`` and plain numbers; returns None when the
    cell holds no digits at all.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("\u00a0", " ").strip()
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    return float(match.group(0).replace(",", "."))


def parse_rep_range(value: Any) -> tuple[int, int] | None:
    """Parse ``"6-10"`` or ``"8"`` into an inclusive (low, high) tuple."""
    if value is None:
        return None
    match = _REP_RANGE_RE.match(str(value))
    if not match:
        return None
    low = int(match.group(1))
    high = int(match.group(2)) if match.group(2) else low
    if high < low:
        low, high = high, low
    return low, high


def normalise_email(value: Any, *, field: str = "email") -> str:
    text = str(value or "").strip().lower()
    if not text:
        raise ValidationError(f"{field} is required.")
    if not _EMAIL_RE.match(text):
        raise ValidationError(f"{field} must be a valid email address; received {value!r}.")
    return text


@dataclass
class WorkoutSet:
    weight: float = 0.0
    reps: int = 0

    @property
    def volume(self) -> float:
        return self.weight * self.reps

    def to_dict(self) -> Dict[str, Any]:
        return {"weight": self.weight, "reps": self.reps}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkoutSet":
        weight = parse_number_cell(payload.get("weight")) or 0.0
        reps = parse_number_cell(payload.get("reps")) or 0.0
        return cls(weight=weight, reps=int(reps))


@dataclass
class WorkoutExercise:
    """A single prescribed exercise inside a workout sheet week."""

    name: str
    work_sets: int = 0
    rep_range: str = ""
    video_url: Optional[str] = None
    sets: List[WorkoutSet] = field(default_factory=list)
    completed: bool = False
    volume_improvement: float = 0.0
    weight_increase: float = 0.0
    strength_increase: float = 0.0
    notes: Optional[str] = None
    previous_week_best: Optional[WorkoutSet] = None
    has_improvement: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "work_sets": self.work_sets,
            "rep_range": self.rep_range,
            "sets": [item.to_dict() for item in self.sets],
            "completed": self.completed,
            "volume_improvement": self.volume_improvement,
            "weight_increase": self.weight_increase,
            "strength_increase": self.strength_increase,
            "has_improvement": self.has_improvement,
        }
        if self.video_url:
            payload["video_url"] = self.video_url
        if self.notes:
            payload["notes"] = self.notes
        if self.previous_week_best is not None:
            payload["previous_week_best"] = self.previous_week_best.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkoutExercise":
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("exercise name is required.")
        previous = payload.get("previous_week_best")
        sets_raw = payload.get("sets") or []
        if not isinstance(sets_raw, list):
            raise ValidationError("sets must be a list of {weight, reps} objects.")
        return cls(
            name=name,
            work_sets=int(parse_number_cell(payload.get("work_sets")) or 0),
            rep_range=str(payload.get("rep_range") or ""),
            video_url=payload.get("video_url") or None,
            sets=[WorkoutSet.from_dict(item) for item in sets_raw if isinstance(item, Mapping)],
            completed=bool(payload.get("completed", False)),
            volume_improvement=float(payload.get("volume_improvement") or 0.0),
            weight_increase=float(payload.get("weight_increase") or 0.0),
            strength_increase=float(payload.get("strength_increase") or 0.0),
            notes=payload.get("notes") or None,
            previous_week_best=WorkoutSet.from_dict(previous) if isinstance(previous, Mapping) else None,
            has_improvement=bool(payload.get("has_improvement", False)),
        )


@dataclass
class WorkoutWeek:
    week_number: int
    exercises: List[WorkoutExercise] = field(default_factory=list)
    completed: Optional[bool] = None
    total_volume_increase: Optional[float] = None
    strength_percentage: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "week_number": self.week_number,
            "exercises": [exercise.to_dict() for exercise in self.exercises],
        }
        if self.completed is not None:
            payload["completed"] = self.completed
        if self.total_volume_increase is not None:
            payload["total_volume_increase"] = self.total_volume_increase
        if self.strength_percentage is not None:
            payload["strength_percentage"] = self.strength_percentage
        return payload


@dataclass
class WorkoutSheet:
    name: str
    weeks: List[WorkoutWeek] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "weeks": [week.to_dict() for week in self.weeks]}


@dataclass
class UserProgress:
    total_workouts: int
    weekly_workouts: int
    has_minimum_workouts: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_workouts": self.total_workouts,
            "weekly_workouts": self.weekly_workouts,
            "has_minimum_workouts": self.has_minimum_workouts,
        }


@dataclass
class MealIngredient:
    name: str
    amount: str
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "amount": self.amount, "unit": self.unit}


@dataclass
class MealOption:
    name: str
    amount: str
    calories: float = 0.0
    ingredients: List[MealIngredient] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "amount": self.amount,
            "calories": self.calories,
            "ingredients": [ingredient.to_dict() for ingredient in self.ingredients],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MealOption":
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("meal option name is required.")
        ingredients = [
            MealIngredient(
                name=str(item.get("name") or "").strip(),
                amount=str(item.get("amount") or "").strip(),
                unit=str(item.get("unit") or "").strip(),
            )
            for item in payload.get("ingredients") or []
            if isinstance(item, Mapping)
        ]
        return cls(
            name=name,
            amount=str(payload.get("amount") or ""),
            calories=parse_number_cell(payload.get("calories")) or 0.0,
            ingredients=ingredients,
        )


@dataclass
class ShoppingListItem:
    ingredient: str
    total_amount: float
    unit: str
    meals: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient": self.ingredient,
            "total_amount": self.total_amount,
            "unit": self.unit,
            "meals": list(self.meals),
        }


@dataclass
class DailyMeals:
    breakfast: List[MealOption] = field(default_factory=list)
    lunch: List[MealOption] = field(default_factory=list)
    dinner: List[MealOption] = field(default_factory=list)
    snack: Optional[List[MealOption]] = None
    total_calories: float = 0.0
    meal_count: int = 0

    def sections(self) -> Dict[str, List[MealOption]]:
        sections = {"breakfast": self.breakfast, "lunch": self.lunch, "dinner": self.dinner}
        if self.snack:
            sections["snack"] = self.snack
        return sections

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            name: [option.to_dict() for option in options] for name, options in self.sections().items()
        }
        payload["total_calories"] = self.total_calories
        payload["meal_count"] = self.meal_count
        return payload


@dataclass
class WeightEntry:
    """One morning check-in: body weight plus 1-10 wellbeing scores."""

    date: str
    weight: float
    sleep: float = 0.0
    stress: float = 0.0
    fatigue: float = 0.0
    motivation: float = 0.0
    training: float = 0.0
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "date": self.date,
            "weight": self.weight,
            "sleep": self.sleep,
            "stress": self.stress,
            "fatigue": self.fatigue,
            "motivation": self.motivation,
            "training": self.training,
        }
        if self.notes:
            payload["notes"] = self.notes
        return payload


@dataclass
class Supplement:
    name: str
    description: str
    dosage: str
    timing: str
    taken: bool = False
    category: str = "vitamin"
    purchase_link: Optional[str] = None

    def __post_init__(self) -> None:
        if self.category not in SUPPLEMENT_CATEGORIES:
            raise ValidationError(f"Unknown supplement category {self.category!r}.")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "dosage": self.dosage,
            "timing": self.timing,
            "taken": self.taken,
            "category": self.category,
        }
        if self.purchase_link:
            payload["purchase_link"] = self.purchase_link
        return payload


@dataclass
class Client:
    """Row of the coach's client registry."""

    id: str
    name: str
    email: str
    sheets_url: Optional[str] = None
    docs_url: Optional[str] = None
    last_activity: str = NO_ACTIVITY_MARKER
    workout_completed: bool = False
    weight_logged: bool = False
    meal_plan_followed: bool = False
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "sheets_url": self.sheets_url,
            "docs_url": self.docs_url,
            "last_activity": self.last_activity,
            "workout_completed": self.workout_completed,
            "weight_logged": self.weight_logged,
            "meal_plan_followed": self.meal_plan_followed,
            "created_at": self.created_at,
        }
