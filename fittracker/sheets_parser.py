"""
Best-effort parsing of coach-maintained Google Sheets.

Clients' workbooks follow no fixed template: tab names are free text, header rows
may or may not exist, and cells mix numbers with units. Everything here works on
the plain ``list[list[str]]`` grid returned by the Sheets values API and never
raises on odd input; a result that cannot be recovered comes back empty (or None)
so the caller can fall back to demo data.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Sequence

from .config import SheetKeywords, get_config
from .models import MealOption, WeightEntry, WorkoutExercise, WorkoutSet, parse_number_cell, parse_rep_range

Rows = Sequence[Sequence[Any]]

# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_DAY_MARKER_RE = re.compile(r"(\b\d+\s*\.?\s*nap\b|\bday\s*\d+\b|\b[a-e]\s*nap\b|\bnap\s*\d+\b)")
_SET_CELL_RE = re.compile(
    r"^\s*(?P<weight>\d+(?:[.,]\d+)?|bw|tt)\s*(?:kg)?\s*[x×*]\s*(?P<reps>\d+)\s*(?:ism\.?|reps?)?\s*$"
)
_NUMBERED_SET_RE = re.compile(r"^(?:(\d+)\s*\.?\s*(?:sorozat|set|szett)|(?:set|sorozat|szett|s)\s*(\d+))$")
_URL_RE = re.compile(r"^https?://", re.I)
_DIGIT_RE = re.compile(r"\d")


def fold(text: Any) -> str:
    """Lower-case, strip accents and collapse whitespace (``"Felsőtest 1"`` -> ``"felsotest 1"``)."""
    decomposed = unicodedata.normalize("NFKD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def _cell(row: Sequence[Any], index: int | None) -> str:
    if index is None or index < 0 or index >= len(row):
        return ""
    return str(row[index] if row[index] is not None else "").strip()


def _contains_any(text: str, markers: Sequence[str]) -> bool:
    return any(marker in text for marker in markers)


def _is_blank(row: Sequence[Any]) -> bool:
    return not any(str(cell or "").strip() for cell in row)


# ---------------------------------------------------------------------------
# Sheet classification
# ---------------------------------------------------------------------------


def classify_sheet(title: str, keywords: SheetKeywords | None = None) -> str | None:
    """
    Guess what a tab holds from its title.

    Returns ``"meal"``, ``"weight"``, ``"workout"`` or None. Ignore keywords win over
    everything, then meal and weight keywords are checked before workout ones
    because titles like "Étrend terv" would otherwise read as a plan.
    """
    words = keywords or get_config().sheet_keywords
    folded = fold(title)
    if not folded:
        return None
    if _contains_any(folded, words.ignore):
        return None
    if _contains_any(folded, words.meal):
        return "meal"
    if _contains_any(folded, words.weight):
        return "weight"
    if _DAY_MARKER_RE.search(folded) or _contains_any(folded, words.workout):
        return "workout"
    return None


def analyze_workout_structure(
    titles: Sequence[str],
    *,
    default_frequency: int | None = None,
    keywords: SheetKeywords | None = None,
) -> dict[str, Any]:
    """
    Summarise a workbook from its tab titles.

    ``frequency`` is the number of workout tabs (one tab per training day), or the
    configured default when no tab looks like a workout.
    """
    fallback = default_frequency or get_config().default_workout_frequency
    workout_sheets: list[dict[str, str]] = []
    meal_sheet: str | None = None
    weight_sheet: str | None = None
    for title in titles:
        kind = classify_sheet(title, keywords)
        if kind == "workout":
            workout_sheets.append({"name": title})
        elif kind == "meal" and meal_sheet is None:
            meal_sheet = title
        elif kind == "weight" and weight_sheet is None:
            weight_sheet = title
    return {
        "sheets": workout_sheets,
        "frequency": len(workout_sheets) or fallback,
        "meal_sheet": meal_sheet,
        "weight_sheet": weight_sheet,
    }


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------

_EXERCISE_MARKERS = ("gyakorlat", "exercise", "feladat", "mozdulat")
_SETS_MARKERS = ("munkasorozat", "sorozat", "sets", "set")
_REPS_MARKERS = ("ismetles", "ism", "reps", "rep", "tartomany")
_VIDEO_MARKERS = ("video", "link", "url")
_NOTES_MARKERS = ("megjegyzes", "notes", "note", "komment")
_WEIGHT_MARKERS = ("suly", "weight", "kg")


def parse_set_cell(value: Any) -> WorkoutSet | None:
    """Parse ``"80x8"``, ``"80 kg x 8"``, ``"80*8"`` or ``"bw x 10"`` into a set."""
    match = _SET_CELL_RE.match(fold(value).replace(",", "."))
    if not match:
        return None
    weight_text = match.group("weight")
    weight = 0.0 if weight_text in {"bw", "tt"} else float(weight_text)
    return WorkoutSet(weight=weight, reps=int(match.group("reps")))


def _find_header(rows: Rows, markers: Sequence[str], *, limit: int = 10) -> int | None:
    for index, row in enumerate(rows[:limit]):
        if any(_contains_any(fold(cell), markers) for cell in row):
            return index
    return None


def _map_workout_columns(header: Sequence[Any]) -> dict[str, Any]:
    folded = [fold(cell) for cell in header]
    mapping: dict[str, Any] = {
        "name": None,
        "sets": None,
        "reps": None,
        "video": None,
        "notes": None,
        "set_columns": [],
        "pairs": [],
    }
    consumed: set[int] = set()
    for index, text in enumerate(folded):
        if not text or index in consumed:
            continue
        if _NUMBERED_SET_RE.match(text):
            mapping["set_columns"].append(index)
        elif mapping["name"] is None and _contains_any(text, _EXERCISE_MARKERS):
            mapping["name"] = index
        elif _contains_any(text, _WEIGHT_MARKERS) and index + 1 < len(folded) and _contains_any(
            folded[index + 1], _REPS_MARKERS
        ):
            mapping["pairs"].append((index, index + 1))
            consumed.add(index + 1)
        elif mapping["video"] is None and _contains_any(text, _VIDEO_MARKERS):
            mapping["video"] = index
        elif mapping["notes"] is None and _contains_any(text, _NOTES_MARKERS):
            mapping["notes"] = index
        elif mapping["reps"] is None and _contains_any(text, _REPS_MARKERS):
            mapping["reps"] = index
        elif mapping["sets"] is None and _contains_any(text, _SETS_MARKERS):
            mapping["sets"] = index
    return mapping


def _looks_like_section(name: str) -> bool:
    folded = fold(name)
    if not folded or not any(ch.isalpha() for ch in folded):
        return True
    if _contains_any(folded, _EXERCISE_MARKERS):
        return True
    return bool(re.match(r"^(\d+\s*\.?\s*)?(het|week)\b", folded) or _DAY_MARKER_RE.fullmatch(folded))


def _int_cell(value: str) -> int:
    number = parse_number_cell(value)
    return int(number) if number is not None and number > 0 else 0


def _sets_from_cells(row: Sequence[Any], columns: Sequence[int]) -> list[WorkoutSet]:
    sets: list[WorkoutSet] = []
    for index in columns:
        parsed = parse_set_cell(_cell(row, index))
        if parsed is not None:
            sets.append(parsed)
    return sets


def _parse_with_header(rows: Rows, header_index: int) -> list[WorkoutExercise]:
    columns = _map_workout_columns(rows[header_index])
    exercises: list[WorkoutExercise] = []
    for row in rows[header_index + 1 :]:
        if _is_blank(row):
            continue
        name = _cell(row, columns["name"])
        if _looks_like_section(name):
            continue
        sets = _sets_from_cells(row, columns["set_columns"])
        for weight_col, reps_col in columns["pairs"]:
            weight = parse_number_cell(_cell(row, weight_col))
            reps = parse_number_cell(_cell(row, reps_col))
            if weight is not None and reps:
                sets.append(WorkoutSet(weight=weight, reps=int(reps)))
        video = _cell(row, columns["video"])
        exercises.append(
            WorkoutExercise(
                name=name,
                work_sets=_int_cell(_cell(row, columns["sets"])),
                rep_range=_cell(row, columns["reps"]),
                video_url=video if _URL_RE.match(video) else None,
                sets=sets,
                notes=_cell(row, columns["notes"]) or None,
            )
        )
    return exercises


def _parse_positional(rows: Rows) -> list[WorkoutExercise]:
    """Header-less layout: name, work sets, rep range, video, then logged sets anywhere."""
    exercises: list[WorkoutExercise] = []
    for row in rows:
        name = _cell(row, 0)
        if _looks_like_section(name):
            continue
        sets_cell = _cell(row, 1)
        reps_cell = _cell(row, 2)
        work_sets = _int_cell(sets_cell) if parse_number_cell(sets_cell) is not None else 0
        rep_range = reps_cell if parse_rep_range(reps_cell) else ""
        logged = _sets_from_cells(row, range(1, len(row)))
        if not work_sets and not rep_range and not logged:
            continue
        video = next((_cell(row, i) for i in range(1, len(row)) if _URL_RE.match(_cell(row, i))), "")
        exercises.append(
            WorkoutExercise(
                name=name,
                work_sets=work_sets,
                rep_range=rep_range,
                video_url=video or None,
                sets=logged,
            )
        )
    return exercises


def parse_workout_rows(rows: Rows) -> list[WorkoutExercise]:
    """Recover the exercise list of one workout tab."""
    if not rows:
        return []
    header_index = _find_header(rows, _EXERCISE_MARKERS)
    if header_index is not None:
        return _parse_with_header(rows, header_index)
    return _parse_positional(rows)


# ---------------------------------------------------------------------------
# Meals
# ---------------------------------------------------------------------------

MEAL_SECTION_MARKERS: dict[str, tuple[str, ...]] = {
    "breakfast": ("reggeli", "breakfast"),
    "lunch": ("ebed", "lunch"),
    "dinner": ("vacsora", "dinner"),
    "snack": ("snack", "tizorai", "uzsonna", "nasi"),
}
_FOOD_HEADER_MARKERS = ("etel", "food", "nev", "name", "alapanyag")
_AMOUNT_MARKERS = ("mennyiseg", "amount", "adag", "gramm")
_CALORIE_MARKERS = ("kcal", "kaloria", "calorie", "energia")


def _meal_section(text: str) -> str | None:
    folded = fold(text).rstrip(":")
    for section, markers in MEAL_SECTION_MARKERS.items():
        if any(folded.startswith(marker) for marker in markers):
            return section
    return None


def _meal_from_cells(cells: Sequence[str], amount_col: int | None, calorie_col: int | None) -> MealOption | None:
    values = list(cells)
    name = next((cell for cell in values if cell), "")
    if not name or not any(ch.isalpha() for ch in name):
        return None
    name_index = values.index(name)
    rest = [(i, cell) for i, cell in enumerate(values) if i > name_index and cell]
    if amount_col is not None or calorie_col is not None:
        amount = _cell(values, amount_col)
        calories = parse_number_cell(_cell(values, calorie_col)) or 0.0
        return MealOption(name=name, amount=amount, calories=calories)
    amount = ""
    calories = 0.0
    for _, cell in rest:
        folded = fold(cell)
        number = parse_number_cell(cell)
        if "kcal" in folded or (number is not None and folded.replace(".", "", 1).isdigit() and amount):
            calories = number or 0.0
        elif not amount:
            amount = cell
    return MealOption(name=name, amount=amount, calories=calories)


def parse_meal_rows(rows: Rows) -> dict[str, list[MealOption]] | None:
    """
    Split a meal-plan tab into breakfast/lunch/dinner(/snack) sections.

    A row whose first cell names a meal opens that section; following rows are
    foods until the next section row. Returns None when no section is found.
    """
    sections: dict[str, list[MealOption]] = {}
    current: str | None = None
    amount_col: int | None = None
    calorie_col: int | None = None
    for row in rows:
        cells = [str(cell or "").strip() for cell in row]
        if not any(cells):
            continue
        first_index = next(i for i, cell in enumerate(cells) if cell)
        first = cells[first_index]
        section = _meal_section(first)
        if section is not None:
            current = section
            sections.setdefault(section, [])
            trailing = cells[first_index + 1 :]
            if any(trailing):
                # Inline layout: "Reggeli | Zabpehely | 50g | 185 kcal"
                padded = [""] * (first_index + 1) + trailing
                meal = _meal_from_cells(padded, amount_col, calorie_col)
                if meal is not None:
                    sections[section].append(meal)
            continue
        folded_cells = [fold(cell) for cell in cells]
        if any(_contains_any(text, _FOOD_HEADER_MARKERS) for text in folded_cells[:1]) and any(
            _contains_any(text, _AMOUNT_MARKERS + _CALORIE_MARKERS) for text in folded_cells
        ):
            amount_col = next((i for i, t in enumerate(folded_cells) if _contains_any(t, _AMOUNT_MARKERS)), None)
            calorie_col = next((i for i, t in enumerate(folded_cells) if _contains_any(t, _CALORIE_MARKERS)), None)
            continue
        if current is None:
            continue
        meal = _meal_from_cells(cells, amount_col, calorie_col)
        if meal is not None:
            sections[current].append(meal)

    if not sections or not any(sections.values()):
        return None
    result: dict[str, list[MealOption]] = {
        "breakfast": sections.get("breakfast", []),
        "lunch": sections.get("lunch", []),
        "dinner": sections.get("dinner", []),
    }
    if sections.get("snack"):
        result["snack"] = sections["snack"]
    return result


# ---------------------------------------------------------------------------
# Weight log
# ---------------------------------------------------------------------------

_WEIGHT_HEADER_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("date", ("datum", "date")),
    ("weight", ("testsuly", "suly", "weight", "kg")),
    ("sleep", ("alvas", "sleep")),
    ("stress", ("stressz", "stress")),
    ("fatigue", ("faradtsag", "fatigue")),
    ("motivation", ("motivacio", "motivation")),
    ("training", ("edzes", "training")),
    ("notes", ("megjegyzes", "notes", "note", "komment")),
)


def _map_weight_header(row: Sequence[Any]) -> dict[str, int] | None:
    mapping: dict[str, int] = {}
    for index, cell in enumerate(row):
        text = fold(cell)
        if not text:
            continue
        for field_name, markers in _WEIGHT_HEADER_FIELDS:
            if field_name not in mapping and _contains_any(text, markers):
                mapping[field_name] = index
                break
    if "date" in mapping and "weight" in mapping:
        return mapping
    return None


def parse_weight_rows(rows: Rows) -> list[WeightEntry]:
    """Read weight check-ins; rows without a dated, positive weight are dropped."""
    mapping: dict[str, int] = {"date": 0, "weight": 1}
    start = 0
    for index, row in enumerate(rows[:10]):
        header = _map_weight_header(row)
        if header is not None:
            mapping, start = header, index + 1
            break

    entries: list[WeightEntry] = []
    for row in rows[start:]:
        date_text = _cell(row, mapping["date"])
        if not _DIGIT_RE.search(date_text):
            continue
        weight = parse_number_cell(_cell(row, mapping["weight"]))
        if weight is None or weight <= 0:
            continue

        def score(name: str) -> float:
            return parse_number_cell(_cell(row, mapping.get(name))) or 0.0

        entries.append(
            WeightEntry(
                date=date_text,
                weight=weight,
                sleep=score("sleep"),
                stress=score("stress"),
                fatigue=score("fatigue"),
                motivation=score("motivation"),
                training=score("training"),
                notes=_cell(row, mapping.get("notes")) or None,
            )
        )
    return entries
