"""
Per-client view over a coach's Google workbook.

Every reader degrades to the demo fixtures in :mod:`fittracker.mock_data` when the
client has no spreadsheet, the Google API fails, or the parsers recover nothing,
so the tabs always have something to show.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Mapping

from . import mock_data
from .config import AppConfig, get_config
from .google_api import WORKOUT_TAB_TITLE, ClientFiles, GoogleWorkspace
from .metrics import parse_entry_date
from .models import (
    DailyMeals,
    MealOption,
    Supplement,
    UserProgress,
    WeightEntry,
    WorkoutExercise,
    WorkoutSet,
    WorkoutSheet,
    WorkoutWeek,
    parse_number_cell,
)
from .sheets_parser import analyze_workout_structure, parse_meal_rows, parse_weight_rows, parse_workout_rows

LOGGER = logging.getLogger(__name__)


def _weight_key(entry: Mapping[str, Any]) -> tuple[Any, float | None]:
    day = parse_entry_date(entry.get("date"))
    weight = parse_number_cell(entry.get("weight"))
    return (day or str(entry.get("date") or "").strip(), round(weight, 1) if weight is not None else None)


class ClientWorkbook:
    """Locate a client's files once, then serve each tab from them."""

    def __init__(self, workspace: GoogleWorkspace | None = None, config: AppConfig | None = None) -> None:
        self.workspace = workspace
        self.config = config or get_config()
        self.sheets_id: str | None = None
        self.docs_id: str | None = None
        self.workout_structure: dict[str, Any] | None = None
        self._parsed_sheets: list[WorkoutSheet] | None = None

    # -- setup -------------------------------------------------------------

    def _reset(self) -> None:
        self.sheets_id = None
        self.docs_id = None
        self.workout_structure = None
        self._parsed_sheets = None

    @property
    def files(self) -> ClientFiles:
        return ClientFiles(sheets_id=self.sheets_id, docs_id=self.docs_id)

    @property
    def workout_frequency(self) -> int:
        if self.workout_structure:
            return int(self.workout_structure["frequency"])
        return self.config.default_workout_frequency

    def status(self) -> dict[str, Any]:
        files = self.files
        return {
            "sheets_url": files.sheets_url or "",
            "docs_url": files.docs_url or "",
            "has_sheets": bool(files.sheets_id),
            "has_docs": bool(files.docs_id),
            "workout_frequency": self.workout_frequency,
        }

    def initialize_client(self, email: str, manual_links: Mapping[str, str | None] | None = None) -> ClientFiles:
        """Find the client's spreadsheet and document and read the tab layout."""
        self._reset()
        if self.workspace is None:
            LOGGER.info("No Google access for %s; serving demo data", email)
            return self.files
        try:
            found = self.workspace.find_client_files(email, manual_links)
            self.sheets_id = found.sheets_id
            self.docs_id = found.docs_id
            if self.sheets_id:
                # The sync log tab holds saved sets, not a training day.
                titles = [
                    title for title in self.workspace.list_sheet_titles(self.sheets_id) if title != WORKOUT_TAB_TITLE
                ]
                self.workout_structure = analyze_workout_structure(
                    titles,
                    default_frequency=self.config.default_workout_frequency,
                    keywords=self.config.sheet_keywords,
                )
                LOGGER.info(
                    "Workbook for %s: %d workout tab(s), meal=%s, weight=%s",
                    email,
                    len(self.workout_structure["sheets"]),
                    self.workout_structure["meal_sheet"],
                    self.workout_structure["weight_sheet"],
                )
            else:
                LOGGER.info("No spreadsheet found for %s", email)
        except Exception:
            LOGGER.exception("Could not initialise workbook for %s", email)
            self._reset()
        return self.files

    # -- readers -----------------------------------------------------------

    def _read(self, title: str) -> list[list[str]]:
        if self.workspace is None or not self.sheets_id:
            raise RuntimeError("Workbook is not initialised")
        return self.workspace.read_values(self.sheets_id, title)

    def _expand_weeks(self, exercises: list[WorkoutExercise]) -> list[WorkoutWeek]:
        for exercise in exercises:
            if not exercise.sets:
                exercise.sets = [WorkoutSet(weight=0.0, reps=0)]
        return [
            WorkoutWeek(week_number=index + 1, exercises=copy.deepcopy(exercises))
            for index in range(self.config.program_weeks)
        ]

    def _load_workout_sheets(self) -> list[WorkoutSheet] | None:
        if self._parsed_sheets is not None:
            return self._parsed_sheets
        if not self.sheets_id or not self.workout_structure or self.workspace is None:
            return None
        try:
            sheets: list[WorkoutSheet] = []
            for entry in self.workout_structure["sheets"]:
                exercises = parse_workout_rows(self._read(entry["name"]))
                if not exercises:
                    LOGGER.info("Tab %r has no recognisable exercises", entry["name"])
                    continue
                sheets.append(WorkoutSheet(name=entry["name"], weeks=self._expand_weeks(exercises)))
        except Exception:
            LOGGER.exception("Could not import workout tabs from %s", self.sheets_id)
            return None
        if not sheets:
            return None
        self._parsed_sheets = sheets
        return sheets

    def get_workout_sheets(self) -> list[WorkoutSheet]:
        sheets = self._load_workout_sheets()
        if sheets is None:
            LOGGER.info("Serving demo workout sheets")
            return mock_data.mock_workout_sheets(self.config.program_weeks)
        return copy.deepcopy(sheets)

    def get_exercise_names(self) -> list[str]:
        sheets = self._load_workout_sheets()
        if sheets is None:
            return mock_data.fallback_exercise_names()
        names: dict[str, None] = {}
        for sheet in sheets:
            for exercise in sheet.weeks[0].exercises if sheet.weeks else []:
                names.setdefault(exercise.name, None)
        return list(names) or mock_data.fallback_exercise_names()

    def _structure_tab(self, key: str) -> str | None:
        if not self.sheets_id or not self.workout_structure or self.workspace is None:
            return None
        return self.workout_structure.get(key)

    def get_todays_meals(self) -> DailyMeals:
        title = self._structure_tab("meal_sheet")
        if title is None:
            LOGGER.info("No meal tab; serving demo meals")
            return mock_data.mock_daily_meals()
        try:
            sections = parse_meal_rows(self._read(title))
        except Exception:
            LOGGER.exception("Could not import meals from tab %r", title)
            return mock_data.mock_daily_meals()
        if not sections:
            LOGGER.info("Meal tab %r could not be parsed; serving demo meals", title)
            return mock_data.mock_daily_meals()
        options = [option for items in sections.values() for option in items]
        return DailyMeals(
            breakfast=sections.get("breakfast", []),
            lunch=sections.get("lunch", []),
            dinner=sections.get("dinner", []),
            snack=sections.get("snack"),
            total_calories=sum(option.calories for option in options),
            meal_count=len(options),
        )

    def _load_weight_entries(self) -> list[WeightEntry] | None:
        title = self._structure_tab("weight_sheet")
        if title is None:
            LOGGER.info("No weight tab in workbook")
            return None
        try:
            entries = parse_weight_rows(self._read(title))
        except Exception:
            LOGGER.exception("Could not import weight log from tab %r", title)
            return None
        return entries or None

    def get_weight_entries(self) -> list[WeightEntry]:
        entries = self._load_weight_entries()
        if entries is None:
            LOGGER.info("Serving demo weight entries")
            return mock_data.mock_weight_entries()
        return entries

    def weight_history(self, saved: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """
        Merge the sheet's weight log with check-ins saved through the app.

        Saved check-ins are mirrored into the sheet by :meth:`sync_weight_entry`, so
        one already there (same day and weight) is not repeated. Demo entries are
        served only when neither source has anything.
        """
        local = [dict(item) for item in saved]
        entries = self._load_weight_entries()
        if entries is None:
            if local:
                return local
            LOGGER.info("No weight history; serving demo entries")
            return [entry.to_dict() for entry in mock_data.mock_weight_entries()]
        history = [entry.to_dict() for entry in entries]
        seen = {_weight_key(item) for item in history}
        history.extend(item for item in local if _weight_key(item) not in seen)
        return history

    def get_meal_options(self) -> dict[str, list[MealOption]]:
        return mock_data.mock_meal_options()

    def get_supplements(self) -> list[Supplement]:
        return mock_data.mock_supplements()

    def get_user_progress(self) -> UserProgress:
        progress = mock_data.mock_user_progress()
        if self.workout_structure:
            progress.weekly_workouts = min(self.workout_frequency, self.config.max_weekly_workouts)
        return progress

    # -- writers -----------------------------------------------------------

    def sync_workout(self, sheet_name: str, week_number: int, exercises: Iterable[WorkoutExercise]) -> int:
        """
        Mirror a saved week into the spreadsheet's log tab, one row per set.

        Returns the number of rows written; 0 when there is no spreadsheet or the
        append failed (the local copy is already saved by then).
        """
        if not self.sheets_id or self.workspace is None:
            return 0
        rows = [
            [sheet_name, week_number, exercise.name, index + 1, item.weight, item.reps]
            for exercise in exercises
            for index, item in enumerate(exercise.sets)
            if item.weight > 0 and item.reps > 0
        ]
        try:
            return self.workspace.append_rows(self.sheets_id, WORKOUT_TAB_TITLE, rows)
        except Exception:
            LOGGER.exception("Could not mirror workout into %s", self.sheets_id)
            return 0

    def sync_weight_entry(self, entry: WeightEntry) -> int:
        title = self._structure_tab("weight_sheet")
        if title is None:
            return 0
        row = [entry.date, entry.weight, entry.sleep, entry.stress, entry.fatigue, entry.motivation, entry.training]
        if entry.notes:
            row.append(entry.notes)
        try:
            return self.workspace.append_rows(self.sheets_id, title, [row])  # type: ignore[union-attr]
        except Exception:
            LOGGER.exception("Could not mirror weight entry into tab %r", title)
            return 0
