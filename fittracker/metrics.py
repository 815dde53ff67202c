from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from .models import WeightEntry, parse_number_cell

LOGGER = logging.getLogger(__name__)

WEIGHT_COLUMNS = ["date", "weight", "sleep", "stress", "fatigue", "motivation", "training", "notes"]
WELLBEING_COLUMNS = ["sleep", "stress", "fatigue", "motivation", "training"]
ROLLING_WINDOW = 7

_DOTTED_FULL_RE = re.compile(r"^(\d{4})\.\s*(\d{1,2})\.\s*(\d{1,2})\.?$")
_DOTTED_SHORT_RE = re.compile(r"^(\d{1,2})\.\s*(\d{1,2})\.?$")


def parse_entry_date(value: Any, *, year_hint: int | None = None) -> date | None:
    """
    Read the date formats found in weight logs.

    Supports ISO (``2024-05-28``), dotted (``2024.05.28``), the Hungarian locale form
    (``2024. 05. 28.``) and month/day only (``05.28``), which takes ``year_hint``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        match = _DOTTED_FULL_RE.match(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        match = _DOTTED_SHORT_RE.match(text)
        if match:
            return date(year_hint or date.today().year, int(match.group(1)), int(match.group(2)))
    except ValueError:
        return None
    return None


def weight_entries_to_dataframe(
    entries: Sequence[WeightEntry | Mapping[str, Any]],
    *,
    year_hint: int | None = None,
) -> pd.DataFrame:
    """Normalise weight check-ins into a date-sorted DataFrame; undated rows are dropped."""
    records: list[dict[str, Any]] = []
    for item in entries:
        payload = item.to_dict() if isinstance(item, WeightEntry) else dict(item)
        day = parse_entry_date(payload.get("date"), year_hint=year_hint)
        weight = parse_number_cell(payload.get("weight"))
        if day is None or weight is None:
            LOGGER.debug("Skipping weight entry without usable date/weight: %r", payload)
            continue
        record: dict[str, Any] = {"date": pd.Timestamp(day), "weight": weight}
        for column in WELLBEING_COLUMNS:
            record[column] = parse_number_cell(payload.get(column))
        record["notes"] = payload.get("notes") or ""
        records.append(record)

    df = pd.DataFrame(records, columns=WEIGHT_COLUMNS)
    if df.empty:
        return df
    for column in ["weight", *WELLBEING_COLUMNS]:
        df[column] = pd.to_numeric(df[column], errors="coerce")
    df.sort_values("date", inplace=True, kind="stable")
    df.reset_index(drop=True, inplace=True)
    return df


def compute_weight_trend(df: pd.DataFrame, *, window: int = ROLLING_WINDOW) -> dict[str, Any]:
    """
    Summarise the direction of a weight series.

    ``slope_per_week`` is a least-squares fit over calendar days (kg/week), so
    irregular check-ins are weighted by when they happened, not by position.
    """
    if df.empty:
        return {
            "entries": 0,
            "first": None,
            "last": None,
            "change": 0.0,
            "slope_per_week": 0.0,
            "rolling_mean": None,
            "series": [],
        }

    frame = df[["date", "weight"]].copy()
    frame["rolling_mean"] = frame["weight"].rolling(window=window, min_periods=1).mean()
    frame["delta"] = frame["weight"].diff().fillna(0.0)

    days = (frame["date"] - frame["date"].iloc[0]).dt.days.to_numpy(dtype=float)
    slope = 0.0
    if len(np.unique(days)) >= 2:
        slope = float(np.polyfit(days, frame["weight"].to_numpy(dtype=float), 1)[0]) * 7

    first = float(frame["weight"].iloc[0])
    last = float(frame["weight"].iloc[-1])
    series = [
        {
            "date": row.date.date().isoformat(),
            "weight": round(float(row.weight), 2),
            "rolling_mean": round(float(row.rolling_mean), 2),
            "delta": round(float(row.delta), 2),
        }
        for row in frame.itertuples(index=False)
    ]
    return {
        "entries": int(len(frame)),
        "first": first,
        "last": last,
        "change": round(last - first, 2),
        "slope_per_week": round(slope, 3),
        "rolling_mean": round(float(frame["rolling_mean"].iloc[-1]), 2),
        "series": series,
    }


def weekly_weight_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Aggregate check-ins per ISO week with wellbeing averages."""
    columns = [
        "week",
        "entries",
        "mean_weight",
        "min_weight",
        "max_weight",
        *[f"avg_{column}" for column in WELLBEING_COLUMNS],
    ]
    if df.empty:
        return pd.DataFrame(columns=columns)

    iso = df["date"].dt.isocalendar()
    working = df.assign(week=iso["year"].astype(str) + "-W" + iso["week"].astype(int).map("{:02d}".format))
    grouped = working.groupby("week", sort=True)
    summary = grouped["weight"].agg(entries="count", mean_weight="mean", min_weight="min", max_weight="max")
    for column in WELLBEING_COLUMNS:
        summary[f"avg_{column}"] = grouped[column].mean()
    summary = summary.reset_index()
    summary["mean_weight"] = summary["mean_weight"].round(2)
    for column in WELLBEING_COLUMNS:
        summary[f"avg_{column}"] = summary[f"avg_{column}"].round(1)
    return summary[columns]


def workout_volume_by_sheet(saved_workouts: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    """Total lifted volume (kg x reps) and working sets per saved sheet and week."""
    records: list[dict[str, Any]] = []
    for workout in saved_workouts:
        sheet_name = str(workout.get("sheet_name") or "").strip()
        if not sheet_name:
            continue
        week = int(parse_number_cell(workout.get("week_number")) or 0)
        volume = 0.0
        sets = 0
        for exercise in workout.get("exercises") or []:
            for item in exercise.get("sets") or []:
                weight = parse_number_cell(item.get("weight")) or 0.0
                reps = parse_number_cell(item.get("reps")) or 0.0
                if weight > 0 and reps > 0:
                    volume += weight * reps
                    sets += 1
        records.append({"sheet_name": sheet_name, "week_number": week, "volume": volume, "sets": sets})

    columns = ["sheet_name", "week_number", "volume", "sets"]
    if not records:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame(records, columns=columns)
    summary = df.groupby(["sheet_name", "week_number"], as_index=False)[["volume", "sets"]].sum()
    summary.sort_values(["sheet_name", "week_number"], inplace=True)
    summary.reset_index(drop=True, inplace=True)
    return summary
