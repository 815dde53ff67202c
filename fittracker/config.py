from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from .env import get_env

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError:
        tomllib = None  # type: ignore

DEFAULT_PROGRAM_WEEKS = 12
DEFAULT_WORKOUT_FREQUENCY = 2
DEFAULT_MAX_WEEKLY_WORKOUTS = 6
DEFAULT_DAILY_CALORIE_TARGET = 2200


@dataclass(frozen=True)
class SheetKeywords:
    """Lower-cased, accent-free fragments used to classify spreadsheet tabs."""

    workout: tuple[str, ...] = (
        "edzes",
        "workout",
        "training",
        "felsotest",
        "also test",
        "alsotest",
        "lab",
        "push",
        "pull",
        "upper",
        "lower",
        "full body",
        "fullbody",
        "nap",
        "day",
        "terv",
    )
    meal: tuple[str, ...] = ("etrend", "etkezes", "meal", "kaja", "diet", "nutrition", "food")
    weight: tuple[str, ...] = ("suly", "weight", "meres", "testsuly", "checkin", "check-in")
    ignore: tuple[str, ...] = ("sablon", "template", "info", "utmutato", "readme", "archiv")


@dataclass(frozen=True)
class AppConfig:
    admin_emails: tuple[str, ...] = ()
    google_client_id: str | None = None
    program_weeks: int = DEFAULT_PROGRAM_WEEKS
    default_workout_frequency: int = DEFAULT_WORKOUT_FREQUENCY
    max_weekly_workouts: int = DEFAULT_MAX_WEEKLY_WORKOUTS
    daily_calorie_target: int = DEFAULT_DAILY_CALORIE_TARGET
    sheet_keywords: SheetKeywords = field(default_factory=SheetKeywords)


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/fittracker.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    if tomllib is None:
        raise RuntimeError("TOML configuration requires Python 3.11+ or the 'tomli' package.")
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_emails(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        entries = [entry.strip() for entry in raw.split(",")]
    elif isinstance(raw, (list, tuple, set)):
        entries = [str(entry).strip() for entry in raw]
    else:
        return ()
    return tuple(entry.lower() for entry in entries if entry)


def _coerce_positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _coerce_keywords(raw: Mapping[str, Any] | None) -> SheetKeywords:
    base = SheetKeywords()
    if not raw:
        return base
    values: dict[str, tuple[str, ...]] = {}
    for name in ("workout", "meal", "weight", "ignore"):
        entries = raw.get(name)
        if isinstance(entries, (list, tuple)) and entries:
            values[name] = tuple(str(entry).strip().lower() for entry in entries if str(entry).strip())
        else:
            values[name] = getattr(base, name)
    return SheetKeywords(**values)


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    admin_emails = _coerce_emails(raw.get("admin_emails")) + _coerce_emails(get_env("ADMIN_EMAILS"))
    client_id = raw.get("google_client_id") or get_env("GOOGLE_CLIENT_ID")
    keywords_section = raw.get("sheet_keywords")
    return AppConfig(
        admin_emails=tuple(dict.fromkeys(admin_emails)),
        google_client_id=str(client_id) if client_id else None,
        program_weeks=_coerce_positive_int(raw.get("program_weeks"), DEFAULT_PROGRAM_WEEKS),
        default_workout_frequency=_coerce_positive_int(
            raw.get("default_workout_frequency"), DEFAULT_WORKOUT_FREQUENCY
        ),
        max_weekly_workouts=_coerce_positive_int(raw.get("max_weekly_workouts"), DEFAULT_MAX_WEEKLY_WORKOUTS),
        daily_calorie_target=_coerce_positive_int(
            raw.get("daily_calorie_target"), DEFAULT_DAILY_CALORIE_TARGET
        ),
        sheet_keywords=_coerce_keywords(keywords_section if isinstance(keywords_section, Mapping) else None),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    data = _load_toml(path) if path else {}
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    return {
        "admin_emails": list(config.admin_emails),
        "google_client_id": config.google_client_id,
        "program_weeks": config.program_weeks,
        "default_workout_frequency": config.default_workout_frequency,
        "max_weekly_workouts": config.max_weekly_workouts,
        "daily_calorie_target": config.daily_calorie_target,
        "sheet_keywords": {
            "workout": list(config.sheet_keywords.workout),
            "meal": list(config.sheet_keywords.meal),
            "weight": list(config.sheet_keywords.weight),
            "ignore": list(config.sheet_keywords.ignore),
        },
        "source": str(_config_path() or "defaults"),
    }
