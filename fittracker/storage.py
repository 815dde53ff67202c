from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Iterable, Iterator, Mapping

from .constants import NO_ACTIVITY_MARKER
from .env import get_env
from .models import Client, ValidationError, WeightEntry, WorkoutExercise, coerce_number, normalise_email

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DB_FILENAME = "fittracker.db"
_DB_INITIALISED_FOR: Path | None = None
LOGGER = logging.getLogger(__name__)

CLIENT_COLUMNS = (
    "id",
    "name",
    "email",
    "sheets_url",
    "docs_url",
    "last_activity",
    "workout_completed",
    "weight_logged",
    "meal_plan_followed",
    "created_at",
)
_UPDATABLE_COLUMNS = frozenset(CLIENT_COLUMNS) - {"id", "created_at"}
_FLAG_COLUMNS = frozenset({"workout_completed", "weight_logged", "meal_plan_followed"})


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _data_dir() -> Path:
    override = get_env("DATA_DIR")
    base = Path(override).expanduser() if override else DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base


def _database_file() -> Path:
    override = get_env("DB_FILE")
    if override:
        path = Path(override).expanduser()
    else:
        path = _data_dir() / DEFAULT_DB_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, alter_sql: str) -> None:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if any(col[1] == column for col in cols):
        return
    conn.execute(alter_sql)
    conn.commit()


def _ensure_database() -> None:
    global _DB_INITIALISED_FOR
    db_path = _database_file()
    if _DB_INITIALISED_FOR is not None and Path(_DB_INITIALISED_FOR).resolve() == db_path.resolve():
        return
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS clients (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                sheets_url TEXT,
                docs_url TEXT,
                last_activity TEXT,
                workout_completed INTEGER NOT NULL DEFAULT 0,
                weight_logged INTEGER NOT NULL DEFAULT 0,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_clients_email ON clients (email);
            """
        )
        # Older databases predate meal plan tracking.
        _ensure_column(
            conn,
            "clients",
            "meal_plan_followed",
            "ALTER TABLE clients ADD COLUMN meal_plan_followed INTEGER NOT NULL DEFAULT 0",
        )
    finally:
        conn.close()
    _DB_INITIALISED_FOR = db_path


@contextmanager
def open_database(readonly: bool = False) -> Iterator[sqlite3.Connection]:
    """Context manager yielding a SQLite connection with ensured schema."""
    _ensure_database()
    db_path = _database_file()
    if readonly:
        uri = f"file:{db_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
    else:
        conn = sqlite3.connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


def _row_to_client(row: Iterable[Any]) -> dict[str, Any]:
    values = dict(zip(CLIENT_COLUMNS, row))
    for flag in _FLAG_COLUMNS:
        values[flag] = bool(values.get(flag))
    values["last_activity"] = values.get("last_activity") or NO_ACTIVITY_MARKER
    return Client(**values).to_dict()


def _select_clients(where: str = "", params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
    query = f"SELECT {', '.join(CLIENT_COLUMNS)} FROM clients {where}"
    with open_database(readonly=True) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_client(row) for row in rows]


def _clean_optional(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


def add_client(
    name: str,
    email: str,
    sheets_url: str | None = None,
    docs_url: str | None = None,
) -> dict[str, Any]:
    """
    Register a new client in the coach's table.

    Name and email are mandatory. Emails are stored lower-cased and must be unique.
    """
    clean_name = str(name or "").strip()
    if not clean_name or not str(email or "").strip():
        raise ValidationError("Name and email are required.")
    clean_email = normalise_email(email)
    if get_client_by_email(clean_email):
        raise ValidationError(f"A client with email {clean_email} already exists.")

    client = Client(
        id=uuid.uuid4().hex[:16],
        name=clean_name,
        email=clean_email,
        sheets_url=_clean_optional(sheets_url),
        docs_url=_clean_optional(docs_url),
        last_activity=NO_ACTIVITY_MARKER,
        created_at=_now_utc().isoformat(),
    )
    with open_database() as conn:
        conn.execute(
            f"INSERT INTO clients ({', '.join(CLIENT_COLUMNS)}) VALUES ({', '.join('?' for _ in CLIENT_COLUMNS)})",
            (
                client.id,
                client.name,
                client.email,
                client.sheets_url,
                client.docs_url,
                client.last_activity,
                0,
                0,
                0,
                client.created_at,
            ),
        )
        conn.commit()
    LOGGER.info("Added client %s", client.email)
    return client.to_dict()


def list_clients() -> list[dict[str, Any]]:
    return _select_clients("ORDER BY name COLLATE NOCASE")


def get_client(client_id: str) -> dict[str, Any] | None:
    rows = _select_clients("WHERE id = ?", (client_id,))
    return rows[0] if rows else None


def get_client_by_email(email: str) -> dict[str, Any] | None:
    clean = (email or "").strip().lower()
    if not clean:
        return None
    rows = _select_clients("WHERE email = ?", (clean,))
    return rows[0] if rows else None


def update_client(client_id: str, fields: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
    """Patch known columns of a client row; returns the updated row or None if missing."""
    changes = dict(fields or {})
    unknown = set(changes) - _UPDATABLE_COLUMNS
    if unknown:
        raise ValidationError(f"Unknown client field(s): {', '.join(sorted(unknown))}.")
    if not changes:
        return get_client(client_id)

    updates: dict[str, Any] = {}
    for column, value in changes.items():
        if column == "name":
            clean = str(value or "").strip()
            if not clean:
                raise ValidationError("Name cannot be empty.")
            updates[column] = clean
        elif column == "email":
            clean_email = normalise_email(value)
            existing = get_client_by_email(clean_email)
            if existing and existing["id"] != client_id:
                raise ValidationError(f"A client with email {clean_email} already exists.")
            updates[column] = clean_email
        elif column in _FLAG_COLUMNS:
            updates[column] = 1 if value else 0
        else:
            updates[column] = _clean_optional(value)

    assignments = ", ".join(f"{column} = ?" for column in updates)
    with open_database() as conn:
        cursor = conn.execute(
            f"UPDATE clients SET {assignments} WHERE id = ?",
            (*updates.values(), client_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
    return get_client(client_id)


def delete_client(client_id: str) -> bool:
    with open_database() as conn:
        cursor = conn.execute("DELETE FROM clients WHERE id = ?", (client_id,))
        conn.commit()
        removed = cursor.rowcount > 0
    if removed:
        LOGGER.info("Removed client %s", client_id)
    return removed


def record_client_activity(
    email: str,
    *,
    workout: bool | None = None,
    weight: bool | None = None,
    meal: bool | None = None,
    when: datetime | None = None,
) -> dict[str, Any] | None:
    """
    Stamp the client's last activity and optionally flip the daily completion flags.

    Unknown emails are ignored (returns None): a Google login may belong to someone
    the coach has not registered yet.
    """
    client = get_client_by_email(email)
    if client is None:
        return None
    stamp = (when or datetime.now()).strftime("%Y-%m-%d %H:%M")
    fields: dict[str, Any] = {"last_activity": stamp}
    if workout is not None:
        fields["workout_completed"] = workout
    if weight is not None:
        fields["weight_logged"] = weight
    if meal is not None:
        fields["meal_plan_followed"] = meal
    return update_client(client["id"], fields)


# ---------------------------------------------------------------------------
# Per-user JSON stores
# ---------------------------------------------------------------------------


def user_key(email: str) -> str:
    return uuid.uuid5(uuid.NAMESPACE_DNS, (email or "").strip().lower()).hex[:16]


def _user_dir(email: str) -> Path:
    target = _data_dir() / "userspace" / user_key(email)
    target.mkdir(parents=True, exist_ok=True)
    return target


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    with NamedTemporaryFile("w", dir=path.parent, delete=False, encoding="utf-8") as tmp:
        tmp.write(text)
        temp_path = Path(tmp.name)
    temp_path.replace(path)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        return default
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.warning("Ignoring unreadable store %s", path)
        return default
    if not isinstance(payload, type(default)):
        LOGGER.warning("Ignoring store %s with unexpected shape", path)
        return default
    return payload


def hungarian_date(day: date) -> str:
    """Format like the ``hu-HU`` locale does: ``2024. 05. 28.``."""
    return f"{day.year}. {day.month:02d}. {day.day:02d}."


def save_workout(
    email: str,
    sheet_name: str,
    week_number: int,
    exercises: Iterable[WorkoutExercise | Mapping[str, Any]],
    *,
    user: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    name = (sheet_name or "").strip()
    if not name:
        raise ValidationError("sheet_name is required.")
    week = int(coerce_number(week_number, field="week_number", minimum=1, allow_float=False))

    serialised = [
        item.to_dict() if isinstance(item, WorkoutExercise) else WorkoutExercise.from_dict(item).to_dict()
        for item in exercises
    ]
    record = {
        "sheet_name": name,
        "week_number": week,
        "exercises": serialised,
        "timestamp": _now_utc().isoformat(),
        "user": dict(user or {"email": email}),
    }
    path = _user_dir(email) / "saved_workouts.json"
    workouts = _read_json(path, [])
    workouts.append(record)
    _write_json(path, workouts)
    LOGGER.info("Saved workout %s week %s for %s", name, week, user_key(email))
    return record


def load_saved_workouts(email: str) -> list[dict[str, Any]]:
    return _read_json(_user_dir(email) / "saved_workouts.json", [])


def save_weight_entry(email: str, entry: WeightEntry | Mapping[str, Any], *, today: date | None = None) -> dict[str, Any]:
    """Append a weight check-in stamped with today's date (the client never picks the day)."""
    payload = entry.to_dict() if isinstance(entry, WeightEntry) else dict(entry)
    payload["date"] = hungarian_date(today or date.today())
    path = _user_dir(email) / "weight_entries.json"
    entries = _read_json(path, [])
    entries.append(payload)
    _write_json(path, entries)
    return payload


def load_saved_weight_entries(email: str) -> list[dict[str, Any]]:
    return _read_json(_user_dir(email) / "weight_entries.json", [])


def save_meal_plan(email: str, foods: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    record = {"foods": [dict(food) for food in foods], "timestamp": _now_utc().isoformat()}
    path = _user_dir(email) / "meal_plans.json"
    plans = _read_json(path, [])
    plans.append(record)
    _write_json(path, plans)
    return record


def load_meal_plans(email: str) -> list[dict[str, Any]]:
    return _read_json(_user_dir(email) / "meal_plans.json", [])


def load_supplement_state(email: str, *, today: date | None = None) -> dict[str, bool]:
    """Supplement ticks are per day: yesterday's state reads as nothing taken."""
    state = _read_json(_user_dir(email) / "supplements.json", {})
    day = (today or date.today()).isoformat()
    if state.get("date") != day:
        return {}
    taken = state.get("taken") or {}
    return {str(name): bool(flag) for name, flag in taken.items()}


def save_supplement_state(email: str, taken: Mapping[str, bool], *, today: date | None = None) -> None:
    day = (today or date.today()).isoformat()
    _write_json(_user_dir(email) / "supplements.json", {"date": day, "taken": dict(taken)})


def user_reports_dir(email: str) -> Path:
    target = _user_dir(email) / "reports"
    target.mkdir(parents=True, exist_ok=True)
    return target
