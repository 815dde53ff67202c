from __future__ import annotations

import sqlite3
from datetime import date, datetime

import pytest

from fittracker import storage
from fittracker.constants import NO_ACTIVITY_MARKER
from fittracker.models import ValidationError, WeightEntry, WorkoutExercise, WorkoutSet


def test_add_and_list_clients_sorted_by_name():
    storage.add_client("zoé", "Zoe@Example.com")
    anna = storage.add_client("  Anna  ", "anna@example.com", sheets_url=" https://docs.google.com/spreadsheets/d/abc ")

    assert anna["name"] == "Anna"
    assert anna["sheets_url"] == "https://docs.google.com/spreadsheets/d/abc"
    assert anna["docs_url"] is None
    assert anna["last_activity"] == NO_ACTIVITY_MARKER
    assert [client["email"] for client in storage.list_clients()] == ["anna@example.com", "zoe@example.com"]
    assert storage.get_client(anna["id"])["name"] == "Anna"
    assert storage.get_client_by_email(" ANNA@example.com ")["id"] == anna["id"]
    assert storage.get_client_by_email("") is None


def test_add_client_rejects_missing_fields_and_duplicates():
    storage.add_client("Anna", "anna@example.com")
    with pytest.raises(ValidationError):
        storage.add_client("", "x@example.com")
    with pytest.raises(ValidationError):
        storage.add_client("Béla", "not-an-email")
    with pytest.raises(ValidationError):
        storage.add_client("Anna Again", "ANNA@example.com")


def test_update_client_fields_and_flags():
    anna = storage.add_client("Anna", "anna@example.com")
    storage.add_client("Béla", "bela@example.com")

    updated = storage.update_client(anna["id"], {"name": "Anna K.", "workout_completed": 1, "docs_url": ""})

    assert updated["name"] == "Anna K."
    assert updated["workout_completed"] is True
    assert updated["docs_url"] is None
    assert storage.update_client(anna["id"]) == updated
    assert storage.update_client("missing", {"name": "X"}) is None
    with pytest.raises(ValidationError):
        storage.update_client(anna["id"], {"id": "new"})
    with pytest.raises(ValidationError):
        storage.update_client(anna["id"], {"client_id": "zzz"})
    with pytest.raises(ValidationError):
        storage.update_client(anna["id"], {"email": "bela@example.com"})
    with pytest.raises(ValidationError):
        storage.update_client(anna["id"], {"name": "  "})


def test_delete_client():
    anna = storage.add_client("Anna", "anna@example.com")
    assert storage.delete_client(anna["id"]) is True
    assert storage.delete_client(anna["id"]) is False
    assert storage.list_clients() == []


def test_record_client_activity_stamps_and_flags():
    storage.add_client("Anna", "anna@example.com")

    client = storage.record_client_activity(
        "anna@example.com", workout=True, weight=False, when=datetime(2024, 6, 1, 8, 15)
    )

    assert client["last_activity"] == "2024-06-01 08:15"
    assert client["workout_completed"] is True
    assert client["weight_logged"] is False
    assert client["meal_plan_followed"] is False
    assert storage.record_client_activity("ghost@example.com") is None


def test_missing_meal_plan_column_is_added(tmp_path, monkeypatch):
    db_path = tmp_path / "legacy.db"
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE clients (id TEXT PRIMARY KEY, name TEXT NOT NULL, email TEXT NOT NULL UNIQUE, "
        "sheets_url TEXT, docs_url TEXT, last_activity TEXT, workout_completed INTEGER NOT NULL DEFAULT 0, "
        "weight_logged INTEGER NOT NULL DEFAULT 0, created_at TEXT)"
    )
    conn.execute("INSERT INTO clients (id, name, email) VALUES ('c1', 'Régi', 'regi@example.com')")
    conn.commit()
    conn.close()
    monkeypatch.setenv("FITTRACKER_DB_FILE", str(db_path))
    monkeypatch.setattr(storage, "_DB_INITIALISED_FOR", None)

    clients = storage.list_clients()

    assert clients[0]["meal_plan_followed"] is False
    assert clients[0]["last_activity"] == NO_ACTIVITY_MARKER
    assert storage.update_client("c1", {"meal_plan_followed": True})["meal_plan_followed"] is True


def test_save_workout_appends_records():
    exercises = [WorkoutExercise(name="Guggolás", sets=[WorkoutSet(100, 5)])]

    record = storage.save_workout("anna@example.com", " Láb ", "3", exercises)
    storage.save_workout("anna@example.com", "Láb", 4, [{"name": "Guggolás", "sets": [{"weight": "102,5", "reps": 5}]}])

    assert set(record) == {"sheet_name", "week_number", "exercises", "timestamp", "user"}
    assert record["sheet_name"] == "Láb"
    assert record["week_number"] == 3
    assert record["user"] == {"email": "anna@example.com"}
    saved = storage.load_saved_workouts("ANNA@example.com")
    assert [item["week_number"] for item in saved] == [3, 4]
    assert saved[1]["exercises"][0]["sets"] == [{"weight": 102.5, "reps": 5}]
    assert storage.load_saved_workouts("bela@example.com") == []


@pytest.mark.parametrize(("sheet", "week"), [("", 1), ("Láb", "x"), ("Láb", 0), ("Láb", 2.5), ("Láb", None)])
def test_save_workout_validates(sheet, week):
    with pytest.raises(ValidationError):
        storage.save_workout("anna@example.com", sheet, week, [])


def test_save_weight_entry_stamps_hungarian_date():
    saved = storage.save_weight_entry(
        "anna@example.com", WeightEntry(date="", weight=91.2, sleep=7), today=date(2024, 5, 30)
    )
    storage.save_weight_entry("anna@example.com", {"weight": 91.0}, today=date(2024, 5, 31))

    assert saved["date"] == "2024. 05. 30."
    assert [entry["date"] for entry in storage.load_saved_weight_entries("anna@example.com")] == [
        "2024. 05. 30.",
        "2024. 05. 31.",
    ]


def test_corrupt_store_reads_as_empty():
    path = storage._user_dir("anna@example.com") / "weight_entries.json"
    path.write_text("{not json", encoding="utf-8")
    assert storage.load_saved_weight_entries("anna@example.com") == []
    path.write_text('{"weight": 90}', encoding="utf-8")
    assert storage.load_saved_weight_entries("anna@example.com") == []


def test_meal_plans_round_trip():
    storage.save_meal_plan("anna@example.com", [{"name": "Lazac", "amount": "120g", "meal_type": "dinner"}])
    plans = storage.load_meal_plans("anna@example.com")
    assert plans[0]["foods"][0]["name"] == "Lazac"
    assert "timestamp" in plans[0]


def test_supplement_state_resets_next_day():
    storage.save_supplement_state("anna@example.com", {"Omega 3": True}, today=date(2024, 6, 1))
    assert storage.load_supplement_state("anna@example.com", today=date(2024, 6, 1)) == {"Omega 3": True}
    assert storage.load_supplement_state("anna@example.com", today=date(2024, 6, 2)) == {}


def test_user_dirs_are_keyed_by_normalised_email(tmp_path):
    assert storage.user_key("Anna@Example.com ") == storage.user_key("anna@example.com")
    reports = storage.user_reports_dir("anna@example.com")
    assert reports.is_dir()
    assert reports.is_relative_to(tmp_path / "data")
