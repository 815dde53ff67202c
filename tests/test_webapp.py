from __future__ import annotations

import re
from pathlib import Path

import pytest

from fittracker import auth, storage
from fittracker.webapp import create_app

from conftest import WEIGHT_ROWS

ANNA = "anna@example.com"
COACH = "coach@example.com"
SHEET_LINK = "https://docs.google.com/spreadsheets/d/sheet123abc/edit"
DOC_LINK = "https://docs.google.com/document/d/doc456defg/edit"


@pytest.fixture
def workspace(make_workspace, client_tabs):
    return make_workspace(client_tabs)


@pytest.fixture
def app(monkeypatch, workspace):
    monkeypatch.setenv("FITTRACKER_ADMIN_EMAILS", COACH)

    def _fake_verify(token, client_id=None):
        if not token or token == "bad":
            raise auth.AuthError("Invalid Google credential.")
        email = f"{token}@example.com"
        return auth.GoogleIdentity(email=email, name=token.title(), picture=None, subject=token)

    monkeypatch.setattr(auth, "verify_google_token", _fake_verify)
    flask_app = create_app()
    flask_app.config.update(TESTING=True, WORKSPACE_FACTORY=lambda token: workspace if token else None)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, who: str, **extra):
    return client.post("/auth/google", json={"credential": who, "access_token": "ya29.token", **extra})


@pytest.fixture
def anna(client):
    storage.add_client("Anna", ANNA, sheets_url=SHEET_LINK, docs_url=DOC_LINK)
    response = _login(client, "anna")
    assert response.status_code == 200
    return client


@pytest.fixture
def coach(client):
    response = _login(client, "coach")
    assert response.status_code == 200
    return client


def test_health_and_unknown_route(client):
    assert client.get("/health").get_json() == {"status": "ok"}
    missing = client.get("/nope")
    assert missing.status_code == 404
    assert "error" in missing.get_json()


def test_endpoints_require_login(client):
    assert client.get("/api/files").status_code == 401
    assert client.get("/auth/me").status_code == 401
    assert client.get("/api/admin/overview").status_code == 401


def test_google_login_sets_session_and_stamps_activity(client):
    storage.add_client("Anna", ANNA)

    response = _login(client, "anna")

    body = response.get_json()
    assert body["role"] == "client"
    assert body["user"]["email"] == ANNA
    assert client.get("/auth/me").get_json()["user"]["email"] == ANNA
    assert storage.get_client_by_email(ANNA)["last_activity"] != "Még nincs aktivitás"

    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_admin_login_and_role_refusal(client):
    assert _login(client, "coach").get_json()["role"] == "admin"
    assert _login(client, "coach", role="client").get_json()["role"] == "client"
    refused = _login(client, "anna", role="admin")
    assert refused.status_code == 403


def test_failed_logins_are_rate_limited(client):
    for _ in range(auth.MAX_FAILED_ATTEMPTS):
        assert _login(client, "bad").status_code == 401
    assert _login(client, "anna").status_code == 429


def test_files_and_progress_from_registered_links(anna):
    files = anna.get("/api/files").get_json()
    assert files["has_sheets"] is True
    assert files["sheets_url"] == "https://docs.google.com/spreadsheets/d/sheet123abc"
    assert files["workout_frequency"] == 1
    assert anna.get("/api/progress").get_json()["progress"]["weekly_workouts"] == 1


def test_workouts_listing_and_exercise_names(anna):
    body = anna.get("/api/workouts").get_json()
    assert [sheet["name"] for sheet in body["sheets"]] == ["Felsőtest 1"]
    assert len(body["sheets"][0]["weeks"]) == 12
    assert body["saved"] == []
    assert anna.get("/api/workouts/exercises").get_json() == {"exercises": ["Fekvenyomás", "Tárogatás"]}


def test_without_google_token_workouts_are_demo_data(client):
    _login(client, "anna", access_token="")
    names = [sheet["name"] for sheet in client.get("/api/workouts").get_json()["sheets"]]
    assert names == ["Felsőtest 1", "Láb", "Felsőtest 2", "Push/Pull"]


def test_save_workout_stores_syncs_and_flags(anna, workspace):
    payload = {
        "sheet_name": "Felsőtest 1",
        "week_number": 2,
        "exercises": [
            {
                "name": "Fekvenyomás",
                "sets": [{"weight": 80, "reps": 8}, {"weight": 85, "reps": 6}],
                "previous_week_best": {"weight": 80, "reps": 7},
            }
        ],
    }

    response = anna.post("/api/workouts", json=payload)

    assert response.status_code == 201
    body = response.get_json()
    assert body["synced_rows"] == 2
    assert body["summary"]["total_weight"] == 1150
    assert body["workout"]["user"]["email"] == ANNA
    assert workspace.sheets.appended[0][1] == "Edzések"
    assert storage.get_client_by_email(ANNA)["workout_completed"] is True
    assert len(anna.get("/api/workouts").get_json()["saved"]) == 1


def test_save_workout_validation(anna):
    assert anna.post("/api/workouts", json={"sheet_name": "Láb", "week_number": 1, "exercises": []}).status_code == 400
    bad_week = anna.post("/api/workouts", json={"sheet_name": "Láb", "week_number": 0, "exercises": [{"name": "X"}]})
    assert bad_week.status_code == 400
    assert "week_number" in bad_week.get_json()["error"]


def test_workout_summary_endpoint(anna):
    body = anna.post("/api/workouts/summary", json={"exercises": [{"name": "Guggolás", "sets": [{"weight": 100, "reps": 10}]}]})
    assert body.get_json()["total_weight"] == 1000


def test_weight_log_and_history(anna, workspace):
    response = anna.post("/api/weight", json={"weight": "91,0", "sleep": 7, "notes": "ok"})

    assert response.status_code == 201
    entry = response.get_json()["entry"]
    assert re.fullmatch(r"\d{4}\. \d{2}\. \d{2}\.", entry["date"])
    assert workspace.sheets.appended[-1][1] == "Súly"
    assert storage.get_client_by_email(ANNA)["weight_logged"] is True

    history = anna.get("/api/weight").get_json()
    assert [item["weight"] for item in history["entries"]] == [91.6, 91.4, 91.0]
    assert history["trend"] == -0.6

    trend = anna.get("/api/weight/trend").get_json()
    assert trend["trend"]["entries"] == 3
    assert trend["weekly"][0]["week"] == "2024-W22"


def test_synced_check_ins_are_counted_once(anna, workspace):
    anna.post("/api/weight", json={"weight": "91,0"})
    anna.post("/api/weight", json={"weight": "90,5"})

    assert len(workspace.sheets.tabs["Súly"]) == len(WEIGHT_ROWS) + 2
    history = anna.get("/api/weight").get_json()
    assert [item["weight"] for item in history["entries"]] == [91.6, 91.4, 91.0, 90.5]
    assert anna.get("/api/weight/trend").get_json()["trend"]["entries"] == 4


def test_weight_history_without_weight_tab_has_no_demo_entries(anna, client_tabs):
    del client_tabs["Súly"]
    anna.post("/api/weight", json={"weight": "91,0"})
    anna.post("/api/weight", json={"weight": "90,0"})

    history = anna.get("/api/weight").get_json()

    assert [item["weight"] for item in history["entries"]] == [91.0, 90.0]
    assert history["trend"] == -1.0


def test_weight_log_rejects_bad_scores(anna):
    assert anna.post("/api/weight", json={"weight": 90, "stress": 12}).status_code == 400
    assert anna.post("/api/weight", json={}).status_code == 400


def test_meals_today_and_options(anna):
    body = anna.get("/api/meals/today").get_json()
    assert body["meals"]["total_calories"] == 753
    assert body["summary"]["target"] == 2200
    assert set(body["summary"]["sections"]) == {"breakfast", "lunch", "dinner"}

    options = anna.get("/api/meals/options").get_json()
    assert "Csirkemell" in options["suggestions"]
    assert options["options"]["lunch"][0]["name"] == "Csirkemell rizzsel"


def test_meal_plan_save(anna):
    foods = [
        {"name": "Zabpehely", "amount": "50g", "meal_type": "breakfast"},
        {"name": "Lazac", "amount": "120g", "meal_type": "dinner"},
    ]
    response = anna.post("/api/meals/plan", json={"foods": foods})
    assert response.status_code == 201
    assert set(response.get_json()["grouped"]) == {"breakfast", "dinner"}
    assert storage.get_client_by_email(ANNA)["meal_plan_followed"] is True
    assert anna.post("/api/meals/plan", json={"foods": []}).status_code == 400


def test_shopping_list(anna):
    selection = [{"meal_type": "lunch", "name": "Csirkemell rizzsel", "quantity": 2}]
    items = anna.post("/api/meals/shopping-list", json={"selection": selection}).get_json()["items"]
    assert items[0] == {"ingredient": "Csirkemell", "total_amount": 300.0, "unit": "g", "meals": ["Csirkemell rizzsel"]}
    unknown = anna.post("/api/meals/shopping-list", json={"selection": [{"meal_type": "lunch", "name": "Pizza"}]})
    assert unknown.status_code == 400


def test_supplements_toggle_persists_for_today(anna):
    listing = anna.get("/api/supplements").get_json()
    assert listing["progress"] == {"taken": 0, "total": 3, "percent": 0}
    assert listing["supplements"][2]["category_label"] == "Alvás"

    toggled = anna.post("/api/supplements/0/toggle").get_json()
    assert toggled["message"] == "Omega 3 hozzáadva a mai listához."
    assert anna.get("/api/supplements").get_json()["progress"]["taken"] == 1
    assert anna.post("/api/supplements/7/toggle").status_code == 404


def test_progress_report_pdf(anna):
    body = anna.post("/api/reports/progress").get_json()
    assert Path(body["file"]).exists()
    assert body["file"].endswith(".pdf")


def test_install_hint(client):
    body = client.get("/api/install-hint", headers={"User-Agent": "Mozilla/5.0 (iPhone)"}).get_json()
    assert body["platform"] == "ios"


def test_admin_endpoints_refuse_clients(anna):
    assert anna.get("/api/admin/overview").status_code == 403
    assert anna.post("/api/admin/clients", json={"name": "X", "email": "x@example.com"}).status_code == 403


def test_admin_manages_clients(coach):
    created = coach.post("/api/admin/clients", json={"name": "Béla", "email": "Bela@Example.com"})
    assert created.status_code == 201
    client_id = created.get_json()["client"]["id"]
    assert coach.post("/api/admin/clients", json={"name": "Béla 2", "email": "bela@example.com"}).status_code == 400

    listing = coach.get("/api/admin/clients").get_json()["clients"]
    assert listing[0]["status"] == "0/3"
    overview = coach.get("/api/admin/overview").get_json()
    assert overview["total_clients"] == 1

    patched = coach.patch(f"/api/admin/clients/{client_id}", json={"name": "Béla K."})
    assert patched.get_json()["client"]["name"] == "Béla K."
    assert coach.patch("/api/admin/clients/missing", json={"name": "X"}).status_code == 404
    assert coach.patch(f"/api/admin/clients/{client_id}", json={"colour": "red"}).status_code == 400
    assert coach.patch(f"/api/admin/clients/{client_id}", json={"client_id": "zzz"}).status_code == 400
    assert coach.patch(f"/api/admin/clients/{client_id}", json={"email": 7}).status_code == 400
    assert coach.post("/api/admin/clients", json={"name": 123, "email": 456}).status_code == 400

    assert coach.delete(f"/api/admin/clients/{client_id}").status_code == 200
    assert coach.delete(f"/api/admin/clients/{client_id}").status_code == 404


def test_admin_creates_google_files(coach, workspace):
    client_id = coach.post("/api/admin/clients", json={"name": "Béla", "email": "bela@example.com"}).get_json()["client"]["id"]

    response = coach.post(f"/api/admin/clients/{client_id}/files")

    assert response.status_code == 201
    files = response.get_json()["files"]
    assert files["sheets_url"] == "https://docs.google.com/spreadsheets/d/newsheet123456"
    assert storage.get_client(client_id)["docs_url"] == "https://docs.google.com/document/d/newdoc7890123"
    assert workspace.sheets.created[0]["properties"]["title"] == "Béla - Edzésnapló"
    assert coach.post("/api/admin/clients/missing/files").status_code == 404


def test_admin_create_files_needs_token(client):
    _login(client, "coach", access_token="")
    client_id = client.post("/api/admin/clients", json={"name": "Béla", "email": "bela@example.com"}).get_json()["client"]["id"]
    assert client.post(f"/api/admin/clients/{client_id}/files").status_code == 400
