from __future__ import annotations

import json
import logging
import os
from functools import wraps
from typing import Any, Callable, Optional

from flask import Flask, current_app, g, jsonify, request, session as flask_session
from werkzeug.exceptions import HTTPException

from .. import auth, services, storage
from ..config import get_config
from ..constants import ROLE_ADMIN, ROLE_CLIENT
from ..env import get_env
from ..google_api import GoogleApiError, GoogleWorkspace
from ..importer import ClientWorkbook
from ..metrics import compute_weight_trend, weekly_weight_summary, weight_entries_to_dataframe
from ..models import ValidationError, WorkoutExercise
from ..reports import generate_progress_report

LOGGER = logging.getLogger(__name__)

WorkspaceFactory = Callable[[Optional[str]], Optional[GoogleWorkspace]]


def _default_workspace_factory(access_token: str | None) -> GoogleWorkspace | None:
    if not access_token:
        return None
    return GoogleWorkspace.from_access_token(access_token)


def create_app() -> Flask:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)
    env_secret = get_env("SECRET") or os.environ.get("SECRET_KEY")
    if not env_secret and os.environ.get("FLASK_ENV") == "production":
        raise RuntimeError("SECRET_KEY/FITTRACKER_SECRET must be set in production.")
    app.secret_key = env_secret or "dev-secret"
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=os.environ.get("SESSION_COOKIE_SECURE", "0") == "1",
        PREFERRED_URL_SCHEME="https" if os.environ.get("FORCE_HTTPS", "0") == "1" else "http",
        WORKSPACE_FACTORY=_default_workspace_factory,
    )

    @app.before_request
    def load_user() -> None:
        g.user = flask_session.get("user")

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(GoogleApiError)
    def handle_google_error(exc: GoogleApiError):
        LOGGER.warning("Google API failure: %s", exc)
        return jsonify({"error": str(exc)}), 502

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    register_auth(app)
    register_api(app)
    register_admin(app)
    return app


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not getattr(g, "user", None):
            return jsonify({"error": "authentication required"}), 401
        return view(*args, **kwargs)

    return wrapped


def require_role(*roles: str):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            role = user.get("role") if user else None
            if role not in roles:
                return jsonify({"error": "forbidden"}), 403
            return func(*args, **kwargs)

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Request-scoped helpers
# ---------------------------------------------------------------------------


def _workspace() -> GoogleWorkspace | None:
    factory: WorkspaceFactory = current_app.config["WORKSPACE_FACTORY"]
    return factory(flask_session.get("access_token"))


def _workbook() -> ClientWorkbook:
    """Client workbook for the signed-in user, located once per request."""
    if "workbook" not in g:
        email = g.user["email"]
        workbook = ClientWorkbook(_workspace(), get_config())
        registered = storage.get_client_by_email(email) or {}
        workbook.initialize_client(
            email,
            {"sheets_url": registered.get("sheets_url"), "docs_url": registered.get("docs_url")},
        )
        g.workbook = workbook
    return g.workbook


def _payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _weight_history(workbook: ClientWorkbook) -> list[dict[str, Any]]:
    return workbook.weight_history(storage.load_saved_weight_entries(g.user["email"]))


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def register_auth(app: Flask) -> None:
    @app.post("/auth/google")
    def auth_google():
        payload = _payload()
        remote_addr = request.remote_addr or "unknown"
        if auth.is_rate_limited(remote_addr):
            return jsonify({"error": "Too many attempts. Try again in a few minutes."}), 429
        try:
            identity = auth.verify_google_token(payload.get("credential"))
        except auth.AuthError as exc:
            auth.record_failed_login(remote_addr)
            return jsonify({"error": str(exc)}), 401
        try:
            role = auth.resolve_role(identity.email, payload.get("role"))
        except auth.AuthError as exc:
            auth.record_failed_login(remote_addr)
            return jsonify({"error": str(exc)}), 403

        auth.clear_failed_login(remote_addr)
        flask_session.clear()
        user = {**identity.to_dict(), "role": role}
        flask_session["user"] = user
        if payload.get("access_token"):
            flask_session["access_token"] = str(payload["access_token"])
        if role == ROLE_CLIENT:
            storage.record_client_activity(identity.email)
        LOGGER.info("Signed in %s as %s", identity.email, role)
        return jsonify({"user": user, "role": role})

    @app.post("/auth/logout")
    def auth_logout():
        flask_session.clear()
        return jsonify({"status": "ok"})

    @app.get("/auth/me")
    @login_required
    def auth_me():
        return jsonify({"user": g.user, "role": g.user.get("role")})

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200


# ---------------------------------------------------------------------------
# Client tabs
# ---------------------------------------------------------------------------


def register_api(app: Flask) -> None:
    @app.get("/api/files")
    @login_required
    def api_files():
        return jsonify(_workbook().status())

    @app.get("/api/progress")
    @login_required
    def api_progress():
        return jsonify({"progress": _workbook().get_user_progress().to_dict()})

    @app.get("/api/workouts")
    @login_required
    def api_workouts():
        workbook = _workbook()
        sheets = workbook.get_workout_sheets()
        return jsonify(
            {
                "sheets": [sheet.to_dict() for sheet in sheets],
                "saved": storage.load_saved_workouts(g.user["email"]),
                "files": workbook.status(),
            }
        )

    @app.get("/api/workouts/exercises")
    @login_required
    def api_workout_exercises():
        return jsonify({"exercises": _workbook().get_exercise_names()})

    @app.post("/api/workouts")
    @login_required
    def api_save_workout():
        payload = _payload()
        raw_exercises = payload.get("exercises")
        if not isinstance(raw_exercises, list) or not raw_exercises:
            raise ValidationError("exercises must be a non-empty list.")
        exercises = [WorkoutExercise.from_dict(item) for item in raw_exercises if isinstance(item, dict)]
        record = storage.save_workout(
            g.user["email"],
            payload.get("sheet_name") or "",
            payload.get("week_number"),
            exercises,
            user={"email": g.user["email"], "name": g.user.get("name")},
        )
        synced = _workbook().sync_workout(record["sheet_name"], record["week_number"], exercises)
        storage.record_client_activity(g.user["email"], workout=True)
        return (
            jsonify({"workout": record, "summary": services.summarize_workout(exercises), "synced_rows": synced}),
            201,
        )

    @app.post("/api/workouts/summary")
    @login_required
    def api_workout_summary():
        raw_exercises = _payload().get("exercises") or []
        if not isinstance(raw_exercises, list):
            raise ValidationError("exercises must be a list.")
        exercises = [WorkoutExercise.from_dict(item) for item in raw_exercises if isinstance(item, dict)]
        return jsonify(services.summarize_workout(exercises))

    @app.get("/api/weight")
    @login_required
    def api_weight():
        entries = _weight_history(_workbook())
        return jsonify({"entries": entries, "trend": services.weight_trend(entries)})

    @app.post("/api/weight")
    @login_required
    def api_log_weight():
        entry = services.build_weight_entry(_payload())
        saved = storage.save_weight_entry(g.user["email"], entry)
        entry.date = saved["date"]
        _workbook().sync_weight_entry(entry)
        storage.record_client_activity(g.user["email"], weight=True)
        return jsonify({"entry": saved}), 201

    @app.get("/api/weight/trend")
    @login_required
    def api_weight_trend():
        df = weight_entries_to_dataframe(_weight_history(_workbook()))
        weekly = weekly_weight_summary(df)
        return jsonify(
            {
                "trend": compute_weight_trend(df),
                "weekly": json.loads(weekly.to_json(orient="records")),
            }
        )

    @app.get("/api/meals/today")
    @login_required
    def api_meals_today():
        meals = _workbook().get_todays_meals()
        summary = services.daily_calorie_summary(meals.sections(), get_config().daily_calorie_target)
        return jsonify({"meals": meals.to_dict(), "summary": summary})

    @app.get("/api/meals/options")
    @login_required
    def api_meal_options():
        options = _workbook().get_meal_options()
        return jsonify(
            {
                "options": {meal: [option.to_dict() for option in items] for meal, items in options.items()},
                "suggestions": list(services.FOOD_SUGGESTIONS),
            }
        )

    @app.post("/api/meals/plan")
    @login_required
    def api_save_meal_plan():
        foods = _payload().get("foods") or []
        if not isinstance(foods, list):
            raise ValidationError("foods must be a list.")
        plan = services.MealPlan.from_payload(item for item in foods if isinstance(item, dict))
        record = storage.save_meal_plan(g.user["email"], plan.validate_for_save())
        storage.record_client_activity(g.user["email"], meal=True)
        grouped = {meal: [food.to_dict() for food in items] for meal, items in plan.grouped().items()}
        return jsonify({"plan": record, "grouped": grouped}), 201

    @app.post("/api/meals/shopping-list")
    @login_required
    def api_shopping_list():
        selection = _payload().get("selection") or []
        if not isinstance(selection, list):
            raise ValidationError("selection must be a list.")
        picks = services.resolve_meal_selection(
            _workbook().get_meal_options(), [item for item in selection if isinstance(item, dict)]
        )
        items = services.generate_shopping_list(picks)
        return jsonify({"items": [item.to_dict() for item in items]})

    @app.get("/api/supplements")
    @login_required
    def api_supplements():
        taken = storage.load_supplement_state(g.user["email"])
        supplements = services.apply_supplement_state(_workbook().get_supplements(), taken)
        return jsonify(
            {
                "supplements": [
                    {**item.to_dict(), "category_label": services.category_label(item.category)}
                    for item in supplements
                ],
                "progress": services.supplement_progress(supplements),
            }
        )

    @app.post("/api/supplements/<int:index>/toggle")
    @login_required
    def api_toggle_supplement(index: int):
        taken = storage.load_supplement_state(g.user["email"])
        supplements = services.apply_supplement_state(_workbook().get_supplements(), taken)
        try:
            updated, message = services.toggle_supplement(supplements, index)
        except ValidationError as exc:
            return jsonify({"error": str(exc)}), 404
        storage.save_supplement_state(g.user["email"], {item.name: item.taken for item in updated})
        return jsonify(
            {
                "supplement": updated[index].to_dict(),
                "message": message,
                "progress": services.supplement_progress(updated),
            }
        )

    @app.post("/api/reports/progress")
    @login_required
    def api_progress_report():
        email = g.user["email"]
        try:
            pdf_path = generate_progress_report(
                g.user.get("name") or email,
                _weight_history(_workbook()),
                storage.load_saved_workouts(email),
                output_dir=storage.user_reports_dir(email),
            )
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify({"message": f"Saved PDF report to {pdf_path}", "file": str(pdf_path)})

    @app.get("/api/install-hint")
    def api_install_hint():
        return jsonify(services.install_hint(request.headers.get("User-Agent")))


# ---------------------------------------------------------------------------
# Coach dashboard
# ---------------------------------------------------------------------------


def register_admin(app: Flask) -> None:
    @app.get("/api/admin/overview")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_overview():
        return jsonify(services.admin_overview(storage.list_clients()))

    @app.get("/api/admin/clients")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_clients():
        clients = storage.list_clients()
        return jsonify({"clients": [{**client, "status": services.activity_status(client)} for client in clients]})

    @app.post("/api/admin/clients")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_add_client():
        payload = _payload()
        client = storage.add_client(
            payload.get("name") or "",
            payload.get("email") or "",
            sheets_url=payload.get("sheets_url"),
            docs_url=payload.get("docs_url"),
        )
        return jsonify({"client": client}), 201

    @app.patch("/api/admin/clients/<client_id>")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_update_client(client_id: str):
        client = storage.update_client(client_id, _payload())
        if client is None:
            return jsonify({"error": "Client not found"}), 404
        return jsonify({"client": client})

    @app.delete("/api/admin/clients/<client_id>")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_delete_client(client_id: str):
        if not storage.delete_client(client_id):
            return jsonify({"error": "Client not found"}), 404
        return jsonify({"status": "ok"})

    @app.post("/api/admin/clients/<client_id>/files")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_admin_create_files(client_id: str):
        client = storage.get_client(client_id)
        if client is None:
            return jsonify({"error": "Client not found"}), 404
        workspace = _workspace()
        if workspace is None:
            return jsonify({"error": "A Google access token is required to create files."}), 400
        urls = workspace.create_client_files(client["name"], client["email"])
        updated = storage.update_client(client_id, urls)
        return jsonify({"client": updated, "files": urls}), 201
