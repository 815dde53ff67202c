from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.progress import Progress

from . import mock_data, services, storage
from .config import as_dict as config_as_dict, get_config
from .google_api import GoogleApiError, GoogleWorkspace, extract_file_id
from .metrics import compute_weight_trend, weekly_weight_summary, weight_entries_to_dataframe
from .models import ValidationError
from .reports import generate_progress_report
from .sheets_parser import analyze_workout_structure, parse_meal_rows, parse_weight_rows, parse_workout_rows

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="Coach-side tools for FitTracker Pro: clients, sheet imports, weight logs and reports.")
clients_app = typer.Typer(help="Manage the client registry.")
weight_app = typer.Typer(help="Log and review body-weight check-ins.")

IMPORT_SECTIONS = ("structure", "workouts", "meals", "weight")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# clients
# ---------------------------------------------------------------------------


@clients_app.command("add")
def clients_add(
    name: str = typer.Option(..., "--name", "-n", help="Client's full name."),
    email: str = typer.Option(..., "--email", "-e", help="Google account email of the client."),
    sheets_url: Optional[str] = typer.Option(None, "--sheets-url", help="Existing workout spreadsheet link."),
    docs_url: Optional[str] = typer.Option(None, "--docs-url", help="Existing meal plan document link."),
) -> None:
    """Register a client."""
    try:
        client = storage.add_client(name, email, sheets_url=sheets_url, docs_url=docs_url)
    except ValidationError as exc:
        _fail(str(exc))
    typer.echo(f"Added {client['name']} <{client['email']}> (id {client['id']}).")


@clients_app.command("list")
def clients_list(
    as_json: bool = typer.Option(False, "--json", help="Print the registry as JSON."),
) -> None:
    """List registered clients with today's completion status."""
    clients = storage.list_clients()
    if as_json:
        _echo_json(clients)
        return
    if not clients:
        typer.echo("No clients registered yet.")
        return
    for client in clients:
        typer.echo(
            f"{client['id']}  {client['name']:<24} {client['email']:<32} "
            f"{services.activity_status(client)}  {client['last_activity']}"
        )


@clients_app.command("remove")
def clients_remove(client_id: str = typer.Argument(..., help="Client id as shown by 'clients list'.")) -> None:
    """Delete a client from the registry."""
    if not storage.delete_client(client_id):
        _fail(f"No client with id {client_id}.")
    typer.echo(f"Removed client {client_id}.")


@app.command("overview")
def overview() -> None:
    """Print the coach dashboard headline numbers."""
    summary = services.admin_overview(storage.list_clients())
    typer.echo(f"Clients: {summary['total_clients']}")
    typer.echo(f"Active today: {summary['active_today']}")
    typer.echo(f"Workouts completed: {summary['workouts_completed']}")
    typer.echo(f"Weekly average: {summary['weekly_average']}%")


# ---------------------------------------------------------------------------
# import
# ---------------------------------------------------------------------------


@app.command("import")
def import_sheet(
    spreadsheet: str = typer.Argument(..., help="Spreadsheet URL or id."),
    credentials: Optional[Path] = typer.Option(
        None,
        "--credentials",
        "-c",
        help="Service-account JSON (defaults to FITTRACKER_GOOGLE_CREDENTIALS).",
    ),
    section: list[str] = typer.Option(
        [],
        "--section",
        "-s",
        help="Limit output to structure, workouts, meals or weight (repeatable).",
    ),
) -> None:
    """
    Read a client spreadsheet and print what the importer recognises in it.

    Examples:
        fittracker import https://docs.google.com/spreadsheets/d/<id> --section workouts
    """
    spreadsheet_id = extract_file_id(spreadsheet)
    if not spreadsheet_id:
        _fail(f"Not a spreadsheet link or id: {spreadsheet}")
    wanted = [item.lower() for item in section] or list(IMPORT_SECTIONS)
    unknown = sorted(set(wanted) - set(IMPORT_SECTIONS))
    if unknown:
        _fail(f"Unknown section(s): {', '.join(unknown)}. Choose from {', '.join(IMPORT_SECTIONS)}.")

    config = get_config()
    try:
        workspace = GoogleWorkspace.from_service_account(str(credentials) if credentials else None)
        titles = workspace.list_sheet_titles(spreadsheet_id)
    except GoogleApiError as exc:
        _fail(str(exc))

    structure = analyze_workout_structure(
        titles,
        default_frequency=config.default_workout_frequency,
        keywords=config.sheet_keywords,
    )
    result: dict[str, Any] = {}
    if "structure" in wanted:
        result["structure"] = structure

    tabs: list[tuple[str, str]] = []
    if "workouts" in wanted:
        tabs.extend(("workouts", entry["name"]) for entry in structure["sheets"])
    if "meals" in wanted and structure["meal_sheet"]:
        tabs.append(("meals", structure["meal_sheet"]))
    if "weight" in wanted and structure["weight_sheet"]:
        tabs.append(("weight", structure["weight_sheet"]))

    with Progress() as progress:
        task = progress.add_task("Reading tabs", total=len(tabs) or None)
        for kind, title in tabs:
            try:
                rows = workspace.read_values(spreadsheet_id, title)
            except GoogleApiError as exc:
                LOGGER.warning("Skipping tab %r: %s", title, exc)
                progress.advance(task)
                continue
            if kind == "workouts":
                result.setdefault("workouts", {})[title] = [item.to_dict() for item in parse_workout_rows(rows)]
            elif kind == "meals":
                meals = parse_meal_rows(rows)
                result["meals"] = (
                    {meal: [option.to_dict() for option in items] for meal, items in meals.items()} if meals else None
                )
            else:
                result["weight"] = [entry.to_dict() for entry in parse_weight_rows(rows)]
            progress.advance(task)

    _echo_json(result)


# ---------------------------------------------------------------------------
# weight
# ---------------------------------------------------------------------------


@weight_app.command("log")
def weight_log(
    email: str = typer.Option(..., "--email", "-e", help="Client email the check-in belongs to."),
    weight: float = typer.Option(..., "--weight", "-w", help="Morning body weight in kg."),
    sleep: Optional[float] = typer.Option(None, "--sleep", help="Sleep quality 1-10."),
    stress: Optional[float] = typer.Option(None, "--stress", help="Stress 1-10."),
    fatigue: Optional[float] = typer.Option(None, "--fatigue", help="Fatigue 1-10."),
    motivation: Optional[float] = typer.Option(None, "--motivation", help="Motivation 1-10."),
    training: Optional[float] = typer.Option(None, "--training", help="Training quality 1-10."),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-form notes."),
) -> None:
    """Record today's weight check-in for a client."""
    payload = {
        "weight": weight,
        "sleep": sleep,
        "stress": stress,
        "fatigue": fatigue,
        "motivation": motivation,
        "training": training,
        "notes": notes,
    }
    try:
        entry = services.build_weight_entry(payload)
    except ValidationError as exc:
        _fail(str(exc))
    saved = storage.save_weight_entry(email, entry)
    storage.record_client_activity(email, weight=True)
    typer.echo(f"Logged {saved['weight']:.1f} kg for {email} on {saved['date']}.")


@weight_app.command("trend")
def weight_trend_cli(
    email: str = typer.Option(..., "--email", "-e", help="Client email."),
    weekly: bool = typer.Option(False, "--weekly", help="Also print the per-week table."),
) -> None:
    """Summarise a client's saved weight check-ins."""
    df = weight_entries_to_dataframe(storage.load_saved_weight_entries(email))
    if df.empty:
        typer.echo(f"No weight entries saved for {email}.")
        raise typer.Exit(code=0)
    trend = compute_weight_trend(df)
    typer.echo(
        f"{trend['entries']} check-ins: {trend['first']:.1f} kg -> {trend['last']:.1f} kg "
        f"({trend['change']:+.1f} kg, {trend['slope_per_week']:+.2f} kg/week)."
    )
    if weekly:
        typer.echo(weekly_weight_summary(df).to_string(index=False))


# ---------------------------------------------------------------------------
# meals / reports / config
# ---------------------------------------------------------------------------


@app.command("shopping-list")
def shopping_list(
    pick: list[str] = typer.Option(
        [],
        "--pick",
        "-p",
        help="meal_type:option name[:quantity], e.g. 'lunch:Csirkemell rizzsel:2' (repeatable).",
    ),
) -> None:
    """Merge the ingredients of the chosen meal options into one shopping list."""
    options = mock_data.mock_meal_options()
    selection: list[dict[str, Any]] = []
    if not pick:
        selection = [{"meal_type": meal, "name": items[0].name, "quantity": 1} for meal, items in options.items() if items]
    for raw in pick:
        parts = [part.strip() for part in raw.split(":")]
        if len(parts) < 2:
            _fail(f"Pick must look like meal_type:option name[:quantity]; received {raw!r}.")
        selection.append({"meal_type": parts[0], "name": parts[1], "quantity": parts[2] if len(parts) > 2 else 1})
    try:
        items = services.generate_shopping_list(services.resolve_meal_selection(options, selection))
    except ValidationError as exc:
        _fail(str(exc))
    for item in items:
        typer.echo(f"{item.ingredient:<28} {item.total_amount:g} {item.unit:<6} ({', '.join(item.meals)})")


@app.command("report")
def report(
    email: str = typer.Option(..., "--email", "-e", help="Client email."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Name printed on the PDF."),
    output_dir: Path = typer.Option(
        Path("reports"),
        "--output-dir",
        "-o",
        help="Destination directory for the generated PDF.",
    ),
) -> None:
    """Generate a PDF progress report from a client's saved check-ins and workouts."""
    client = storage.get_client_by_email(email)
    display_name = name or (client["name"] if client else email)
    try:
        pdf_path = generate_progress_report(
            display_name,
            storage.load_saved_weight_entries(email),
            storage.load_saved_workouts(email),
            output_dir=output_dir,
        )
    except ValueError as exc:
        _fail(str(exc), code=0)
    typer.echo(f"Progress report saved to {pdf_path}")


@app.command("config")
def config_show() -> None:
    """Show the effective configuration."""
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    typer.echo("Admin emails: " + (", ".join(config.get("admin_emails", [])) or "none"))
    typer.echo(f"Google client id: {config.get('google_client_id') or 'not set'}")
    typer.echo(
        f"Program weeks: {config['program_weeks']}, default frequency: {config['default_workout_frequency']}, "
        f"max weekly workouts: {config['max_weekly_workouts']}"
    )
    typer.echo(f"Daily calorie target: {config['daily_calorie_target']} kcal")


app.add_typer(clients_app, name="clients", help="Manage the client registry.")
app.add_typer(weight_app, name="weight", help="Log and review body-weight check-ins.")


if __name__ == "__main__":
    app()
