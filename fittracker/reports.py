from __future__ import annotations

import tempfile
from dataclasses import dataclass
from datetime import date
from importlib import metadata
from pathlib import Path
from typing import Any, Mapping, Sequence

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .metrics import compute_weight_trend, weekly_weight_summary, weight_entries_to_dataframe, workout_volume_by_sheet
from .models import WeightEntry

_HEADER_COLOR = colors.HexColor("#15803D")


@dataclass(frozen=True)
class ProgressReportStats:
    client_name: str
    first_date: date
    last_date: date
    entries: int
    start_weight: float
    current_weight: float
    change: float
    slope_per_week: float
    rolling_mean: float
    workouts_saved: int
    total_volume: float
    app_version: str


def generate_progress_report(
    client_name: str,
    weight_entries: Sequence[WeightEntry | Mapping[str, Any]],
    saved_workouts: Sequence[Mapping[str, Any]] = (),
    *,
    output_dir: Path = Path("reports"),
    year_hint: int | None = None,
) -> Path:
    """
    Build a one-file PDF progress report: headline numbers, weekly weight table,
    weight chart, and training volume per sheet when workouts were saved.
    """
    df_weight = weight_entries_to_dataframe(weight_entries, year_hint=year_hint)
    if df_weight.empty:
        raise ValueError(f"No weight entries available for '{client_name}'.")

    trend = compute_weight_trend(df_weight)
    weekly = weekly_weight_summary(df_weight)
    volume = workout_volume_by_sheet(saved_workouts)
    stats = ProgressReportStats(
        client_name=client_name,
        first_date=df_weight["date"].iloc[0].date(),
        last_date=df_weight["date"].iloc[-1].date(),
        entries=trend["entries"],
        start_weight=trend["first"],
        current_weight=trend["last"],
        change=trend["change"],
        slope_per_week=trend["slope_per_week"],
        rolling_mean=trend["rolling_mean"],
        workouts_saved=len(saved_workouts),
        total_volume=float(volume["volume"].sum()) if not volume.empty else 0.0,
        app_version=_app_version(),
    )

    output_dir.mkdir(parents=True, exist_ok=True)
    pdf_path = output_dir / f"progress_{_slugify(client_name)}_{stats.last_date.isoformat()}.pdf"
    with tempfile.TemporaryDirectory() as tmp_dir:
        chart = _create_weight_plot(df_weight, Path(tmp_dir))
        _build_pdf(pdf_path, stats, weekly, volume, chart)
    return pdf_path


def _create_weight_plot(df_weight: pd.DataFrame, tmp_dir: Path) -> Path:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    plot_path = tmp_dir / "weight_trend.png"
    rolling = df_weight["weight"].rolling(window=7, min_periods=1).mean()
    fig, ax = plt.subplots()
    ax.plot(df_weight["date"].dt.date, df_weight["weight"], marker="o", linewidth=1.5, color="#15803D", label="Weight")
    ax.plot(df_weight["date"].dt.date, rolling, linestyle="--", color="#F97316", label="7-entry mean")
    ax.set_title("Body Weight")
    ax.set_xlabel("Date")
    ax.set_ylabel("Weight (kg)")
    ax.grid(True, linestyle="--", alpha=0.3)
    ax.legend()
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(plot_path, dpi=150)
    plt.close(fig)
    return plot_path


def _slugify(value: str) -> str:
    cleaned = "".join(char.lower() if char.isalnum() else "_" for char in value.strip())
    slug = "_".join(token for token in cleaned.split("_") if token)
    return slug or "client"


def _fmt(value: Any, pattern: str = "{:.1f}") -> str:
    if value is None or pd.isna(value):
        return "n/a"
    return pattern.format(value)


def _styled_table(data: list[list[str]], col_widths: list[float]) -> Table:
    table = Table(data, hAlign="LEFT", colWidths=col_widths)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), _HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
            ]
        )
    )
    return table


def _build_pdf(
    destination: Path,
    stats: ProgressReportStats,
    weekly: pd.DataFrame,
    volume: pd.DataFrame,
    chart: Path,
) -> None:
    story = []
    styles = getSampleStyleSheet()

    story.append(Paragraph(f"Progress Report: {stats.client_name}", styles["Title"]))
    story.append(Paragraph(f"{stats.first_date} – {stats.last_date} | App v{stats.app_version}", styles["BodyText"]))
    story.append(Spacer(1, 0.2 * inch))

    summary = [
        ["Metric", "Value"],
        ["Check-ins", str(stats.entries)],
        ["Start weight (kg)", f"{stats.start_weight:.1f}"],
        ["Current weight (kg)", f"{stats.current_weight:.1f}"],
        ["Change (kg)", f"{stats.change:+.1f}"],
        ["Trend (kg/week)", f"{stats.slope_per_week:+.2f}"],
        ["7-entry mean (kg)", f"{stats.rolling_mean:.1f}"],
        ["Workouts saved", str(stats.workouts_saved)],
        ["Total volume (kg)", f"{stats.total_volume:.0f}"],
    ]
    story.append(_styled_table(summary, [2.5 * inch, 3.5 * inch]))
    story.append(Spacer(1, 0.3 * inch))

    story.append(Paragraph("Weekly Weight", styles["Heading2"]))
    weekly_rows = [["Week", "Entries", "Mean", "Min", "Max", "Sleep", "Motivation"]]
    for row in weekly.itertuples(index=False):
        weekly_rows.append(
            [
                row.week,
                str(row.entries),
                _fmt(row.mean_weight, "{:.2f}"),
                _fmt(row.min_weight),
                _fmt(row.max_weight),
                _fmt(row.avg_sleep),
                _fmt(row.avg_motivation),
            ]
        )
    story.append(_styled_table(weekly_rows, [1.0 * inch, 0.8 * inch, 0.9 * inch, 0.8 * inch, 0.8 * inch, 0.8 * inch, 1.0 * inch]))
    story.append(Spacer(1, 0.3 * inch))

    story.append(Paragraph("Weight vs Date", styles["Heading2"]))
    story.append(Image(str(chart), width=6.5 * inch, height=3.5 * inch))

    if not volume.empty:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph("Training Volume", styles["Heading2"]))
        volume_rows = [["Sheet", "Week", "Working sets", "Volume (kg)"]]
        for row in volume.itertuples(index=False):
            volume_rows.append([row.sheet_name, str(row.week_number), str(row.sets), f"{row.volume:.0f}"])
        story.append(_styled_table(volume_rows, [2.5 * inch, 0.9 * inch, 1.2 * inch, 1.4 * inch]))

    doc = SimpleDocTemplate(str(destination), pagesize=A4, title=f"Progress Report {stats.client_name}")
    doc.build(story)


def _app_version() -> str:
    try:
        return metadata.version("fittracker-pro")
    except metadata.PackageNotFoundError:
        return "0.0.0"
