from __future__ import annotations

from typing import Any

import httplib2
import pytest
from googleapiclient.errors import HttpError

from fittracker import auth
from fittracker.config import get_config
from fittracker.google_api import GoogleWorkspace


def http_error(status: int = 500) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"boom")


def tab_title(a1_range: str) -> str:
    """Undo the quoting of a whole-sheet A1 range such as ``'Anna''s plan'``."""
    if a1_range.startswith("'") and a1_range.endswith("'"):
        return a1_range[1:-1].replace("''", "'")
    return a1_range


class _Call:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self._result = result
        self._error = error

    def execute(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._result


class FakeValues:
    def __init__(self, owner: "FakeSheets") -> None:
        self.owner = owner

    def get(self, spreadsheetId: str, range: str, valueRenderOption: str) -> _Call:
        if self.owner.fail_reads:
            return _Call(error=http_error())
        return _Call({"values": self.owner.tabs.get(tab_title(range), [])})

    def append(self, spreadsheetId: str, range: str, valueInputOption: str, insertDataOption: str, body: dict) -> _Call:
        if self.owner.fail_writes:
            return _Call(error=http_error())
        title = tab_title(range)
        self.owner.ranges.append(range)
        self.owner.appended.append((spreadsheetId, title, body["values"]))
        self.owner.tabs.setdefault(title, []).extend(list(row) for row in body["values"])
        return _Call({"updates": {"updatedRows": len(body["values"])}})


class FakeSheets:
    def __init__(self, tabs: dict[str, list[list[Any]]] | None = None, *, fail_reads=False, fail_writes=False, fail_meta=False):
        self.tabs = tabs or {}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.fail_meta = fail_meta
        self.appended: list[tuple[str, str, list[list[Any]]]] = []
        self.ranges: list[str] = []
        self.created: list[dict] = []

    def spreadsheets(self) -> "FakeSheets":
        return self

    def get(self, spreadsheetId: str) -> _Call:
        if self.fail_meta:
            return _Call(error=http_error(404))
        return _Call({"sheets": [{"properties": {"title": title}} for title in self.tabs]})

    def values(self) -> FakeValues:
        return FakeValues(self)

    def create(self, body: dict) -> _Call:
        if self.fail_writes:
            return _Call(error=http_error(403))
        self.created.append(body)
        return _Call({"spreadsheetId": "newsheet123456"})


class FakeDrive:
    def __init__(self, files: list[dict] | None = None, *, fail=False) -> None:
        self._files = files or []
        self.fail = fail
        self.queries: list[str] = []

    def files(self) -> "FakeDrive":
        return self

    def list(self, q: str, fields: str) -> _Call:
        self.queries.append(q)
        if self.fail:
            return _Call(error=http_error())
        return _Call({"files": self._files})


class FakeDocs:
    def __init__(self) -> None:
        self.created: list[dict] = []

    def documents(self) -> "FakeDocs":
        return self

    def create(self, body: dict) -> _Call:
        self.created.append(body)
        return _Call({"documentId": "newdoc7890123"})


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FITTRACKER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("FITTRACKER_CONFIG", str(tmp_path / "missing.toml"))
    for name in ("DB_FILE", "ADMIN_EMAILS", "GOOGLE_CLIENT_ID", "GOOGLE_CREDENTIALS", "SECRET"):
        monkeypatch.delenv(f"FITTRACKER_{name}", raising=False)
        monkeypatch.delenv(f"FITTRACKER_PRO_{name}", raising=False)
    get_config.cache_clear()
    auth.FAILED_LOGINS.clear()
    yield
    get_config.cache_clear()
    auth.FAILED_LOGINS.clear()


@pytest.fixture
def make_workspace():
    """Build a GoogleWorkspace backed by in-memory fake services."""

    def _make(tabs=None, *, files=None, drive_fail=False, **sheet_flags) -> GoogleWorkspace:
        return GoogleWorkspace(
            sheets=FakeSheets(tabs, **sheet_flags),
            drive=FakeDrive(files, fail=drive_fail),
            docs=FakeDocs(),
        )

    return _make


WORKOUT_ROWS = [
    ["Felsőtest 1"],
    ["Gyakorlat", "Sorozat", "Ismétlés", "Videó", "1. sorozat", "2. sorozat", "Megjegyzés"],
    ["Fekvenyomás", "3", "6-10", "https://youtu.be/bench", "80x8", "80 kg x 7", "könyök zár"],
    ["Tárogatás", "3", "8-12", "", "", "", ""],
    ["", "", ""],
    ["2. hét"],
]

MEAL_ROWS = [
    ["Reggeli"],
    ["Zabpehely", "50g", "185 kcal"],
    ["Banán", "1 db", "89"],
    ["Ebéd"],
    ["Csirkemell", "150g", "231 kcal"],
    ["Vacsora:"],
    ["Lazac", "120g", "248 kcal"],
]

WEIGHT_ROWS = [
    ["Dátum", "Testsúly (kg)", "Alvás", "Stressz", "Fáradtság", "Motiváció", "Edzés", "Megjegyzés"],
    ["2024.05.28", "91,6", "8", "3", "4", "8", "7", ""],
    ["2024.05.29", "91.4 kg", "7", "4", "5", "7", "8", "jó nap"],
    ["2024.05.30", "", "7"],
    ["Átlag", "91,5"],
]


@pytest.fixture
def client_tabs() -> dict[str, list[list[Any]]]:
    return {
        "Info": [["Üdv!"]],
        "Felsőtest 1": [list(row) for row in WORKOUT_ROWS],
        "Étrend": [list(row) for row in MEAL_ROWS],
        "Súly": [list(row) for row in WEIGHT_ROWS],
    }
