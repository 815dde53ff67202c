"""
Thin wrapper around the Google Drive, Sheets and Docs REST APIs.

Service objects come from ``googleapiclient.discovery.build``; tests hand in
stand-ins that mimic the ``resource().method(...).execute()`` chain.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from google.oauth2.credentials import Credentials
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .constants import DOCUMENT_MIME, SPREADSHEET_MIME
from .env import get_env

LOGGER = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/documents",
]

WORKOUT_SHEET_TITLE = "{name} - Edzésnapló"
WORKOUT_TAB_TITLE = "Edzések"
PLAN_DOC_TITLE = "{name} - Étrend és Terv"

_FILE_ID_RE = re.compile(r"/(?:spreadsheets|document|file)/d/([a-zA-Z0-9-_]+)")
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9-_]{10,}$")


class GoogleApiError(RuntimeError):
    """Raised when a Google API call fails or no credentials are available."""


@dataclass(frozen=True)
class ClientFiles:
    sheets_id: str | None = None
    docs_id: str | None = None

    @property
    def sheets_url(self) -> str | None:
        return sheets_url(self.sheets_id) if self.sheets_id else None

    @property
    def docs_url(self) -> str | None:
        return docs_url(self.docs_id) if self.docs_id else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheets_id": self.sheets_id,
            "docs_id": self.docs_id,
            "sheets_url": self.sheets_url,
            "docs_url": self.docs_url,
        }


def extract_file_id(url_or_id: str | None) -> str | None:
    """Accept a full Sheets/Docs/Drive URL or a bare file id."""
    text = (url_or_id or "").strip()
    if not text:
        return None
    match = _FILE_ID_RE.search(text)
    if match:
        return match.group(1)
    if _BARE_ID_RE.match(text):
        return text
    return None


def sheets_url(file_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{file_id}"


def docs_url(file_id: str) -> str:
    return f"https://docs.google.com/document/d/{file_id}"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleWorkspace:
    """Drive/Sheets/Docs access bound to one set of credentials."""

    def __init__(
        self,
        credentials: Any = None,
        *,
        sheets: Any = None,
        drive: Any = None,
        docs: Any = None,
    ) -> None:
        self._credentials = credentials
        self._sheets = sheets
        self._drive = drive
        self._docs = docs

    @classmethod
    def from_access_token(cls, token: str) -> "GoogleWorkspace":
        if not token:
            raise GoogleApiError("No valid Google access token.")
        return cls(Credentials(token=token, scopes=SCOPES))

    @classmethod
    def from_service_account(cls, path: str | None = None) -> "GoogleWorkspace":
        credentials_path = path or get_env("GOOGLE_CREDENTIALS")
        if not credentials_path:
            raise GoogleApiError("FITTRACKER_GOOGLE_CREDENTIALS is not set.")
        creds = service_account.Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
        return cls(creds)

    def _service(self, name: str, version: str) -> Any:
        if self._credentials is None:
            raise GoogleApiError("No Google credentials configured.")
        return build(name, version, credentials=self._credentials, cache_discovery=False)

    @property
    def sheets(self) -> Any:
        if self._sheets is None:
            self._sheets = self._service("sheets", "v4")
        return self._sheets

    @property
    def drive(self) -> Any:
        if self._drive is None:
            self._drive = self._service("drive", "v3")
        return self._drive

    @property
    def docs(self) -> Any:
        if self._docs is None:
            self._docs = self._service("docs", "v1")
        return self._docs

    # -- file creation ---------------------------------------------------

    def create_client_files(self, client_name: str, client_email: str) -> dict[str, str]:
        """Create the workout spreadsheet and the plan document for a new client."""
        name = (client_name or "").strip() or client_email
        try:
            sheet = (
                self.sheets.spreadsheets()
                .create(
                    body={
                        "properties": {"title": WORKOUT_SHEET_TITLE.format(name=name)},
                        "sheets": [
                            {
                                "properties": {
                                    "title": WORKOUT_TAB_TITLE,
                                    "gridProperties": {"rowCount": 100, "columnCount": 10},
                                }
                            }
                        ],
                    }
                )
                .execute()
            )
            doc = self.docs.documents().create(body={"title": PLAN_DOC_TITLE.format(name=name)}).execute()
        except HttpError as exc:
            raise GoogleApiError(f"Could not create files for {client_email}: {exc}") from exc
        LOGGER.info("Created Google files for %s", client_email)
        return {
            "sheets_url": sheets_url(sheet["spreadsheetId"]),
            "docs_url": docs_url(doc["documentId"]),
        }

    # -- lookup ------------------------------------------------------------

    def find_existing_files(self, client_email: str) -> ClientFiles:
        """
        Search Drive for a spreadsheet and a document whose name mentions the email.

        The first match of each kind wins. Any failure yields an empty result.
        """
        query = (
            f"name contains '{_quote(client_email)}' and "
            f"(mimeType='{SPREADSHEET_MIME}' or mimeType='{DOCUMENT_MIME}')"
        )
        try:
            response = self.drive.files().list(q=query, fields="files(id, name, mimeType)").execute()
        except (HttpError, GoogleApiError) as exc:
            LOGGER.warning("Drive search failed for %s: %s", client_email, exc)
            return ClientFiles()
        files = response.get("files") or []
        sheet_ids = [item["id"] for item in files if item.get("mimeType") == SPREADSHEET_MIME]
        doc_ids = [item["id"] for item in files if item.get("mimeType") == DOCUMENT_MIME]
        return ClientFiles(
            sheets_id=sheet_ids[0] if sheet_ids else None,
            docs_id=doc_ids[0] if doc_ids else None,
        )

    def find_client_files(
        self,
        client_email: str,
        manual_links: Mapping[str, str | None] | None = None,
    ) -> ClientFiles:
        """Manual links win per file kind; Drive search fills in whatever is missing."""
        links = manual_links or {}
        sheets_id = extract_file_id(links.get("sheets_url"))
        docs_id = extract_file_id(links.get("docs_url"))
        if sheets_id and docs_id:
            return ClientFiles(sheets_id=sheets_id, docs_id=docs_id)
        found = self.find_existing_files(client_email)
        return ClientFiles(sheets_id=sheets_id or found.sheets_id, docs_id=docs_id or found.docs_id)

    # -- spreadsheet values --------------------------------------------------

    def list_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        try:
            meta = self.sheets.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        except HttpError as exc:
            raise GoogleApiError(f"Could not read spreadsheet {spreadsheet_id}: {exc}") from exc
        return [sheet["properties"]["title"] for sheet in meta.get("sheets", [])]

    @staticmethod
    def a1_range(title: str) -> str:
        """Quote a tab title as a whole-sheet A1 range (apostrophes are doubled)."""
        return "'" + title.replace("'", "''") + "'"

    def read_values(self, spreadsheet_id: str, title: str) -> list[list[str]]:
        try:
            result = (
                self.sheets.spreadsheets()
                .values()
                .get(spreadsheetId=spreadsheet_id, range=self.a1_range(title), valueRenderOption="FORMATTED_VALUE")
                .execute()
            )
        except HttpError as exc:
            raise GoogleApiError(f"Could not read tab {title!r}: {exc}") from exc
        return [[str(cell) for cell in row] for row in result.get("values", [])]

    def append_rows(self, spreadsheet_id: str, title: str, rows: Sequence[Sequence[Any]]) -> int:
        if not rows:
            return 0
        try:
            result = (
                self.sheets.spreadsheets()
                .values()
                .append(
                    spreadsheetId=spreadsheet_id,
                    range=self.a1_range(title),
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body={"values": [list(row) for row in rows]},
                )
                .execute()
            )
        except HttpError as exc:
            raise GoogleApiError(f"Could not append to tab {title!r}: {exc}") from exc
        return int(result.get("updates", {}).get("updatedRows", len(rows)))
