"""Google Sheets reader (service-account based).

Goals
- Read roster / employee sheets that live in Google Drive instead of a local file.
- Keep all network calls here; row parsing stays in `roster_parser`.

Read-only: the captain's spreadsheets are never modified.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any

from dotenv import load_dotenv

load_dotenv()

_SPREADSHEET_URL_RE = re.compile(r"docs\.google\.com/spreadsheets/d/([A-Za-z0-9_-]+)")


def spreadsheet_id_from_url(url: str | None) -> str | None:
    """Extract the spreadsheet id from a ``docs.google.com/spreadsheets/d/<id>/...`` URL."""

    m = _SPREADSHEET_URL_RE.search(url or "")
    return m.group(1) if m else None


def a1_sheet_range(sheet_name: str | None) -> str:
    """A1 range covering a whole sheet (``'Roster'``), or the first sheet's used range."""

    if not sheet_name:
        return "A:ZZ"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'"


class GoogleSheetsReader:
    def __init__(
        self,
        *,
        spreadsheet_id: str,
        service_account_path: str,
        timeout_seconds: int = 30,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._service_account_path = os.path.expanduser(service_account_path)
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_env(cls, spreadsheet_id: str) -> "GoogleSheetsReader":
        service_account_path = os.environ.get("GOOGLE_SA_FILE") or os.path.expanduser(
            "~/.config/funds/service-account.json"
        )
        timeout_seconds = int(os.environ.get("GOOGLE_HTTP_TIMEOUT_SECONDS", "30"))

        return cls(
            spreadsheet_id=spreadsheet_id,
            service_account_path=service_account_path,
            timeout_seconds=timeout_seconds,
        )

    def _build_sheets_service(self) -> Any:
        # Lazy import so unit tests that only parse rows
        # do not require Google client libs.
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        if not os.path.exists(self._service_account_path):
            raise FileNotFoundError(
                f"Service account file not found: {self._service_account_path}"
            )

        with open(self._service_account_path, "r", encoding="utf-8") as f:
            sa = json.load(f)
        creds = service_account.Credentials.from_service_account_info(
            sa,
            scopes=["https://www.googleapis.com/auth/spreadsheets.readonly"],
        )

        return build(
            "sheets",
            "v4",
            credentials=creds,
            cache_discovery=False,
        )

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def list_sheet_titles(self) -> list[str]:
        sheets = self._build_sheets_service()
        meta = (
            sheets.spreadsheets()
            .get(spreadsheetId=self._spreadsheet_id, fields="sheets(properties(title))")
            .execute(num_retries=2)
        )
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def fetch_rows(self, *, a1_range: str) -> list[list[str]]:
        sheets = self._build_sheets_service()
        resp = (
            sheets.spreadsheets()
            .values()
            .get(spreadsheetId=self._spreadsheet_id, range=a1_range)
            .execute(num_retries=2)
        )
        rows = resp.get("values", [])
        if not isinstance(rows, list):
            return []
        return [[str(c).strip() for c in r] for r in rows]

    def fetch_sheet_rows(self, sheet_name: str | None = None) -> list[list[str]]:
        return self.fetch_rows(a1_range=a1_sheet_range(sheet_name))
