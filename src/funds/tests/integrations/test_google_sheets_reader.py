from __future__ import annotations

import pytest

from src.funds.integrations import row_sources
from src.funds.integrations.google_sheets_reader import (
    GoogleSheetsReader,
    a1_sheet_range,
    spreadsheet_id_from_url,
)


class _Request:
    def __init__(self, payload):
        self._payload = payload

    def execute(self, num_retries=0):
        return self._payload


class _Values:
    def __init__(self, calls, payload):
        self._calls = calls
        self._payload = payload

    def get(self, *, spreadsheetId, range):
        self._calls.append((spreadsheetId, range))
        return _Request(self._payload)


class _Spreadsheets:
    def __init__(self, calls, payload):
        self._values = _Values(calls, payload)

    def values(self):
        return self._values

    def get(self, *, spreadsheetId, fields):
        return _Request({"sheets": [{"properties": {"title": "Roster"}}, {"properties": {"title": "Funds"}}]})


class _Service:
    def __init__(self, payload):
        self.calls: list[tuple[str, str]] = []
        self._spreadsheets = _Spreadsheets(self.calls, payload)

    def spreadsheets(self):
        return self._spreadsheets


def test_spreadsheet_id_from_url() -> None:
    url = "https://docs.google.com/spreadsheets/d/1AbC-d_9/edit#gid=0"
    assert spreadsheet_id_from_url(url) == "1AbC-d_9"
    assert spreadsheet_id_from_url("~/rosters/team.xlsx") is None
    assert spreadsheet_id_from_url(None) is None


def test_a1_sheet_range() -> None:
    assert a1_sheet_range(None) == "A:ZZ"
    assert a1_sheet_range("Roster") == "'Roster'"
    assert a1_sheet_range("Captain's list") == "'Captain''s list'"


def test_fetch_sheet_rows_strips_values(monkeypatch) -> None:
    service = _Service({"values": [["Rider ID ", "Amount Raised"], ["AB1234", 1300]]})
    monkeypatch.setattr(GoogleSheetsReader, "_build_sheets_service", lambda self: service)
    reader = GoogleSheetsReader(spreadsheet_id="sheet-1", service_account_path="sa.json")

    rows = reader.fetch_sheet_rows("Roster")

    assert rows == [["Rider ID", "Amount Raised"], ["AB1234", "1300"]]
    assert service.calls == [("sheet-1", "'Roster'")]
    assert reader.list_sheet_titles() == ["Roster", "Funds"]


def test_fetch_rows_of_empty_sheet(monkeypatch) -> None:
    service = _Service({})
    monkeypatch.setattr(GoogleSheetsReader, "_build_sheets_service", lambda self: service)
    reader = GoogleSheetsReader(spreadsheet_id="sheet-1", service_account_path="sa.json")

    assert reader.fetch_rows(a1_range="A:ZZ") == []


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_SA_FILE", "/tmp/sa.json")
    monkeypatch.setenv("GOOGLE_HTTP_TIMEOUT_SECONDS", "5")

    reader = GoogleSheetsReader.from_env("sheet-1")

    assert reader.spreadsheet_id == "sheet-1"


def test_load_rows_routes_by_location(monkeypatch) -> None:
    calls: list[tuple[str, str | None]] = []

    def _fake_sheet_rows(self, sheet_name=None):
        calls.append((self.spreadsheet_id, sheet_name))
        return [["from google"]]

    def _fake_workbook_rows(path, sheet_name=None):
        calls.append((path, sheet_name))
        return [["from xlsx"]]

    monkeypatch.setattr(GoogleSheetsReader, "fetch_sheet_rows", _fake_sheet_rows)
    monkeypatch.setattr(GoogleSheetsReader, "list_sheet_titles", lambda self: ["Roster"])
    monkeypatch.setattr(row_sources, "load_workbook_rows", _fake_workbook_rows)

    assert row_sources.load_rows("https://docs.google.com/spreadsheets/d/abc123/edit", "Roster") == [
        ["from google"]
    ]
    assert row_sources.load_rows("team.xlsx") == [["from xlsx"]]
    assert calls == [("abc123", "Roster"), ("team.xlsx", None)]


def test_load_rows_rejects_unknown_google_sheet(monkeypatch) -> None:
    service = _Service({"values": [["should not be read"]]})
    monkeypatch.setattr(GoogleSheetsReader, "_build_sheets_service", lambda self: service)

    with pytest.raises(KeyError, match="Employees"):
        row_sources.load_rows("https://docs.google.com/spreadsheets/d/abc123/edit", "Employees")
    assert service.calls == []
