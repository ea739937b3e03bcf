"""Pick the right reader for a spreadsheet location.

A location is either a Google Sheets URL or a path to a local ``.xlsx`` file
(``~`` expands to the home directory).
"""

from __future__ import annotations

from src.funds.integrations.google_sheets_reader import GoogleSheetsReader, spreadsheet_id_from_url
from src.funds.integrations.workbook_reader import load_workbook_rows


def load_rows(location: str, sheet_name: str | None = None) -> list[list[str]]:
    spreadsheet_id = spreadsheet_id_from_url(location)
    if spreadsheet_id:
        reader = GoogleSheetsReader.from_env(spreadsheet_id)
        if sheet_name and sheet_name not in reader.list_sheet_titles():
            raise KeyError(f"Spreadsheet {spreadsheet_id} has no sheet named {sheet_name!r}")
        return reader.fetch_sheet_rows(sheet_name)
    return load_workbook_rows(location, sheet_name)
