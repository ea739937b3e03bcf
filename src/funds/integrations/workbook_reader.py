"""Local Excel workbook reader.

Reads one sheet of an ``.xlsx`` roster into plain string rows so the parsers
can treat a local file and a Google Sheet the same way.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import load_workbook

logger = logging.getLogger(__name__)


def cell_to_str(value: Any) -> str:
    """Render a cell the way it would appear in a CSV export.

    Numbers go through `str` so that 1250.5 stays "1250.5" rather than picking
    up binary floating point noise when it becomes a Decimal later.
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(Decimal(str(value)))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def load_workbook_rows(path: str, sheet_name: str | None = None) -> list[list[str]]:
    """Return every row of `sheet_name` (default: first sheet) as strings."""

    resolved = os.path.expanduser(path)
    if not os.path.exists(resolved):
        raise FileNotFoundError(f"Workbook not found: {resolved}")

    wb = load_workbook(resolved, read_only=True, data_only=True)
    try:
        if sheet_name:
            if sheet_name not in wb.sheetnames:
                raise KeyError(f"Workbook {resolved} has no sheet named {sheet_name!r}")
            ws = wb[sheet_name]
        else:
            ws = wb.worksheets[0]

        rows = [[cell_to_str(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()

    logger.info("Loaded %d rows from %s [%s].", len(rows), resolved, sheet_name or "first sheet")
    return rows
