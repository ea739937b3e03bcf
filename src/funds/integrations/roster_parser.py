"""Parse team roster, shared-fund and employee tables out of spreadsheet rows.

A sheet may hold several tables. Each table starts at a header row identified
by its first cell (``Rider ID`` or ``Fund Source``); columns are then located
by header title anywhere in that row, so extra or reordered columns are fine.

Roster table::

    Rider ID | First Name | Last Name | Participant | Commitment | High Roller | Amount Raised | [Employee]
    AB1234   | Jane       | Doe       | Rider       | 1250       |             | $1,300.00     | Employee

Shared funds table::

    Fund Source | Fund Type  | Amount
    Golf outing | Additional | 2,000.00

Employee table::

    Rider ID | Employee
    AB1234   | Employee
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, TypeVar

from src.funds.use_cases.money import ZERO, fmt, parse_money, to_money
from src.funds.use_cases.team_member import TeamMember

logger = logging.getLogger(__name__)

RIDER_ID_PATTERN = re.compile(r"[A-Z]{2}[0-9]{4}")

_TRUTHY = {"yes", "y", "true", "1", "x"}

T = TypeVar("T")


class RosterFormatError(ValueError):
    """A roster, funds or employee sheet is not in the expected format."""


def _norm(s: str | None) -> str:
    return re.sub(r"[^\w]", "", s or "").lower()


@dataclass(slots=True)
class SpreadsheetColumn:
    """A titled column; `index` is set once the header row has been seen."""

    name: str
    required: bool = True
    index: int | None = None

    def match_header(self, header: list[str]) -> bool:
        needle = _norm(self.name)
        for j, cell in enumerate(header):
            if _norm(cell) == needle:
                self.index = j
                return True
        return False

    def is_header_cell(self, cell: str | None) -> bool:
        return _norm(cell) == _norm(self.name)

    @property
    def found(self) -> bool:
        return self.index is not None

    def check_header_found(self) -> None:
        if self.required and not self.found:
            raise RosterFormatError(f'Header row does not contain column "{self.name}"')

    def row_string(self, row: list[str]) -> str | None:
        if self.index is None or self.index >= len(row):
            return None
        value = (row[self.index] or "").strip()
        return value or None

    def row_decimal(self, row: list[str]) -> Decimal:
        """Money in this column; blank cells count as zero."""
        raw = self.row_string(row)
        if raw is None:
            return ZERO
        amount = parse_money(raw)
        if amount is None:
            raise RosterFormatError(f'Column "{self.name}" does not contain an amount: {raw!r}')
        return to_money(amount)


def _walk_table(
    rows: list[list[str]],
    *,
    source: str,
    is_header: Callable[[list[str]], bool],
    on_header: Callable[[list[str]], None],
    on_row: Callable[[list[str]], T | None],
) -> list[T]:
    """Feed every row to header/data callbacks, wrapping errors with the row number."""

    out: list[T] = []
    for i, row in enumerate(rows):
        try:
            if row and is_header(row):
                on_header(row)
                continue
            item = on_row(row)
            if item is not None:
                out.append(item)
        except RosterFormatError as e:
            raise RosterFormatError(f"Error on row {i + 1} of {source}: {e}") from e
    return out


@dataclass(slots=True)
class TeamMemberTable:
    """Column layout of the roster table."""

    additional_columns: list[str] = field(default_factory=list)
    rider_id: SpreadsheetColumn = field(default_factory=lambda: SpreadsheetColumn("Rider ID"))
    first_name: SpreadsheetColumn = field(default_factory=lambda: SpreadsheetColumn("First Name"))
    last_name: SpreadsheetColumn = field(default_factory=lambda: SpreadsheetColumn("Last Name"))
    participant: SpreadsheetColumn = field(default_factory=lambda: SpreadsheetColumn("Participant"))
    commitment: SpreadsheetColumn = field(default_factory=lambda: SpreadsheetColumn("Commitment"))
    amount_raised: SpreadsheetColumn = field(
        default_factory=lambda: SpreadsheetColumn("Amount Raised")
    )
    high_roller: SpreadsheetColumn = field(
        default_factory=lambda: SpreadsheetColumn("High Roller", required=False)
    )
    _extras: list[SpreadsheetColumn] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._extras = [SpreadsheetColumn(name, required=False) for name in self.additional_columns]

    @property
    def columns(self) -> list[SpreadsheetColumn]:
        return [
            self.rider_id,
            self.first_name,
            self.last_name,
            self.participant,
            self.commitment,
            self.amount_raised,
            self.high_roller,
            *self._extras,
        ]

    def is_header(self, row: list[str]) -> bool:
        return self.rider_id.is_header_cell(row[0])

    def on_header(self, row: list[str]) -> None:
        for column in self.columns:
            column.match_header(row)
        for column in self.columns:
            column.check_header_found()
        for column in self._extras:
            if not column.found:
                logger.warning('Roster header row does not contain optional column "%s".', column.name)

    def on_row(self, row: list[str]) -> TeamMember | None:
        if not self.rider_id.found:
            return None
        rider_id = self.rider_id.row_string(row)
        if rider_id is None or not RIDER_ID_PATTERN.fullmatch(rider_id):
            return None

        name = " ".join(
            part for part in (self.first_name.row_string(row), self.last_name.row_string(row)) if part
        )
        high_roller = (self.high_roller.row_string(row) or "").lower() in _TRUTHY
        member = TeamMember(
            name=name,
            participant=self.participant.row_string(row) or "Virtual",
            commitment=self.commitment.row_decimal(row),
            raised=self.amount_raised.row_decimal(row),
            is_high_roller=high_roller,
            rider_id=rider_id,
        )
        for column in self._extras:
            value = column.row_string(row)
            if value is not None:
                member.additional_properties[column.name] = value

        if member.is_rider() or member.raised > 0:
            logger.info("%s raised %s.", member.full_name, fmt(member.raised))
        return member


def parse_team_members(
    rows: list[list[str]],
    *,
    additional_columns: Iterable[str] = (),
    source: str = "roster",
) -> list[TeamMember]:
    """Return the team members listed below the ``Rider ID`` header, in sheet order."""

    table = TeamMemberTable(additional_columns=list(additional_columns))
    members = _walk_table(
        rows,
        source=source,
        is_header=table.is_header,
        on_header=table.on_header,
        on_row=table.on_row,
    )

    if not table.rider_id.found:
        raise RosterFormatError(f'{source} does not contain a "{table.rider_id.name}" header row')
    if not members:
        raise RosterFormatError(
            f"{source} does not have any valid rider IDs below '{table.rider_id.name}' header"
        )

    initial_raised = sum((m.raised for m in members), ZERO)
    logger.info("There are %d team members.", len(members))
    logger.info("Initial individually raised funds: %s.", fmt(initial_raised))
    return members


def parse_sharable_funds(rows: list[list[str]], *, source: str = "shared peloton funds") -> Decimal:
    """Total of the ``Additional`` rows of the shared funds table."""

    fund_source = SpreadsheetColumn("Fund Source")
    fund_type = SpreadsheetColumn("Fund Type")
    amount = SpreadsheetColumn("Amount")

    def _on_header(row: list[str]) -> None:
        for column in (fund_source, fund_type, amount):
            column.match_header(row)
            column.check_header_found()

    def _on_row(row: list[str]) -> Decimal | None:
        if not fund_type.found:
            return None
        kind = fund_type.row_string(row)
        if kind is None or kind.lower() != "additional":
            return None
        value = amount.row_decimal(row)
        logger.info("Shared fund: %s with %s.", fund_source.row_string(row), fmt(value))
        return value

    amounts = _walk_table(
        rows,
        source=source,
        is_header=lambda row: fund_source.is_header_cell(row[0]),
        on_header=_on_header,
        on_row=_on_row,
    )
    if not fund_source.found:
        raise RosterFormatError(f'{source} does not contain a "{fund_source.name}" header row')

    total = sum(amounts, ZERO)
    logger.info("Initial peloton shareable funds: %s.", fmt(total))
    return total


def parse_employee_rider_ids(rows: list[list[str]], *, source: str = "employee names") -> set[str]:
    """Rider ids whose ``Employee`` column says ``Employee``."""

    rider_id = SpreadsheetColumn("Rider ID")
    employee = SpreadsheetColumn("Employee")

    def _on_header(row: list[str]) -> None:
        for column in (rider_id, employee):
            column.match_header(row)
            column.check_header_found()

    def _on_row(row: list[str]) -> str | None:
        if not rider_id.found:
            return None
        rid = rider_id.row_string(row)
        if rid is None or not RIDER_ID_PATTERN.fullmatch(rid):
            return None
        value = employee.row_string(row)
        if value is not None and value.lower() == "employee":
            return rid
        return None

    ids = set(
        _walk_table(
            rows,
            source=source,
            is_header=lambda row: rider_id.is_header_cell(row[0]),
            on_header=_on_header,
            on_row=_on_row,
        )
    )
    if not ids:
        raise RosterFormatError(
            f"{source} does not have any valid rider IDs below '{rider_id.name}' header"
        )

    logger.info("There are %d employees.", len(ids))
    return ids
