"""Calculate the best way to share funds so the most riders reach their goal.

Wires the pieces together for one run:

1. build the configured company matcher (fails before any money moves)
2. load the roster and the shared peloton funds
3. add company matching funds
4. share the peloton pool (borrowing from members over goal if needed)
5. build the team report
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from src.funds.config.settings import FundsSettings
from src.funds.integrations.roster_parser import (
    parse_employee_rider_ids,
    parse_sharable_funds,
    parse_team_members,
)
from src.funds.integrations.row_sources import load_rows
from src.funds.use_cases.company_matchers import (
    DEFAULT_REGISTRY,
    CompanyMatcher,
    MatcherRegistry,
    MatcherSummary,
)
from src.funds.use_cases.fund_sharer import FundSharer
from src.funds.use_cases.team_member import TeamMember
from src.funds.use_cases.team_report import (
    TeamReport,
    build_team_report,
    report_short_high_rollers,
)

logger = logging.getLogger(__name__)

RowLoader = Callable[[str, Optional[str]], list[list[str]]]


@dataclass(slots=True)
class FundCalculationResult:
    team_members: list[TeamMember]
    initial_shareable_funds: Decimal
    remaining_shareable_funds: Decimal
    matcher: CompanyMatcher
    matcher_summary: MatcherSummary
    sharer: FundSharer
    report: TeamReport


class FundCalculator:
    """Runs matching and sharing over one roster.

    Usage:
        settings = load_settings("data/funds_config.yaml")
        result = FundCalculator(settings).run()
        print(result.report.render())
    """

    def __init__(
        self,
        settings: FundsSettings,
        *,
        row_loader: RowLoader = load_rows,
        registry: MatcherRegistry = DEFAULT_REGISTRY,
    ) -> None:
        self._settings = settings
        self._row_loader = row_loader
        self._registry = registry
        self._rows_cache: dict[tuple[str, str | None], list[list[str]]] = {}

    def _rows(self, location: str, sheet_name: str | None) -> list[list[str]]:
        key = (location, sheet_name)
        if key not in self._rows_cache:
            self._rows_cache[key] = self._row_loader(location, sheet_name)
        return self._rows_cache[key]

    def build_matcher(self) -> CompanyMatcher:
        matcher_settings = self._settings.matcher

        employee_ids: set[str] | None = None
        if matcher_settings.employee_spreadsheet:
            rows = self._rows(
                matcher_settings.employee_spreadsheet, matcher_settings.employee_sheet_name
            )
            employee_ids = parse_employee_rider_ids(
                rows, source=matcher_settings.employee_spreadsheet
            )

        matcher = self._registry.create(
            matcher_settings.name,
            matcher_settings.properties,
            employee_ids=employee_ids,
        )
        logger.info("Using %s company matcher.", matcher.name)
        return matcher

    def load_team(self, additional_columns: list[str]) -> tuple[list[TeamMember], Decimal]:
        roster_path = self._settings.roster_path
        if not roster_path:
            raise ValueError("No roster spreadsheet configured (roster_path)")

        logger.info("Loading spreadsheet %s.", roster_path)
        team_members = parse_team_members(
            self._rows(roster_path, self._settings.roster_sheet),
            additional_columns=additional_columns,
            source=roster_path,
        )

        funds_location = self._settings.shared_funds_location or roster_path
        shareable_funds = parse_sharable_funds(
            self._rows(funds_location, self._settings.shared_funds_sheet),
            source=funds_location,
        )
        return team_members, shareable_funds

    def run(self) -> FundCalculationResult:
        matcher = self.build_matcher()
        team_members, shareable_funds = self.load_team(matcher.additional_columns)

        matcher.add_funds_to_team_members(team_members)
        matcher_summary = MatcherSummary.from_matcher(matcher)

        high_roller_line = report_short_high_rollers(team_members)
        logger.info(high_roller_line)

        sharer = FundSharer(team_members)
        remaining = sharer.allocate_sharable_to_non_high_rollers(shareable_funds)

        report = build_team_report(
            team_members, remaining, preamble=[high_roller_line, *matcher_summary.lines()]
        )
        return FundCalculationResult(
            team_members=team_members,
            initial_shareable_funds=shareable_funds,
            remaining_shareable_funds=remaining,
            matcher=matcher,
            matcher_summary=matcher_summary,
            sharer=sharer,
            report=report,
        )
