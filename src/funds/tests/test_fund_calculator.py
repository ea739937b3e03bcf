from __future__ import annotations

from decimal import Decimal

import pytest

from src.funds.config.settings import FundsSettings, MatcherSettings
from src.funds.fund_calculator import FundCalculator
from src.funds.use_cases.company_matchers import RIDER_MATCH_REASON, MatcherConfigError
from src.funds.use_cases.fund_sharer import FROM_PELOTON_REASON
from src.funds.use_cases.team_member import FundAdjustment

ROSTER = [
    ["Rider ID", "First Name", "Last Name", "Participant", "Commitment", "High Roller", "Amount Raised"],
    ["AB0001", "Ann", "Able", "Rider", "1000", "", "600"],
    ["AB0002", "Bob", "Baker", "Rider", "1000", "", "1200"],
    ["AB0003", "Cat", "Cole", "Volunteer", "0", "", "0"],
    [],
    ["Fund Source", "Fund Type", "Amount"],
    ["Raffle", "Additional", "100.00"],
]

EMPLOYEES = [
    ["Rider ID", "Employee"],
    ["AB0001", "Employee"],
    ["AB0002", "Family"],
]

LEVEL_PROPERTIES = {"matcher_amount_1000": "500,100", "matcher_amount_volunteer": "0,0"}


class _Loader:
    def __init__(self, sheets: dict[tuple[str, str | None], list[list[str]]]) -> None:
        self._sheets = sheets
        self.calls: list[tuple[str, str | None]] = []

    def __call__(self, location: str, sheet_name: str | None = None) -> list[list[str]]:
        self.calls.append((location, sheet_name))
        return self._sheets[(location, sheet_name)]


def test_run_matches_then_shares() -> None:
    loader = _Loader({("team.xlsx", None): ROSTER})
    settings = FundsSettings(
        roster_path="team.xlsx",
        matcher=MatcherSettings(name="level", properties=LEVEL_PROPERTIES),
    )

    result = FundCalculator(settings, row_loader=loader).run()

    ann, bob, cat = result.team_members
    assert result.initial_shareable_funds == Decimal("100.00")
    assert result.remaining_shareable_funds == Decimal("0")
    assert ann.adjustments == [
        FundAdjustment(RIDER_MATCH_REASON, Decimal("100")),
        FundAdjustment(FROM_PELOTON_REASON, Decimal("100")),
        FundAdjustment("From Rider Bob Baker", Decimal("200")),
    ]
    assert bob.adjustments == [
        FundAdjustment(RIDER_MATCH_REASON, Decimal("100")),
        FundAdjustment("To Rider Ann Able", Decimal("-200")),
    ]
    assert cat.adjustments == []
    assert result.matcher.stats.matching_count == 3
    assert loader.calls == [("team.xlsx", None)]

    text = result.report.render()
    assert text.splitlines()[0] == "0 high rollers need $0.00 to reach their goal ON THEIR OWN."
    assert "2 of 2 riders have reached their goal." in text
    assert "The team has exceeded their goal by $100.00." in text

    assert result.matcher_summary.matcher_name == "level"
    assert result.matcher_summary.total_matching == Decimal("200")
    assert text.splitlines()[1:3] == [
        "3 members earned $200.00 matching funds.",
        "0 riders need to raise $0.00 for the remaining $0.00 matching funds.",
    ]


def test_shared_funds_default_to_the_roster_sheet() -> None:
    loader = _Loader(
        {
            ("team.xlsx", None): [["Team Peloton 2015"], ["Cover page"]],
            ("team.xlsx", "Roster"): ROSTER,
        }
    )
    settings = FundsSettings(roster_path="team.xlsx", roster_sheet="Roster")

    result = FundCalculator(settings, row_loader=loader).run()

    assert result.initial_shareable_funds == Decimal("100.00")
    assert loader.calls == [("team.xlsx", "Roster")]


def test_employee_list_limits_matching() -> None:
    loader = _Loader(
        {
            ("team.xlsx", "Roster"): ROSTER,
            ("funds.xlsx", None): ROSTER[4:],
            ("employees.xlsx", "Employees"): EMPLOYEES,
        }
    )
    settings = FundsSettings(
        roster_path="team.xlsx",
        roster_sheet="Roster",
        funds_path="funds.xlsx",
        matcher=MatcherSettings(
            name="employee_only",
            properties={
                **LEVEL_PROPERTIES,
                "matcher_spreadsheet": "employees.xlsx",
                "matcher_sheetname": "Employees",
            },
        ),
    )

    result = FundCalculator(settings, row_loader=loader).run()

    ann, bob, _ = result.team_members
    assert ann.find_adjustment_amount(RIDER_MATCH_REASON) == Decimal("100")
    assert bob.find_adjustment_amount(RIDER_MATCH_REASON) == Decimal("0")
    assert ann.find_adjustment_amount("From Rider Bob Baker") == Decimal("200")
    assert ann.shortfall == Decimal("0")
    assert loader.calls[0] == ("employees.xlsx", "Employees")


def test_matcher_configuration_fails_before_loading_roster() -> None:
    loader = _Loader({})
    settings = FundsSettings(
        roster_path="team.xlsx",
        matcher=MatcherSettings(name="level", properties={"matcher_amount_1000": "500,100"}),
    )

    with pytest.raises(MatcherConfigError):
        FundCalculator(settings, row_loader=loader).run()
    assert loader.calls == []


def test_roster_path_is_required() -> None:
    calculator = FundCalculator(FundsSettings(), row_loader=_Loader({}))
    with pytest.raises(ValueError, match="roster_path"):
        calculator.run()
