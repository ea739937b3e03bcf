"""Plain-text reports of the team's final ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from src.funds.use_cases.money import ZERO, fmt
from src.funds.use_cases.team_member import FundAdjustment, TeamMember

INDENT = "  "


def report_short_high_rollers(team_members: Iterable[TeamMember]) -> str:
    """One line summarizing high rollers who have not reached their goal on their own."""

    count = 0
    remaining = ZERO
    for member in team_members:
        if member.is_high_roller and member.shortfall > 0:
            count += 1
            remaining += member.shortfall
    return f"{count} high rollers need {fmt(remaining)} to reach their goal ON THEIR OWN."


@dataclass(frozen=True, slots=True)
class MemberLine:
    full_name: str
    is_rider: bool
    commitment: Decimal
    raised: Decimal
    adjustments: list[FundAdjustment]
    adjustment_total: Decimal
    shortfall: Decimal

    @property
    def designated_funds(self) -> Decimal:
        return self.raised + self.adjustment_total

    @property
    def made_commitment(self) -> bool:
        return self.designated_funds >= self.commitment

    def render(self) -> list[str]:
        headline = f"{self.full_name} has {fmt(self.designated_funds)}"
        if self.is_rider:
            headline += f" of {fmt(self.commitment)} goal"
        lines = [headline + "."]
        if self.raised != 0:
            lines.append(f"{INDENT}Amount raised: {fmt(self.raised)}")
        lines.extend(f"{INDENT}{a}" for a in self.adjustments)
        return lines


@dataclass(frozen=True, slots=True)
class TeamReport:
    members: list[MemberLine]
    remaining_pool: Decimal
    riders_with_commitment: int
    riders_making_commitment: int
    total_commitment: Decimal
    total_raised: Decimal
    preamble: list[str] = field(default_factory=list)

    @property
    def overage(self) -> Decimal:
        """Positive when the team beat its combined goal, negative when short."""
        return self.total_raised - self.total_commitment

    def render(self) -> str:
        lines = list(self.preamble)
        for member in self.members:
            lines.extend(member.render())

        lines.append(
            f"{self.riders_making_commitment} of {self.riders_with_commitment} riders have reached their goal."
        )
        lines.append(f"The team committed to raise {fmt(self.total_commitment)}.")
        lines.append(f"The team has raised {fmt(self.total_raised)}.")
        if self.overage < 0:
            lines.append(f"The team needs to raise {fmt(-self.overage)}.")
        else:
            lines.append(f"The team has exceeded their goal by {fmt(self.overage)}.")
        if self.remaining_pool != 0:
            lines.append(f"Unallocated shared funds: {fmt(self.remaining_pool)}.")
        return "\n".join(lines)


def build_team_report(
    team_members: Iterable[TeamMember],
    remaining_pool: Decimal,
    *,
    preamble: Iterable[str] = (),
) -> TeamReport:
    """Summarize every rider, and every other member holding money.

    Team "raised" counts designated funds of listed members plus the
    unallocated pool.
    """

    lines: list[MemberLine] = []
    total_commitment = ZERO
    total_raised = remaining_pool
    riders = 0
    riders_making = 0

    for member in team_members:
        total_commitment += member.commitment
        if not (member.is_rider() or member.designated_funds > 0):
            continue

        line = MemberLine(
            full_name=member.full_name,
            is_rider=member.is_rider(),
            commitment=member.commitment,
            raised=member.raised,
            adjustments=member.adjustments,
            adjustment_total=member.adjustment_total,
            shortfall=member.shortfall,
        )
        lines.append(line)
        total_raised += line.designated_funds
        if line.is_rider:
            riders += 1
            if line.made_commitment:
                riders_making += 1

    return TeamReport(
        members=lines,
        remaining_pool=remaining_pool,
        riders_with_commitment=riders,
        riders_making_commitment=riders_making,
        total_commitment=total_commitment,
        total_raised=total_raised,
        preamble=list(preamble),
    )
