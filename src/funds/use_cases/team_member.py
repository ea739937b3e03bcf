"""Team member ledger.

A `TeamMember` is a person signed up on the team roster. Their self-raised
amount never changes after loading; everything the captain does afterwards
(company match, shared peloton funds, money moved between teammates) is
recorded as a named `FundAdjustment`.

Reasons are unique per member: adding an adjustment with a reason that is
already present merges the amounts, and an entry whose merged amount is zero
is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from src.funds.use_cases.money import ZERO, fmt


class HighRollerAdjustmentError(AssertionError):
    """A high roller short of their commitment was given or asked for funds."""


@dataclass(frozen=True, slots=True)
class FundAdjustment:
    reason: str
    amount: Decimal

    def __str__(self) -> str:
        return f"{self.reason}: {fmt(self.amount)}"


@dataclass(slots=True)
class TeamMember:
    name: str
    participant: str
    commitment: Decimal
    raised: Decimal
    is_high_roller: bool = False
    rider_id: str | None = None
    additional_properties: dict[str, str] = field(default_factory=dict)
    _adjustments: list[FundAdjustment] = field(default_factory=list, repr=False)

    @property
    def full_name(self) -> str:
        """Name prefaced with the member's role, e.g. "Rider Jane Doe"."""
        return f"{self.participant} {self.name}"

    @property
    def adjustments(self) -> list[FundAdjustment]:
        """Adjustments in the order they were first added."""
        return list(self._adjustments)

    def is_rider(self) -> bool:
        return self.participant.strip().lower() == "rider"

    def is_volunteer(self) -> bool:
        return self.participant.strip().lower() == "volunteer"

    def has_met_commitment_on_own(self) -> bool:
        return self.raised >= self.commitment

    def add_adjustment(self, adjustment: FundAdjustment) -> None:
        """Add money to (or remove money from) this member's account."""

        if self.is_high_roller and not self.has_met_commitment_on_own():
            raise HighRollerAdjustmentError(
                f"Cannot add or remove funds from {self.full_name} until individual goal is met."
            )

        if adjustment.amount == 0:
            return

        for i, previous in enumerate(self._adjustments):
            if previous.reason == adjustment.reason:
                combined = previous.amount + adjustment.amount
                if combined == 0:
                    del self._adjustments[i]
                else:
                    self._adjustments[i] = FundAdjustment(adjustment.reason, combined)
                return

        self._adjustments.append(adjustment)

    def find_adjustment_amount(self, reason: str) -> Decimal:
        """Return the amount recorded for `reason`, or zero if there is none."""
        for adjustment in self._adjustments:
            if adjustment.reason == reason:
                return adjustment.amount
        return ZERO

    @property
    def adjustment_total(self) -> Decimal:
        return sum((a.amount for a in self._adjustments), ZERO)

    @property
    def designated_funds(self) -> Decimal:
        """Self-raised money plus every adjustment."""
        return self.raised + self.adjustment_total

    @property
    def shortfall(self) -> Decimal:
        """Amount still needed to reach the commitment; negative means surplus."""
        return self.commitment - self.raised - self.adjustment_total

    def __str__(self) -> str:
        return self.full_name
