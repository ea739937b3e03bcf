"""Share a pool of funds with team members who have commitments.

The equitable algorithm gives money in rounds so that the largest number of
riders reach their individual commitment:

    FUNDING_ROUNDS -> [RETURNING_EXCESS] -> [ASSIGNING_SHARERS] -> DONE

- Funding rounds: every rider short of goal (high rollers excluded) gets the
  same amount each round, capped by the smallest shortfall, so the rider
  closest to goal finishes first. When the peloton pool cannot cover even a
  cent, members over their own goal lend their excess (once per run).
- Returning excess: borrowed money nobody needed goes back to the lenders,
  smallest lender first.
- Assigning sharers: the generic "To teammate"/"From teammate" entries are
  rewritten as specific giver/receiver pairs.

Money is conserved throughout: pool + every adjustment on every member always
equals the starting pool plus whatever was on the ledgers before the run.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Iterable

from src.funds.use_cases.money import PENNY, ZERO, fmt, split_evenly
from src.funds.use_cases.team_member import FundAdjustment, TeamMember

logger = logging.getLogger(__name__)

TO_TEAMMATE_REASON = "To teammate"
FROM_TEAMMATE_REASON = "From teammate"
FROM_PELOTON_REASON = "From peloton"


class SharingPhase(str, enum.Enum):
    INITIAL = "initial"
    FUNDING_ROUNDS = "funding_rounds"
    RETURNING_EXCESS = "returning_excess"
    ASSIGNING_SHARERS = "assigning_sharers"
    DONE = "done"


_TRANSITIONS: dict[SharingPhase, set[SharingPhase]] = {
    SharingPhase.INITIAL: {SharingPhase.FUNDING_ROUNDS},
    SharingPhase.FUNDING_ROUNDS: {
        SharingPhase.RETURNING_EXCESS,
        SharingPhase.ASSIGNING_SHARERS,
        SharingPhase.DONE,
    },
    SharingPhase.RETURNING_EXCESS: {SharingPhase.ASSIGNING_SHARERS},
    SharingPhase.ASSIGNING_SHARERS: {SharingPhase.DONE},
    SharingPhase.DONE: set(),
}


@dataclass(frozen=True, slots=True)
class FundingRound:
    number: int
    pool_before: Decimal
    per_member: Decimal
    needing_count: int
    receiver_count: int
    reason: str


class FundSharer:
    """Disburses a shared pool to the team members of one roster.

    Usage:
        sharer = FundSharer(team_members)
        remaining = sharer.allocate_sharable_to_non_high_rollers(Decimal("1500.00"))

    The sharer mutates the members' ledgers in place and owns them (and the
    pool) for the duration of the call.
    """

    def __init__(self, team_members: list[TeamMember]) -> None:
        self._team_members = team_members
        self._shareable_funds = ZERO
        self._used_excess_from_members = False
        self._phase = SharingPhase.INITIAL
        self._rounds: list[FundingRound] = []
        self._riders_short_count = 0

    @property
    def phase(self) -> SharingPhase:
        return self._phase

    @property
    def shareable_funds(self) -> Decimal:
        return self._shareable_funds

    @property
    def used_excess_from_members(self) -> bool:
        return self._used_excess_from_members

    @property
    def funding_rounds(self) -> list[FundingRound]:
        return list(self._rounds)

    @property
    def riders_short_count(self) -> int:
        """Riders still short of goal after the funding rounds."""
        return self._riders_short_count

    def allocate_sharable_to_non_high_rollers(self, funds: Decimal) -> Decimal:
        """Disburse `funds` in rounds to maximize the number of riders at commitment.

        Returns the funds remaining after sharing. This is zero whenever any
        rider is still short, and otherwise the peloton money nobody needed.
        """

        if self._phase is not SharingPhase.INITIAL:
            raise RuntimeError("FundSharer instances allocate once; create a new one per run")

        self._shareable_funds = Decimal(funds)
        self._advance(SharingPhase.FUNDING_ROUNDS)

        self._riders_short_count = self._do_funding_rounds()
        if self._riders_short_count == 0:
            logger.info(
                "Every rider has now reached their goal, with leftover sharable funds of %s.",
                fmt(self._shareable_funds),
            )
            if self._used_excess_from_members:
                if self._shareable_funds > 0:
                    self._advance(SharingPhase.RETURNING_EXCESS)
                    self._return_unused_shareable_to_sharers()
            else:
                logger.info("Did not have to shift funds from members who exceeded their goal.")
        else:
            logger.info(
                "Shareable funds are now exhausted. %d riders have not reached their goal.",
                self._riders_short_count,
            )

        if self._used_excess_from_members:
            self._advance(SharingPhase.ASSIGNING_SHARERS)
            self._assign_sharers_to_receivers()

        self._advance(SharingPhase.DONE)
        return self._shareable_funds

    def _advance(self, target: SharingPhase) -> None:
        allowed = _TRANSITIONS.get(self._phase, set())
        if target not in allowed:
            raise RuntimeError(f"Invalid sharing transition: {self._phase.value} → {target.value}")
        self._phase = target

    # --- Funding rounds ---

    def _do_funding_rounds(self) -> int:
        """Give money in rounds; return how many riders still cannot reach goal."""

        max_funding_amount = ZERO
        round_number = 1
        while True:
            members_with_shortfall = self._find_non_high_rollers_short_of_commitment()
            if not members_with_shortfall:
                break

            per_member = self._calculate_funding_round_amount(members_with_shortfall)
            if per_member <= 0:
                break

            # With a one-cent round the pool may not reach every member.
            affordable = int((self._shareable_funds / per_member).to_integral_value(rounding=ROUND_DOWN))
            receiver_count = min(affordable, len(members_with_shortfall))
            if receiver_count == 0:
                # Only a fraction of a cent is left.
                break
            receivers = members_with_shortfall[:receiver_count]

            reason = FROM_TEAMMATE_REASON if self._used_excess_from_members else FROM_PELOTON_REASON
            logger.info(
                "Funding round %d has sharable %s funds of %s, giving %s %s to %d underfunded rider(s).",
                round_number,
                "excess member" if self._used_excess_from_members else "peloton",
                fmt(self._shareable_funds),
                fmt(per_member),
                reason.lower(),
                receiver_count,
            )
            self._rounds.append(
                FundingRound(
                    number=round_number,
                    pool_before=self._shareable_funds,
                    per_member=per_member,
                    needing_count=len(members_with_shortfall),
                    receiver_count=receiver_count,
                    reason=reason,
                )
            )

            self._move_shared_to_members(reason, per_member, receivers)
            max_funding_amount += per_member
            round_number += 1

        logger.info(
            "Funding rounds have given up to %s to riders short of their goal.",
            fmt(max_funding_amount),
        )
        return len(members_with_shortfall)

    def _find_non_high_rollers_short_of_commitment(self) -> list[TeamMember]:
        members_with_shortfall = [
            m for m in self._team_members if m.shortfall > 0 and not m.is_high_roller
        ]
        total_remaining = sum((m.shortfall for m in members_with_shortfall), ZERO)
        logger.info(
            "%d riders need %s to reach their goal.",
            len(members_with_shortfall),
            fmt(total_remaining),
        )
        return members_with_shortfall

    def _calculate_funding_round_amount(self, members_with_shortfall: list[TeamMember]) -> Decimal:
        closest = self._find_member_closest_to_commitment(members_with_shortfall)

        per_member = self._pick_smallest_shortfall_or_split(closest, members_with_shortfall)
        if per_member <= 0 and not self._used_excess_from_members:
            self._used_excess_from_members = True
            logger.info(
                "Initial shared funds are exhausted, now checking for members who have gone "
                "beyond their goal for fund sharing."
            )
            self._add_sharers_funds_to_shareable()
            per_member = self._pick_smallest_shortfall_or_split(closest, members_with_shortfall)

        return per_member

    @staticmethod
    def _find_member_closest_to_commitment(members_with_shortfall: list[TeamMember]) -> TeamMember:
        # min() keeps the first of equal shortfalls.
        closest = min(members_with_shortfall, key=lambda m: m.shortfall)
        logger.info(
            "%s is closest to individual goal, needing %s.",
            closest.full_name,
            fmt(closest.shortfall),
        )
        return closest

    def _pick_smallest_shortfall_or_split(
        self, closest: TeamMember, members_with_shortfall: list[TeamMember]
    ) -> Decimal:
        even_split = split_evenly(self._shareable_funds, len(members_with_shortfall))
        if even_split == 0 and self._shareable_funds > 0:
            # Too little to give everyone a cent: give a cent to some of them.
            even_split = PENNY
        return min(closest.shortfall, even_split)

    # --- Borrowing ---

    def _add_sharers_funds_to_shareable(self) -> None:
        """Move the excess of every member beyond their goal into the pool."""

        member_count = 0
        total_shared = ZERO
        for member in self._team_members:
            excess = -member.shortfall
            if excess > 0:
                member_count += 1
                total_shared += excess
                logger.info(
                    "%s can contribute excess funds of %s to the team.",
                    member.full_name,
                    fmt(excess),
                )
                self._move_from_shared(member, FundAdjustment(TO_TEAMMATE_REASON, -excess))

        if total_shared == 0:
            logger.info("No members have gone beyond their goal.")
        else:
            logger.info(
                "%d members can contribute %s back to the peloton.",
                member_count,
                fmt(total_shared),
            )
            logger.info("Shareable peloton funds now %s.", fmt(self._shareable_funds))

    # --- Returning excess ---

    def _return_unused_shareable_to_sharers(self) -> None:
        """Give borrowed money that was not needed back to the members it came from."""

        logger.info("Not using %s from riders who can share.", fmt(self._shareable_funds))

        # Largest contribution first, so the smallest lender is at the end.
        sharers = self._find_sharers()
        while sharers and self._shareable_funds > 0:
            least_sharer = sharers[-1]
            least_shared = -least_sharer.find_adjustment_amount(TO_TEAMMATE_REASON)

            per_member = min(split_evenly(self._shareable_funds, len(sharers)), least_shared)
            if per_member <= 0:
                break

            logger.info("Returning %s to %d member(s) who shared.", fmt(per_member), len(sharers))
            self._move_shared_to_members(TO_TEAMMATE_REASON, per_member, sharers)

            while sharers and sharers[-1].find_adjustment_amount(TO_TEAMMATE_REASON) == 0:
                sharers.pop()

        # What is left is less than a cent per remaining sharer.
        while sharers and self._shareable_funds > 0:
            least_sharer = sharers.pop()
            self._move_from_shared(
                least_sharer,
                FundAdjustment(TO_TEAMMATE_REASON, min(self._shareable_funds, PENNY)),
            )

    # --- Assigning sharers ---

    def _assign_sharers_to_receivers(self) -> None:
        """Rewrite generic teammate transfers as specific giver/receiver pairs."""

        sharers = self._find_sharers()
        if not sharers:
            return

        sharer_iter = iter(sharers)
        sharing_member = next(sharer_iter)

        for needing_member in self._team_members:
            while (from_teammate := needing_member.find_adjustment_amount(FROM_TEAMMATE_REASON)) > 0:
                available = -sharing_member.find_adjustment_amount(TO_TEAMMATE_REASON)
                if available <= 0:
                    sharing_member = next(sharer_iter, None)
                    if sharing_member is None:
                        raise RuntimeError(
                            f"No shared funds left to attribute {fmt(from_teammate)} "
                            f"given to {needing_member.full_name}"
                        )
                    continue

                amount = min(from_teammate, available)
                logger.info(
                    "%s gives %s to %s.",
                    sharing_member.full_name,
                    fmt(amount),
                    needing_member.full_name,
                )
                _change_adjustment_reason(
                    sharing_member, TO_TEAMMATE_REASON, f"To {needing_member.full_name}", -amount
                )
                _change_adjustment_reason(
                    needing_member, FROM_TEAMMATE_REASON, f"From {sharing_member.full_name}", amount
                )

    def _find_sharers(self) -> list[TeamMember]:
        """Members who gave to teammates, largest contribution first (ties in roster order)."""

        sharers = [
            m for m in self._team_members if m.find_adjustment_amount(TO_TEAMMATE_REASON) < 0
        ]
        sharers.sort(key=lambda m: m.find_adjustment_amount(TO_TEAMMATE_REASON))
        return sharers

    # --- Pool movements ---

    def _move_shared_to_members(
        self, reason: str, per_member: Decimal, members: Iterable[TeamMember]
    ) -> None:
        for member in list(members):
            self._move_from_shared(member, FundAdjustment(reason, per_member))

    def _move_from_shared(self, member: TeamMember, adjustment: FundAdjustment) -> None:
        """Move money from the shared pool to a member (negative amounts move it back)."""
        self._shareable_funds -= adjustment.amount
        member.add_adjustment(adjustment)


def _change_adjustment_reason(
    member: TeamMember, from_reason: str, to_reason: str, amount: Decimal
) -> None:
    """Relabel `amount` of a member's funds; the member's total is unchanged."""
    member.add_adjustment(FundAdjustment(from_reason, -amount))
    member.add_adjustment(FundAdjustment(to_reason, amount))
