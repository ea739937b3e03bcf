"""Company matching policies.

A matcher adds company money to team members who reach some fundraising
criteria. Policies are selected by name from a `MatcherRegistry`; the threshold
and amount tables are configuration data (string properties), so a new season's
policy is a new YAML file rather than new code.

Property format (same keys the roster config has always used):
- ``matcher_amount_<commitment>``: ``"<threshold>,<amount>"`` for riders whose
  commitment is ``<commitment>``
- ``matcher_amount_volunteer``: ``"<threshold>,<amount>"``; only the amount is used
- ``matcher_delegate``: policy name wrapped by ``employee_only`` (default ``level``)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, Mapping

from src.funds.use_cases.money import ZERO, fmt
from src.funds.use_cases.team_member import FundAdjustment, TeamMember

logger = logging.getLogger(__name__)

RIDER_MATCH_REASON = "Company rider match"
VOLUNTEER_MATCH_REASON = "Company volunteer match"

AMOUNT_PROPERTY_PREFIX = "matcher_amount_"
VOLUNTEER_PROPERTY = AMOUNT_PROPERTY_PREFIX + "volunteer"

EMPLOYEE_COLUMN = "Employee"


class MatcherConfigError(ValueError):
    """Matching policy configuration is missing or malformed."""


@dataclass(slots=True)
class MatchingStats:
    matching_count: int = 0
    total_matching: Decimal = ZERO
    riders_short_count: int = 0
    total_short_of_matching_level: Decimal = ZERO
    total_unattained_matching_amount: Decimal = ZERO


class CompanyMatcher:
    """Base class for a company's matching policy.

    Subclasses implement `get_matching_for_team_member`; the roster loop,
    the high-roller rule and the summary logging live here.
    """

    name = "base"

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        self._properties = dict(properties or {})
        self._stats = MatchingStats()

    @property
    def properties(self) -> dict[str, str]:
        return self._properties

    @property
    def stats(self) -> MatchingStats:
        return self._stats

    @property
    def additional_columns(self) -> list[str]:
        """Extra roster columns this policy reads from `TeamMember.additional_properties`."""
        return []

    def add_funds_to_team_members(self, team_members: Iterable[TeamMember]) -> None:
        """Add company money to every member who qualifies, in roster order."""

        for member in team_members:
            if member.is_high_roller and not member.has_met_commitment_on_own():
                logger.info(
                    "%s cannot receive matching funds until individual %s high roller goal is met.",
                    member.full_name,
                    fmt(member.commitment),
                )
                continue

            matching = self.get_matching_for_team_member(member)
            if matching is not None:
                member.add_adjustment(matching)

        self.log_summary()

    def get_matching_for_team_member(self, member: TeamMember) -> FundAdjustment | None:
        raise NotImplementedError

    def log_summary(self) -> None:
        for line in MatcherSummary.from_matcher(self).lines():
            logger.info(line)


MatcherFactory = Callable[..., CompanyMatcher]


class MatcherRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, MatcherFactory] = {}

    def register(self, name: str) -> Callable[[MatcherFactory], MatcherFactory]:
        def _decorator(factory: MatcherFactory) -> MatcherFactory:
            self._factories[name] = factory
            return factory

        return _decorator

    def get(self, name: str) -> MatcherFactory | None:
        return self._factories.get(name)

    def names(self) -> set[str]:
        return set(self._factories.keys())

    def create(
        self,
        name: str,
        properties: Mapping[str, str] | None = None,
        *,
        employee_ids: set[str] | None = None,
    ) -> CompanyMatcher:
        """Build the matcher registered under `name`.

        Raises MatcherConfigError for unknown names or bad properties, so a
        misconfigured run stops before any money moves.
        """

        factory = self.get(name)
        if factory is None:
            known = ", ".join(sorted(self.names()))
            raise MatcherConfigError(f"Unknown matcher '{name}'. Known matchers: {known}")
        return factory(properties or {}, employee_ids=employee_ids, registry=self)


DEFAULT_REGISTRY = MatcherRegistry()


def create_matcher(
    name: str,
    properties: Mapping[str, str] | None = None,
    *,
    employee_ids: set[str] | None = None,
) -> CompanyMatcher:
    return DEFAULT_REGISTRY.create(name, properties, employee_ids=employee_ids)


class NonExistentCompanyMatcher(CompanyMatcher):
    """Default matcher that gives money to nobody.

    Used when there is no external source of matching funds.
    """

    name = "none"

    def get_matching_for_team_member(self, member: TeamMember) -> FundAdjustment | None:
        return None

    def add_funds_to_team_members(self, team_members: Iterable[TeamMember]) -> None:
        super().add_funds_to_team_members(team_members)
        logger.info("The program was configured to not calculate any matching funds per team member.")


def _parse_amount_pair(property_name: str, raw: str) -> tuple[Decimal, Decimal]:
    parts = [p.strip() for p in str(raw).split(",")]
    if len(parts) != 2:
        raise MatcherConfigError(
            f"Property {property_name} must be '<threshold>,<amount>', got: {raw!r}"
        )
    try:
        return Decimal(parts[0]), Decimal(parts[1])
    except InvalidOperation as e:
        raise MatcherConfigError(
            f"Property {property_name} must contain two amounts, got: {raw!r}"
        ) from e


class LevelMatcher(CompanyMatcher):
    """Match a team member that reaches a particular fund level.

    Riders earn the tier amount for their commitment once their self-raised
    money reaches the tier threshold. Non-riders earn the fixed volunteer amount.
    """

    name = "level"

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        super().__init__(properties)

        self._rider_tiers: dict[Decimal, tuple[Decimal, Decimal]] = {}
        for key, raw in self.properties.items():
            if not key.startswith(AMOUNT_PROPERTY_PREFIX) or key == VOLUNTEER_PROPERTY:
                continue
            suffix = key[len(AMOUNT_PROPERTY_PREFIX):]
            try:
                commitment = Decimal(suffix)
            except InvalidOperation as e:
                raise MatcherConfigError(f"Property {key} does not name a commitment amount") from e
            self._rider_tiers[commitment] = _parse_amount_pair(key, raw)

        if not self._rider_tiers:
            raise MatcherConfigError(
                f"Property file does not have any {AMOUNT_PROPERTY_PREFIX}<commitment> rider tiers"
            )

        volunteer_raw = self.properties.get(VOLUNTEER_PROPERTY)
        if volunteer_raw is None:
            raise MatcherConfigError(f"Property file does not have: {VOLUNTEER_PROPERTY}")
        _, self._volunteer_amount = _parse_amount_pair(VOLUNTEER_PROPERTY, volunteer_raw)

    def get_matching_for_team_member(self, member: TeamMember) -> FundAdjustment | None:
        if member.is_rider():
            return self._matching_for_rider(member)
        return self._matching_for_volunteer(member)

    def rider_matching_level(self, member: TeamMember) -> Decimal:
        """Amount the rider must raise before receiving the match."""
        return self._rider_tier(member)[0]

    def rider_matching_amount(self, member: TeamMember) -> Decimal:
        """Amount the rider receives after reaching the matching level."""
        return self._rider_tier(member)[1]

    @property
    def volunteer_matching_amount(self) -> Decimal:
        return self._volunteer_amount

    def _rider_tier(self, member: TeamMember) -> tuple[Decimal, Decimal]:
        tier = self._rider_tiers.get(member.commitment)
        if tier is None:
            raise MatcherConfigError(
                f"Property file does not have: {AMOUNT_PROPERTY_PREFIX}{member.commitment.normalize():f}"
                f" (commitment of {member.full_name})"
            )
        return tier

    def _matching_for_rider(self, member: TeamMember) -> FundAdjustment | None:
        level, amount = self._rider_tier(member)
        short_of_matching = level - member.raised
        if short_of_matching <= 0:
            self._stats.matching_count += 1
            self._stats.total_matching += amount
            logger.info(
                "%s earned matching %s after raising %s.",
                member.full_name,
                fmt(amount),
                fmt(member.raised),
            )
            return FundAdjustment(RIDER_MATCH_REASON, amount)

        self._stats.riders_short_count += 1
        self._stats.total_short_of_matching_level += short_of_matching
        self._stats.total_unattained_matching_amount += amount
        logger.info(
            "%s needs to raise %s before receiving matching funds.",
            member.full_name,
            fmt(short_of_matching),
        )
        return None

    def _matching_for_volunteer(self, member: TeamMember) -> FundAdjustment | None:
        self._stats.matching_count += 1
        if self._volunteer_amount == 0:
            return None

        self._stats.total_matching += self._volunteer_amount
        logger.info(
            "%s earned matching %s for volunteering.",
            member.full_name,
            fmt(self._volunteer_amount),
        )
        return FundAdjustment(VOLUNTEER_MATCH_REASON, self._volunteer_amount)


class EmployeeOnlyMatcher(CompanyMatcher):
    """Only calculate matching for team members who are company employees.

    Eligibility comes from an employee rider-id list when one was loaded;
    otherwise from the roster's ``Employee`` column, where a missing value
    counts as an employee.
    """

    name = "employee_only"

    def __init__(
        self,
        delegate: CompanyMatcher,
        *,
        employee_ids: set[str] | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(properties)
        self._delegate = delegate
        self._employee_ids = set(employee_ids) if employee_ids is not None else None

    @property
    def delegate(self) -> CompanyMatcher:
        return self._delegate

    @property
    def stats(self) -> MatchingStats:
        return self._delegate.stats

    @property
    def additional_columns(self) -> list[str]:
        columns = list(self._delegate.additional_columns)
        if self._employee_ids is None and EMPLOYEE_COLUMN not in columns:
            columns.append(EMPLOYEE_COLUMN)
        return columns

    def is_employee(self, member: TeamMember) -> bool:
        if self._employee_ids is not None:
            return member.rider_id is not None and member.rider_id in self._employee_ids
        value = member.additional_properties.get(EMPLOYEE_COLUMN)
        return value is None or value.strip().lower() == "employee"

    def get_matching_for_team_member(self, member: TeamMember) -> FundAdjustment | None:
        if not self.is_employee(member):
            logger.info("%s is not an employee eligible for matching funds.", member.full_name)
            return None
        return self._delegate.get_matching_for_team_member(member)


@DEFAULT_REGISTRY.register(NonExistentCompanyMatcher.name)
def _create_non_existent(properties: Mapping[str, str], **_: object) -> CompanyMatcher:
    return NonExistentCompanyMatcher(properties)


@DEFAULT_REGISTRY.register(LevelMatcher.name)
def _create_level(properties: Mapping[str, str], **_: object) -> CompanyMatcher:
    return LevelMatcher(properties)


@DEFAULT_REGISTRY.register(EmployeeOnlyMatcher.name)
def _create_employee_only(
    properties: Mapping[str, str],
    *,
    employee_ids: set[str] | None = None,
    registry: MatcherRegistry,
    **_: object,
) -> CompanyMatcher:
    delegate_name = properties.get("matcher_delegate", LevelMatcher.name)
    if delegate_name == EmployeeOnlyMatcher.name:
        raise MatcherConfigError("matcher_delegate cannot be employee_only")
    delegate = registry.create(delegate_name, properties)
    return EmployeeOnlyMatcher(delegate, employee_ids=employee_ids, properties=properties)


@dataclass(frozen=True, slots=True)
class MatcherSummary:
    """Flat view of a matcher's counters for reports."""

    matcher_name: str
    matching_count: int
    total_matching: Decimal
    riders_short_count: int
    total_short_of_matching_level: Decimal
    total_unattained_matching_amount: Decimal

    @classmethod
    def from_matcher(cls, matcher: CompanyMatcher) -> "MatcherSummary":
        s = matcher.stats
        return cls(
            matcher_name=matcher.name,
            matching_count=s.matching_count,
            total_matching=s.total_matching,
            riders_short_count=s.riders_short_count,
            total_short_of_matching_level=s.total_short_of_matching_level,
            total_unattained_matching_amount=s.total_unattained_matching_amount,
        )

    def lines(self) -> list[str]:
        return [
            f"{self.matching_count} members earned {fmt(self.total_matching)} matching funds.",
            f"{self.riders_short_count} riders need to raise {fmt(self.total_short_of_matching_level)} "
            f"for the remaining {fmt(self.total_unattained_matching_amount)} matching funds.",
        ]
