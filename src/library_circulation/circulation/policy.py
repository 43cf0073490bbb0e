"""
Policy table: member category to circulation limits.

A pure lookup. Every numeric business rule of the engine (limits, fine
rates, grace windows, renewal allowances) is read from here so that the
rules can be tested without touching any ledger.
"""

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ..models.member import MemberCategory

if TYPE_CHECKING:
    from ..config import CirculationConfig


class RenewalFineRule(str, Enum):
    """How a member's outstanding fine limits renewals."""

    NO_OUTSTANDING_FINE = "no_outstanding_fine"
    BELOW_HALF_MAX_FINE = "below_half_max_fine"


class FineStrategyKind(str, Enum):
    """Shape of the fine formula applied to charged overdue days."""

    FLAT = "flat"
    ESCALATING = "escalating"


class Policy(BaseModel):
    """Circulation limits of one member category."""

    borrow_limit: int = Field(..., description="Books a member may hold at once", ge=0)
    daily_fine_rate: float = Field(..., description="Fine charged per overdue day", ge=0.0)
    grace_period_days: int = Field(..., description="Days after due date before fines accrue", ge=0)
    renewal_limit: int = Field(..., description="Renewals a member may use", ge=0)
    max_fine: float = Field(..., description="Fine total at which the member is suspended", gt=0.0)
    default_loan_days: int = Field(default=5, description="Loan period for issues and renewals", ge=1)
    fine_strategy: FineStrategyKind = Field(default=FineStrategyKind.FLAT)
    renewal_fine_rule: RenewalFineRule = Field(default=RenewalFineRule.NO_OUTSTANDING_FINE)

    model_config = ConfigDict(frozen=True)


# Renewal requires a zero fine in every category by default. Faculty and Regular
# members historically renewed while owing less than half the maximum fine;
# listing them in relaxed_renewal_categories restores that rule.
DEFAULT_POLICIES: dict[MemberCategory, Policy] = {
    MemberCategory.STUDENT: Policy(
        borrow_limit=3,
        daily_fine_rate=2.0,
        grace_period_days=3,
        renewal_limit=2,
        max_fine=100.0,
        fine_strategy=FineStrategyKind.FLAT,
    ),
    MemberCategory.FACULTY: Policy(
        borrow_limit=5,
        daily_fine_rate=1.0,
        grace_period_days=5,
        renewal_limit=3,
        max_fine=50.0,
        fine_strategy=FineStrategyKind.ESCALATING,
    ),
    MemberCategory.REGULAR: Policy(
        borrow_limit=2,
        daily_fine_rate=3.0,
        grace_period_days=2,
        renewal_limit=1,
        max_fine=200.0,
        fine_strategy=FineStrategyKind.ESCALATING,
    ),
}

# Categories missing from a table fall back to this one
FALLBACK_CATEGORY = MemberCategory.REGULAR


class PolicyTable:
    """Lookup of ``Policy`` rows keyed by member category."""

    def __init__(self, policies: dict[MemberCategory, Policy] | None = None):
        self._policies = dict(DEFAULT_POLICIES if policies is None else policies)
        if FALLBACK_CATEGORY not in self._policies:
            self._policies[FALLBACK_CATEGORY] = DEFAULT_POLICIES[FALLBACK_CATEGORY]

    def policy(self, category: MemberCategory | str | None) -> Policy:
        """Return the policy of ``category``; unknown categories get the Regular policy."""
        try:
            key = MemberCategory(category)
        except ValueError:
            return self._policies[FALLBACK_CATEGORY]
        return self._policies.get(key, self._policies[FALLBACK_CATEGORY])

    @classmethod
    def from_config(cls, config: "CirculationConfig") -> "PolicyTable":
        """Apply the configured renewal overrides to the default rows."""
        policies = {}
        for category, row in DEFAULT_POLICIES.items():
            if category in config.relaxed_renewal_categories:
                row = row.model_copy(
                    update={"renewal_fine_rule": RenewalFineRule.BELOW_HALF_MAX_FINE}
                )
            policies[category] = row
        return cls(policies)


_DEFAULT_TABLE = PolicyTable()


def policy(category: MemberCategory | str | None) -> Policy:
    """Look up the default policy of a member category."""
    return _DEFAULT_TABLE.policy(category)
