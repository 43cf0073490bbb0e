"""
Overdue fine computation.

Charged days start after the category's grace window:

    days_overdue = max(0, whole days between (due_date + grace) and the return)

The formula applied to those days is a strategy selected by the category's
``Policy.fine_strategy``:

- FLAT: ``days * daily_fine_rate``
- ESCALATING: the flat charge plus a daily surcharge for every charged day
  beyond a threshold (30 days and 0.5 per day unless configured otherwise)
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ..models.member import MemberCategory
from .policy import FineStrategyKind, Policy, PolicyTable

if TYPE_CHECKING:
    from ..config import CirculationConfig

logger = logging.getLogger(__name__)

FineStrategy = Callable[[int, Policy], float]


def flat_daily_fine(days_overdue: int, policy: Policy) -> float:
    return days_overdue * policy.daily_fine_rate


class EscalatingDailyFine:
    """Flat daily fine with a surcharge once the charged days pass a threshold."""

    def __init__(self, threshold_days: int = 30, daily_surcharge: float = 0.5):
        self.threshold_days = threshold_days
        self.daily_surcharge = daily_surcharge

    def __call__(self, days_overdue: int, policy: Policy) -> float:
        surcharge_days = max(0, days_overdue - self.threshold_days)
        return flat_daily_fine(days_overdue, policy) + surcharge_days * self.daily_surcharge


class FineCalculator:
    """
    Computes overdue days and fines for a member category.

    Strategies are keyed by ``FineStrategyKind``; a category-specific strategy
    can be installed with ``register`` to override the policy's kind.
    """

    def __init__(
        self,
        policies: PolicyTable | None = None,
        escalation_threshold_days: int = 30,
        escalation_daily_surcharge: float = 0.5,
    ):
        self.policies = policies or PolicyTable()
        self._by_kind: dict[FineStrategyKind, FineStrategy] = {
            FineStrategyKind.FLAT: flat_daily_fine,
            FineStrategyKind.ESCALATING: EscalatingDailyFine(
                escalation_threshold_days, escalation_daily_surcharge
            ),
        }
        self._by_category: dict[MemberCategory, FineStrategy] = {}

    @classmethod
    def from_config(cls, config: "CirculationConfig", policies: PolicyTable | None = None):
        return cls(
            policies or PolicyTable.from_config(config),
            escalation_threshold_days=config.fine_escalation_threshold_days,
            escalation_daily_surcharge=config.fine_escalation_daily_surcharge,
        )

    def register(self, category: MemberCategory, strategy: FineStrategy) -> None:
        self._by_category[category] = strategy

    def strategy_for(self, category: MemberCategory) -> FineStrategy:
        if category in self._by_category:
            return self._by_category[category]
        return self._by_kind[self.policies.policy(category).fine_strategy]

    def days_overdue(self, category: MemberCategory, due_date: datetime, returned_at: datetime) -> int:
        """Charged overdue days, counted from the end of the grace window."""
        grace = self.policies.policy(category).grace_period_days
        charge_from = due_date + timedelta(days=grace)
        return max(0, (returned_at - charge_from).days)

    def fine_for(self, category: MemberCategory, days_overdue: int) -> float:
        if days_overdue <= 0:
            return 0.0
        strategy = self.strategy_for(category)
        return round(strategy(days_overdue, self.policies.policy(category)), 2)

    def assess(self, category: MemberCategory, due_date: datetime, returned_at: datetime) -> tuple[int, float]:
        """Return ``(days_overdue, fine)`` for a book returned at ``returned_at``."""
        days = self.days_overdue(category, due_date, returned_at)
        fine = self.fine_for(category, days)
        if fine:
            logger.debug("Assessed fine %.2f for %d overdue days (%s)", fine, days, category.value)
        return days, fine
