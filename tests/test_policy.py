"""Tests for the policy table."""

import pytest
from pydantic import ValidationError

from library_circulation.circulation.policy import (
    DEFAULT_POLICIES,
    FineStrategyKind,
    Policy,
    PolicyTable,
    policy,
)
from library_circulation.models import MemberCategory


class TestPolicyTable:
    @pytest.mark.parametrize(
        ("category", "limit", "rate", "grace", "renewals", "max_fine"),
        [
            (MemberCategory.STUDENT, 3, 2.0, 3, 2, 100.0),
            (MemberCategory.FACULTY, 5, 1.0, 5, 3, 50.0),
            (MemberCategory.REGULAR, 2, 3.0, 2, 1, 200.0),
        ],
    )
    def test_default_rows(self, category, limit, rate, grace, renewals, max_fine):
        row = policy(category)

        assert row.borrow_limit == limit
        assert row.daily_fine_rate == rate
        assert row.grace_period_days == grace
        assert row.renewal_limit == renewals
        assert row.max_fine == max_fine
        assert row.default_loan_days == 5

    def test_lookup_by_string(self):
        assert policy("faculty") == DEFAULT_POLICIES[MemberCategory.FACULTY]

    @pytest.mark.parametrize("category", ["visitor", "", None])
    def test_unknown_category_uses_regular(self, category):
        assert policy(category) == DEFAULT_POLICIES[MemberCategory.REGULAR]

    def test_fine_strategies(self):
        assert policy(MemberCategory.STUDENT).fine_strategy == FineStrategyKind.FLAT
        assert policy(MemberCategory.FACULTY).fine_strategy == FineStrategyKind.ESCALATING
        assert policy(MemberCategory.REGULAR).fine_strategy == FineStrategyKind.ESCALATING

    def test_custom_table_falls_back_to_regular(self):
        custom = Policy(borrow_limit=10, daily_fine_rate=0.5, grace_period_days=7, renewal_limit=5, max_fine=20)
        table = PolicyTable({MemberCategory.FACULTY: custom})

        assert table.policy(MemberCategory.FACULTY) == custom
        assert table.policy(MemberCategory.STUDENT) == DEFAULT_POLICIES[MemberCategory.REGULAR]

    def test_policies_are_immutable(self):
        with pytest.raises(ValidationError):
            policy(MemberCategory.STUDENT).borrow_limit = 99
