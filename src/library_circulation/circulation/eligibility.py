"""
Member eligibility: borrow and renew checks, fines and suspension.

A member is Suspended exactly when their unpaid fines reach the category's
maximum fine; paying below that threshold reactivates them.
"""

import logging

from ..models import Member, MemberStatus
from .errors import CirculationError, FailureKind
from .policy import PolicyTable, RenewalFineRule

logger = logging.getLogger(__name__)


class MemberEligibility:
    def __init__(self, policies: PolicyTable | None = None):
        self.policies = policies or PolicyTable()

    def borrow_refusal(self, member: Member) -> str | None:
        """Reason the member may not borrow, or None when they may."""
        policy = self.policies.policy(member.category)
        if not member.is_active:
            return f"Member {member.id} is {member.status.value}"
        if member.current_borrowed_books >= policy.borrow_limit:
            return f"Member {member.id} has reached the borrow limit of {policy.borrow_limit}"
        if member.total_fine_amount > policy.max_fine:
            return f"Member {member.id} owes {member.total_fine_amount:.2f}, above the maximum fine"
        if member.renewal_count > policy.renewal_limit:
            return f"Member {member.id} has exceeded the renewal limit of {policy.renewal_limit}"
        return None

    def renew_refusal(self, member: Member) -> str | None:
        policy = self.policies.policy(member.category)
        if not member.is_active:
            return f"Member {member.id} is {member.status.value}"
        if policy.renewal_fine_rule == RenewalFineRule.BELOW_HALF_MAX_FINE:
            if member.total_fine_amount >= policy.max_fine * 0.5:
                return f"Member {member.id} owes {member.total_fine_amount:.2f}, half the maximum fine or more"
        elif member.total_fine_amount > 0:
            return f"Member {member.id} has an outstanding fine of {member.total_fine_amount:.2f}"
        if member.renewal_count >= policy.renewal_limit:
            return f"Member {member.id} has used all {policy.renewal_limit} renewals"
        return None

    def can_borrow(self, member: Member) -> bool:
        return self.borrow_refusal(member) is None

    def can_renew(self, member: Member) -> bool:
        return self.renew_refusal(member) is None

    def apply_fine(self, member: Member, amount: float) -> Member:
        """Add to the member's fines, suspending them at the maximum fine."""
        if amount <= 0:
            return member
        member.total_fine_amount = round(member.total_fine_amount + amount, 2)
        if member.total_fine_amount >= self.policies.policy(member.category).max_fine:
            if member.status != MemberStatus.SUSPENDED:
                logger.info("Member %d suspended with %.2f in fines", member.id, member.total_fine_amount)
            member.status = MemberStatus.SUSPENDED
        return member

    def pay_fine(self, member: Member, amount: float) -> Member:
        """
        Record a payment against the member's fines.

        Raises:
            CirculationError: ``InvalidPayment`` unless ``0 < amount <= total fine``.
        """
        if amount <= 0 or amount > member.total_fine_amount:
            raise CirculationError(
                FailureKind.INVALID_PAYMENT,
                f"Payment of {amount:.2f} is not between 0 and the outstanding "
                f"{member.total_fine_amount:.2f}",
            )
        member.total_fine_amount = round(member.total_fine_amount - amount, 2)
        max_fine = self.policies.policy(member.category).max_fine
        if member.status == MemberStatus.SUSPENDED and member.total_fine_amount < max_fine:
            member.status = MemberStatus.ACTIVE
            logger.info("Member %d reactivated after payment", member.id)
        return member

    # The record_* helpers are no-ops when their guard fails; callers check
    # eligibility before relying on them.

    def record_borrow(self, member: Member) -> bool:
        if not self.can_borrow(member):
            return False
        member.current_borrowed_books += 1
        return True

    def record_return(self, member: Member) -> bool:
        if member.current_borrowed_books <= 0:
            return False
        member.current_borrowed_books -= 1
        return True

    def record_renewal(self, member: Member) -> bool:
        if not self.can_renew(member):
            return False
        member.renewal_count += 1
        return True

    def is_suspension_consistent(self, member: Member) -> bool:
        suspended = member.status == MemberStatus.SUSPENDED
        return suspended == (member.total_fine_amount >= self.policies.policy(member.category).max_fine)
