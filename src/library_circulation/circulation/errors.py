"""
Typed failures of the circulation engine.

Every refused operation raises a ``CirculationError`` carrying a
``FailureKind``. Refusals are detected before any state is touched, so
catching one never requires cleanup. Two failures sit outside that family:

- ``PersistenceError``: the snapshot could not be written. The operation is
  aborted and its staged changes are discarded.
- ``CopyCountInvariantError``: counters drifted from the issue records. This
  is a programming error and is never reported to a caller as a refusal.
"""

from enum import Enum

from ..database.repository import PersistenceError


class FailureGroup(str, Enum):
    """Coarse classification used when reporting a refusal."""

    NOT_FOUND = "not_found"
    NOT_ELIGIBLE = "not_eligible"
    INVENTORY_CONFLICT = "inventory_conflict"
    STATE_CONFLICT = "state_conflict"


class FailureKind(str, Enum):
    """Reasons an engine operation can be refused."""

    MEMBER_NOT_FOUND = "MemberNotFound"
    BOOK_NOT_FOUND = "BookNotFound"
    RESERVATION_NOT_FOUND = "ReservationNotFound"
    NOT_ELIGIBLE = "NotEligible"
    INVALID_PAYMENT = "InvalidPayment"
    NO_COPY_AVAILABLE = "NoCopyAvailable"
    RESERVED_BY_ANOTHER = "ReservedByAnother"
    ALREADY_ISSUED_TO_MEMBER = "AlreadyIssuedToMember"
    NOT_CURRENTLY_ISSUED = "NotCurrentlyIssued"
    DUPLICATE_RESERVATION = "DuplicateReservation"

    @property
    def group(self) -> FailureGroup:
        return _GROUPS[self]


_GROUPS = {
    FailureKind.MEMBER_NOT_FOUND: FailureGroup.NOT_FOUND,
    FailureKind.BOOK_NOT_FOUND: FailureGroup.NOT_FOUND,
    FailureKind.RESERVATION_NOT_FOUND: FailureGroup.NOT_FOUND,
    FailureKind.NOT_ELIGIBLE: FailureGroup.NOT_ELIGIBLE,
    FailureKind.INVALID_PAYMENT: FailureGroup.NOT_ELIGIBLE,
    FailureKind.NO_COPY_AVAILABLE: FailureGroup.INVENTORY_CONFLICT,
    FailureKind.RESERVED_BY_ANOTHER: FailureGroup.INVENTORY_CONFLICT,
    FailureKind.ALREADY_ISSUED_TO_MEMBER: FailureGroup.STATE_CONFLICT,
    FailureKind.NOT_CURRENTLY_ISSUED: FailureGroup.STATE_CONFLICT,
    FailureKind.DUPLICATE_RESERVATION: FailureGroup.STATE_CONFLICT,
}


class CirculationError(Exception):
    """Raised when the engine refuses an operation."""

    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def group(self) -> FailureGroup:
        return self.kind.group

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "group": self.group.value, "message": self.message}

    def __repr__(self) -> str:
        return f"CirculationError({self.kind.value}: {self.message})"


class CopyCountInvariantError(AssertionError):
    """Raised when copy counters disagree with the open issue records."""


__all__ = [
    "CirculationError",
    "CopyCountInvariantError",
    "FailureGroup",
    "FailureKind",
    "PersistenceError",
]
