"""
Circulation engine: Issue, Return, Renew and Reserve.

The engine is the only component that writes more than one ledger at a
time. Every operation follows the same shape:

1. VALIDATE: look up the member and book, consult eligibility, the
   reservation queue and the inventory ledger. Any refusal raises a
   ``CirculationError`` before anything is staged.
2. APPLY: stage the changes to books, members, issues and reservations.
3. VERIFY: re-check the copy-count equation of the touched book.
4. COMMIT: write the whole snapshot. A failed write discards the staged
   changes and raises ``PersistenceError``.

A single re-entrant lock serializes operations, so no caller can observe a
half-applied transaction.

Example:
    ```python
    engine = CirculationEngine(InMemorySnapshotStore())
    engine.register_member(Member(id=1, name="Asha", category="student"))
    engine.add_book(Book.physical(id=10, title="Dune", author="Frank Herbert", total_copies=2))
    record = engine.issue_book(member_id=1, book_id=10)
    ```
"""

import logging
import threading
from collections import Counter
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any

from ..config import CirculationConfig, get_config
from ..database.repository import LibraryUnitOfWork
from ..database.session import DatabaseManager
from ..database.snapshot_store import LibrarySnapshot, SnapshotStore, SqlSnapshotStore
from ..models import Book, IssueRecord, Member, Reservation
from .eligibility import MemberEligibility
from .errors import CirculationError, FailureKind
from .fines import FineCalculator
from .inventory import InventoryLedger
from .policy import PolicyTable
from .reservations import ReservationQueue

logger = logging.getLogger(__name__)


class CirculationEngine:
    def __init__(
        self,
        store: SnapshotStore,
        policies: PolicyTable | None = None,
        fines: FineCalculator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.policies = policies or PolicyTable()
        self.fines = fines or FineCalculator(self.policies)
        self.eligibility = MemberEligibility(self.policies)
        self.clock = clock or datetime.now

        self.uow = LibraryUnitOfWork(store)
        self.inventory = InventoryLedger(self.uow.books, self.uow.issues, self.uow.reservations)
        self.queue = ReservationQueue(self.uow.reservations)

        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Generator[None, None, None]:
        with self._lock:
            try:
                yield
            except CirculationError as e:
                self.uow.rollback()
                logger.info("%s refused: %s - %s", operation, e.kind.value, e.message)
                raise
            except BaseException:
                self.uow.rollback()
                raise
            self.uow.commit()
            logger.info("%s committed", operation)

    def _member(self, member_id: int) -> Member:
        member = self.uow.members.get_by_id(member_id)
        if member is None:
            raise CirculationError(FailureKind.MEMBER_NOT_FOUND, f"Member {member_id} not found")
        return member

    def _book(self, book_id: int) -> Book:
        book = self.uow.books.get_by_id(book_id)
        if book is None:
            raise CirculationError(FailureKind.BOOK_NOT_FOUND, f"Book {book_id} not found")
        return book

    def _open_issue(self, member_id: int, book_id: int) -> IssueRecord:
        issue = self.uow.issues.open_issue_for(member_id, book_id)
        if issue is None:
            raise CirculationError(
                FailureKind.NOT_CURRENTLY_ISSUED,
                f"Book {book_id} is not currently issued to member {member_id}",
            )
        return issue

    def _check_reserved_by_another(self, member_id: int, book_id: int) -> Reservation | None:
        """Enforce FIFO; returns the member's own reservation when it is first."""
        first = self.queue.first_reservation_for(book_id)
        if first is not None and first.member_id != member_id:
            raise CirculationError(
                FailureKind.RESERVED_BY_ANOTHER,
                f"Book {book_id} is reserved by member {first.member_id}",
            )
        return first

    def _hold_for_waiting(self, book_id: int) -> None:
        """Set freed copies aside for reservations queued without one."""
        book = self.uow.books.get_by_id(book_id)
        while book is not None and book.has_finite_copies and self.inventory.has_free_copy(book):
            waiting = self.queue.first_waiting_without_copy(book_id)
            if waiting is None:
                return
            book = self.inventory.reserve_one_copy(book)
            self.queue.mark_holding(waiting)
            logger.info("Held a copy of book %d for member %d", book_id, waiting.member_id)

    def _check_suspension(self, member: Member) -> None:
        if not self.eligibility.is_suspension_consistent(member):
            raise ValueError(
                f"Member {member.id} is {member.status.value} with {member.total_fine_amount:.2f} "
                "in fines; members are suspended exactly when fines reach the maximum"
            )

    def _check_open_loans(self) -> None:
        """A member holds at most one open issue of a book, and never reserves a book they hold."""
        open_loans = Counter(
            (issue.member_id, issue.book_id) for issue in self.uow.issues.list() if issue.is_open
        )
        for (member_id, book_id), count in open_loans.items():
            if count > 1:
                raise CirculationError(
                    FailureKind.ALREADY_ISSUED_TO_MEMBER,
                    f"Member {member_id} has {count} open issues of book {book_id}",
                )
        for reservation in self.uow.reservations.list():
            if reservation.key in open_loans:
                raise CirculationError(
                    FailureKind.ALREADY_ISSUED_TO_MEMBER,
                    f"Member {reservation.member_id} reserved book {reservation.book_id} "
                    "while holding an open issue of it",
                )

    # ------------------------------------------------------------------
    # Circulation operations
    # ------------------------------------------------------------------

    def issue_book(self, member_id: int, book_id: int) -> IssueRecord:
        """
        Issue a book to a member.

        Fulfils the member's reservation when they are first in the queue.

        Raises:
            CirculationError: MemberNotFound, NotEligible, BookNotFound,
                ReservedByAnother, NoCopyAvailable or AlreadyIssuedToMember.
        """
        with self._transaction(f"Issue book {book_id} to member {member_id}"):
            member = self._member(member_id)
            refusal = self.eligibility.borrow_refusal(member)
            if refusal:
                raise CirculationError(FailureKind.NOT_ELIGIBLE, refusal)
            book = self._book(book_id)
            own = self._check_reserved_by_another(member_id, book_id)
            was_reserved = own is not None and own.holds_copy
            if not self.inventory.can_issue(book, was_reserved):
                raise CirculationError(
                    FailureKind.NO_COPY_AVAILABLE, f"No copy of book {book_id} is available"
                )
            if self.uow.issues.open_issue_for(member_id, book_id) is not None:
                raise CirculationError(
                    FailureKind.ALREADY_ISSUED_TO_MEMBER,
                    f"Book {book_id} is already issued to member {member_id}",
                )

            now = self.clock()
            loan_days = self.policies.policy(member.category).default_loan_days
            if own is not None:
                self.queue.remove(member_id, book_id)
            self.inventory.issue_one_copy(book, was_reserved)
            record = IssueRecord(
                id=self.uow.issues.next_id(),
                member_id=member_id,
                book_id=book_id,
                issue_date=now,
                due_date=now + timedelta(days=loan_days),
            )
            self.uow.issues.add(record)
            self.eligibility.record_borrow(member)
            self.uow.members.upsert(member)
            self.inventory.verify(book_id)
        return record

    def return_book(self, member_id: int, book_id: int) -> IssueRecord:
        """
        Close the member's open issue of a book and charge any overdue fine.

        Raises:
            CirculationError: MemberNotFound, NotCurrentlyIssued or BookNotFound.
        """
        with self._transaction(f"Return book {book_id} from member {member_id}"):
            member = self._member(member_id)
            issue = self._open_issue(member_id, book_id)
            book = self._book(book_id)

            now = self.clock()
            days_overdue, fine = self.fines.assess(member.category, issue.due_date, now)
            issue.return_date = max(now, issue.issue_date)
            issue.fine_amount = round(issue.fine_amount + fine, 2)
            self.uow.issues.upsert(issue)

            self.eligibility.apply_fine(member, fine)
            self.eligibility.record_return(member)
            self.uow.members.upsert(member)

            self.inventory.return_one_copy(book)
            self._hold_for_waiting(book_id)
            self.inventory.verify(book_id)
            if days_overdue:
                logger.info(
                    "Book %d returned %d days overdue, fine %.2f", book_id, days_overdue, fine
                )
        return issue

    def renew_book(self, member_id: int, book_id: int) -> IssueRecord:
        """
        Extend the due date of the member's open issue by one loan period.

        Raises:
            CirculationError: MemberNotFound, NotEligible, BookNotFound,
                ReservedByAnother or NotCurrentlyIssued.
        """
        with self._transaction(f"Renew book {book_id} for member {member_id}"):
            member = self._member(member_id)
            refusal = self.eligibility.renew_refusal(member)
            if refusal:
                raise CirculationError(FailureKind.NOT_ELIGIBLE, refusal)
            book = self._book(book_id)
            # Only FIFO order is checked; the renewed copy is already with the member
            own = self._check_reserved_by_another(member_id, book_id)
            issue = self._open_issue(member_id, book_id)

            if own is not None:
                # Renewal keeps the copy already on loan; a held copy goes back
                self.queue.remove(member_id, book_id)
                if own.holds_copy:
                    self.inventory.cancel_reservation(book)
                    self._hold_for_waiting(book_id)

            loan_days = self.policies.policy(member.category).default_loan_days
            issue.due_date = issue.due_date + timedelta(days=loan_days)
            self.uow.issues.upsert(issue)
            self.eligibility.record_renewal(member)
            self.uow.members.upsert(member)
            self.inventory.verify(book_id)
        return issue

    def reserve_book(self, member_id: int, book_id: int) -> Reservation:
        """
        Put the member in the book's reservation queue.

        A copy is set aside immediately when one is on the shelf; otherwise
        the reservation waits and receives the next copy that comes back.

        Raises:
            CirculationError: MemberNotFound, NotEligible, BookNotFound,
                DuplicateReservation or AlreadyIssuedToMember.
        """
        with self._transaction(f"Reserve book {book_id} for member {member_id}"):
            member = self._member(member_id)
            refusal = self.eligibility.borrow_refusal(member)
            if refusal:
                raise CirculationError(FailureKind.NOT_ELIGIBLE, refusal)
            book = self._book(book_id)
            if self.queue.get(member_id, book_id) is not None:
                raise CirculationError(
                    FailureKind.DUPLICATE_RESERVATION,
                    f"Member {member_id} already holds a reservation for book {book_id}",
                )
            if self.uow.issues.open_issue_for(member_id, book_id) is not None:
                raise CirculationError(
                    FailureKind.ALREADY_ISSUED_TO_MEMBER,
                    f"Book {book_id} is already issued to member {member_id}",
                )

            holds_copy = book.has_finite_copies and self.inventory.has_free_copy(book)
            if holds_copy:
                self.inventory.reserve_one_copy(book)
            reservation = self.queue.reserve(member_id, book_id, self.clock(), holds_copy=holds_copy)
            self.inventory.verify(book_id)
        return reservation

    def cancel_reservation(self, member_id: int, book_id: int) -> Reservation:
        """
        Withdraw a reservation, releasing its held copy to the next in line.

        Raises:
            CirculationError: MemberNotFound, BookNotFound or ReservationNotFound.
        """
        with self._transaction(f"Cancel reservation of book {book_id} for member {member_id}"):
            self._member(member_id)
            book = self._book(book_id)
            reservation = self.queue.get(member_id, book_id)
            if reservation is None:
                raise CirculationError(
                    FailureKind.RESERVATION_NOT_FOUND,
                    f"Member {member_id} has no reservation for book {book_id}",
                )

            self.queue.remove(member_id, book_id)
            if reservation.holds_copy:
                self.inventory.cancel_reservation(book)
                self._hold_for_waiting(book_id)
            self.inventory.verify(book_id)
        return reservation

    def pay_fine(self, member_id: int, amount: float) -> Member:
        """
        Record a fine payment.

        Raises:
            CirculationError: MemberNotFound or InvalidPayment.
        """
        with self._transaction(f"Pay fine of {amount:.2f} for member {member_id}"):
            member = self._member(member_id)
            self.eligibility.pay_fine(member, amount)
            self.uow.members.upsert(member)
        return member

    # ------------------------------------------------------------------
    # Catalog and member administration
    # ------------------------------------------------------------------

    def add_book(self, book: Book) -> Book:
        """
        Add a new book to the catalog.

        Raises:
            DuplicateError: A book with the same id exists.
            ValueError: A physical book does not have every copy on the shelf.
        """
        if book.copies is not None and (book.copies.reserved or book.copies.available != book.copies.total):
            raise ValueError("A new physical book must have every copy available")
        with self._transaction(f"Add book {book.id}"):
            self.uow.books.add(book)
        return book

    def register_member(self, member: Member) -> Member:
        """
        Register a new member.

        Raises:
            DuplicateError: A member with the same id exists.
            ValueError: The member's status disagrees with their fines.
        """
        self._check_suspension(member)
        with self._transaction(f"Register member {member.id}"):
            self.uow.members.add(member)
        return member

    def bulk_load(
        self,
        books: Iterable[Book] = (),
        members: Iterable[Member] = (),
        issues: Iterable[IssueRecord] = (),
        reservations: Iterable[Reservation] = (),
    ) -> dict[str, int]:
        """
        Load already-parsed records, replacing any with the same identity.

        Every physical book must satisfy the copy-count equation against the
        loaded issue records and reservations, otherwise nothing is loaded.

        Raises:
            NotFoundError: An issue or reservation references an unknown
                member or book.
            CirculationError: AlreadyIssuedToMember when a member would hold
                two open issues of a book, or an open issue and a reservation.
            ValueError: A member's status disagrees with their fines.
            CopyCountInvariantError: The loaded counters are inconsistent.
        """
        counts = {"books": 0, "members": 0, "issues": 0, "reservations": 0}
        with self._transaction("Bulk load"):
            for book in books:
                self.uow.books.upsert(book)
                counts["books"] += 1
            for member in members:
                self._check_suspension(member)
                self.uow.members.upsert(member)
                counts["members"] += 1
            for issue in issues:
                self.uow.members.get_or_raise(issue.member_id)
                self.uow.books.get_or_raise(issue.book_id)
                self.uow.issues.upsert(issue)
                counts["issues"] += 1
            for reservation in reservations:
                self.uow.members.get_or_raise(reservation.member_id)
                self.uow.books.get_or_raise(reservation.book_id)
                self.uow.reservations.upsert(reservation)
                counts["reservations"] += 1
            self._check_open_loans()
            self.inventory.verify_all()
        logger.info("Bulk loaded %s", counts)
        return counts

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_book(self, book_id: int) -> Book | None:
        with self._lock:
            return self.uow.books.get_by_id(book_id)

    def get_member(self, member_id: int) -> Member | None:
        with self._lock:
            return self.uow.members.get_by_id(member_id)

    def member_history(self, member_id: int) -> list[IssueRecord]:
        """Open and closed issue records of a member, oldest first."""
        with self._lock:
            self._member(member_id)
            return self.uow.issues.for_member(member_id)

    def reservation_queue(self, book_id: int) -> list[Reservation]:
        with self._lock:
            self._book(book_id)
            return self.queue.queue_for(book_id)

    def queue_position(self, member_id: int, book_id: int) -> int | None:
        """1-based place of the member in the book's queue, or None."""
        with self._lock:
            return self.queue.position(member_id, book_id)

    def snapshot(self) -> LibrarySnapshot:
        """Consistent copy of the committed state, for reporting."""
        with self._lock:
            return self.uow.snapshot()

    def close(self) -> None:
        """Release the snapshot store; called on server shutdown."""
        with self._lock:
            self.uow.store.close()


def build_engine(config: CirculationConfig | None = None, **kwargs: Any) -> CirculationEngine:
    """Create an engine over the configured SQLite snapshot store."""
    config = config or get_config()
    policies = PolicyTable.from_config(config)
    store = SqlSnapshotStore(DatabaseManager(config.get_database_url()))
    return CirculationEngine(
        store,
        policies=policies,
        fines=FineCalculator.from_config(config, policies),
        **kwargs,
    )


class _EngineStore:
    """Internal storage for the engine singleton."""

    _instance: CirculationEngine | None = None


def get_engine() -> CirculationEngine:
    """Get or create the global circulation engine."""
    if _EngineStore._instance is None:  # type: ignore[reportPrivateUsage]
        _EngineStore._instance = build_engine()  # type: ignore[reportPrivateUsage]
    return _EngineStore._instance  # type: ignore[reportPrivateUsage]


def set_engine(engine: CirculationEngine | None) -> None:
    """Install an engine as the global instance (useful for testing)."""
    _EngineStore._instance = engine  # type: ignore[reportPrivateUsage]


def reset_engine() -> None:
    set_engine(None)


__all__ = [
    "CirculationEngine",
    "build_engine",
    "get_engine",
    "reset_engine",
    "set_engine",
]
