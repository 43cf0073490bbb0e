"""
Inventory ledger: copy counters of physical books.

This is the only place that reads a book's variant. For physical books the
counters move between three buckets,

    total == available + reserved + (open issues of the book)

and every operation keeps that equation exact. Digital books have no
counters: every operation on them succeeds without doing anything.

Counters are never edited in place; each operation replaces a book's
``CopyCounters`` with a new instance and stages the book in the repository.
"""

import logging

from ..database.repository import BookRepository, IssueRepository, ReservationRepository
from ..models import Book, CopyCounters
from .errors import CirculationError, CopyCountInvariantError, FailureKind

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(
        self,
        books: BookRepository,
        issues: IssueRepository,
        reservations: ReservationRepository,
    ):
        self.books = books
        self.issues = issues
        self.reservations = reservations

    def has_free_copy(self, book: Book) -> bool:
        """Whether a copy is on the shelf and not held for anyone."""
        return book.is_available

    def can_issue(self, book: Book, was_reserved: bool) -> bool:
        if not book.has_finite_copies:
            return True
        if was_reserved:
            return book.copies.reserved > 0
        return book.copies.available > 0

    def reserve_one_copy(self, book: Book) -> Book:
        """Move one copy from the shelf to the reserved bucket."""
        if not book.has_finite_copies:
            return book
        copies = book.copies
        if copies.available <= 0:
            raise CirculationError(
                FailureKind.NO_COPY_AVAILABLE, f"No copy of book {book.id} is available to hold"
            )
        return self._replace(
            book,
            CopyCounters(total=copies.total, available=copies.available - 1, reserved=copies.reserved + 1),
        )

    def issue_one_copy(self, book: Book, was_reserved: bool) -> Book:
        """
        Hand one copy to a borrower.

        With ``was_reserved`` the copy comes out of the reserved bucket (the
        copy held for the borrower's reservation), otherwise off the shelf.
        """
        if not book.has_finite_copies:
            return book
        if not self.can_issue(book, was_reserved):
            raise CirculationError(
                FailureKind.NO_COPY_AVAILABLE, f"No copy of book {book.id} is available"
            )
        copies = book.copies
        if was_reserved:
            counters = CopyCounters(total=copies.total, available=copies.available, reserved=copies.reserved - 1)
        else:
            counters = CopyCounters(total=copies.total, available=copies.available - 1, reserved=copies.reserved)
        return self._replace(book, counters)

    def return_one_copy(self, book: Book) -> Book:
        if not book.has_finite_copies:
            return book
        copies = book.copies
        if copies.on_shelf_or_held >= copies.total:
            raise CopyCountInvariantError(
                f"Book {book.id}: returned copy would exceed {copies.total} total copies"
            )
        return self._replace(
            book,
            CopyCounters(total=copies.total, available=copies.available + 1, reserved=copies.reserved),
        )

    def cancel_reservation(self, book: Book) -> Book:
        """Put a held copy back on the shelf."""
        if not book.has_finite_copies:
            return book
        copies = book.copies
        if copies.reserved <= 0:
            raise CopyCountInvariantError(f"Book {book.id}: no reserved copy to release")
        return self._replace(
            book,
            CopyCounters(total=copies.total, available=copies.available + 1, reserved=copies.reserved - 1),
        )

    def verify(self, book_id: int) -> None:
        """
        Check the copy-count equation of one book against the issue records.

        Also checks that the reserved bucket matches the reservations holding
        a copy.

        Raises:
            CopyCountInvariantError: The counters drifted.
        """
        book = self.books.get_by_id(book_id)
        if book is None or not book.has_finite_copies:
            return
        copies = book.copies
        issued = len(self.issues.open_issues_for_book(book_id))
        if copies.total != copies.on_shelf_or_held + issued:
            raise CopyCountInvariantError(
                f"Book {book_id}: total={copies.total} but available={copies.available}, "
                f"reserved={copies.reserved}, issued={issued}"
            )
        holding = sum(1 for r in self.reservations.for_book(book_id) if r.holds_copy)
        if copies.reserved != holding:
            raise CopyCountInvariantError(
                f"Book {book_id}: reserved={copies.reserved} but {holding} reservations hold a copy"
            )

    def verify_all(self) -> None:
        for book in self.books.list():
            self.verify(book.id)

    def _replace(self, book: Book, counters: CopyCounters) -> Book:
        book.copies = counters
        self.books.upsert(book)
        logger.debug(
            "Book %d copies: available=%d reserved=%d total=%d",
            book.id,
            counters.available,
            counters.reserved,
            counters.total,
        )
        return book
