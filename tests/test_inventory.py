"""Tests for the inventory ledger and the copy-count equation."""

from datetime import datetime, timedelta

import pytest

from library_circulation.circulation.errors import (
    CirculationError,
    CopyCountInvariantError,
    FailureKind,
)
from library_circulation.circulation.inventory import InventoryLedger
from library_circulation.database.repository import (
    BookRepository,
    IssueRepository,
    ReservationRepository,
)
from library_circulation.models import Book, CopyCounters, IssueRecord, Reservation

NOW = datetime(2024, 3, 1, 10, 0, 0)


@pytest.fixture
def ledger() -> InventoryLedger:
    books = BookRepository(
        [
            Book.physical(id=10, title="Dune", author="Frank Herbert", total_copies=2),
            Book.digital(id=12, title="Persuasion", author="Jane Austen"),
        ]
    )
    return InventoryLedger(books, IssueRepository(), ReservationRepository())


def _book(ledger: InventoryLedger, book_id: int = 10) -> Book:
    return ledger.books.get_by_id(book_id)


class TestPhysicalCopies:
    def test_reserve_moves_copy_to_reserved(self, ledger):
        book = ledger.reserve_one_copy(_book(ledger))

        assert book.copies == CopyCounters(total=2, available=1, reserved=1)
        assert _book(ledger).copies == book.copies

    def test_reserve_without_available_copy_fails(self, ledger):
        ledger.reserve_one_copy(_book(ledger))
        ledger.reserve_one_copy(_book(ledger))

        with pytest.raises(CirculationError) as exc_info:
            ledger.reserve_one_copy(_book(ledger))
        assert exc_info.value.kind == FailureKind.NO_COPY_AVAILABLE

    def test_issue_from_shelf(self, ledger):
        book = ledger.issue_one_copy(_book(ledger), was_reserved=False)
        assert book.copies == CopyCounters(total=2, available=1, reserved=0)

    def test_issue_reserved_copy_only_converts_reserved(self, ledger):
        ledger.reserve_one_copy(_book(ledger))
        book = ledger.issue_one_copy(_book(ledger), was_reserved=True)

        assert book.copies == CopyCounters(total=2, available=1, reserved=0)

    def test_issue_without_copy_fails(self, ledger):
        ledger.issue_one_copy(_book(ledger), was_reserved=False)
        ledger.issue_one_copy(_book(ledger), was_reserved=False)

        assert not ledger.can_issue(_book(ledger), was_reserved=False)
        with pytest.raises(CirculationError) as exc_info:
            ledger.issue_one_copy(_book(ledger), was_reserved=False)
        assert exc_info.value.kind == FailureKind.NO_COPY_AVAILABLE

    def test_return_and_cancel(self, ledger):
        ledger.issue_one_copy(_book(ledger), was_reserved=False)
        ledger.reserve_one_copy(_book(ledger))

        book = ledger.return_one_copy(_book(ledger))
        assert book.copies == CopyCounters(total=2, available=1, reserved=1)

        book = ledger.cancel_reservation(_book(ledger))
        assert book.copies == CopyCounters(total=2, available=2, reserved=0)

    def test_return_beyond_total_is_programming_error(self, ledger):
        with pytest.raises(CopyCountInvariantError):
            ledger.return_one_copy(_book(ledger))

    def test_cancel_without_reserved_copy_is_programming_error(self, ledger):
        with pytest.raises(CopyCountInvariantError):
            ledger.cancel_reservation(_book(ledger))

    def test_counters_are_replaced_not_mutated(self, ledger):
        book = _book(ledger)
        before = book.copies
        ledger.issue_one_copy(book, was_reserved=False)

        assert book.copies is not before
        assert before == CopyCounters(total=2, available=2, reserved=0)


class TestDigitalCopies:
    def test_operations_are_noops(self, ledger):
        book = _book(ledger, 12)

        assert ledger.has_free_copy(book)
        assert ledger.can_issue(book, was_reserved=False)
        assert ledger.reserve_one_copy(book).copies is None
        assert ledger.issue_one_copy(book, was_reserved=True).copies is None
        assert ledger.return_one_copy(book).copies is None
        assert ledger.cancel_reservation(book).copies is None
        ledger.verify(12)


class TestVerify:
    def test_consistent_counters(self, ledger):
        ledger.issue_one_copy(_book(ledger), was_reserved=False)
        ledger.issues.add(
            IssueRecord(id=1, member_id=1, book_id=10, issue_date=NOW, due_date=NOW + timedelta(days=5))
        )
        ledger.verify(10)

    def test_missing_issue_record_detected(self, ledger):
        ledger.issue_one_copy(_book(ledger), was_reserved=False)

        with pytest.raises(CopyCountInvariantError):
            ledger.verify(10)

    def test_reserved_bucket_must_match_holding_reservations(self, ledger):
        ledger.reserve_one_copy(_book(ledger))
        with pytest.raises(CopyCountInvariantError):
            ledger.verify(10)

        ledger.reservations.add(Reservation(member_id=1, book_id=10, sequence=1, holds_copy=True))
        ledger.verify(10)
