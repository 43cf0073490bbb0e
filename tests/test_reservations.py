"""Tests for the reservation queue."""

from datetime import datetime

import pytest

from library_circulation.circulation.errors import CirculationError, FailureKind
from library_circulation.circulation.reservations import ReservationQueue
from library_circulation.database.repository import ReservationRepository


@pytest.fixture
def queue() -> ReservationQueue:
    return ReservationQueue(ReservationRepository())


class TestReservationQueue:
    def test_fifo_order(self, queue):
        """The earliest reservation of a book comes first."""
        queue.reserve(2, 10, datetime(2024, 3, 1))
        queue.reserve(1, 10, datetime(2024, 3, 2))
        queue.reserve(3, 11, datetime(2024, 2, 1))

        assert queue.first_reservation_for(10).member_id == 2
        assert [r.member_id for r in queue.queue_for(10)] == [2, 1]
        assert queue.position(1, 10) == 2
        assert queue.position(3, 10) is None

    def test_duplicate_reservation(self, queue):
        queue.reserve(1, 10)

        with pytest.raises(CirculationError) as exc_info:
            queue.reserve(1, 10)
        assert exc_info.value.kind == FailureKind.DUPLICATE_RESERVATION

    def test_same_member_different_books(self, queue):
        queue.reserve(1, 10)
        queue.reserve(1, 11)

        assert queue.get(1, 11) is not None

    def test_remove_is_idempotent(self, queue):
        queue.reserve(1, 10)

        assert queue.remove(1, 10).member_id == 1
        assert queue.remove(1, 10) is None
        assert queue.first_reservation_for(10) is None

    def test_first_waiting_without_copy(self, queue):
        queue.reserve(1, 10, holds_copy=True)
        queue.reserve(2, 10)
        queue.reserve(3, 10)

        waiting = queue.first_waiting_without_copy(10)
        assert waiting.member_id == 2

        queue.mark_holding(waiting)
        assert queue.first_waiting_without_copy(10).member_id == 3

    def test_rejoining_goes_to_back_of_queue(self, queue):
        queue.reserve(1, 10)
        queue.remove(1, 10)
        queue.reserve(2, 10)
        queue.reserve(1, 10)

        assert [r.member_id for r in queue.queue_for(10)] == [2, 1]
