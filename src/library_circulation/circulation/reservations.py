"""
Reservation queue: per-book FIFO of reservation requests.

The longest-waiting reservation of a book has the exclusive right to borrow
(or keep renewing) it next. Queue order is the reservation ``sequence``,
which survives restarts unlike wall-clock ties.
"""

from datetime import datetime

from ..database.repository import ReservationRepository
from ..models import Reservation
from .errors import CirculationError, FailureKind


class ReservationQueue:
    def __init__(self, reservations: ReservationRepository):
        self.reservations = reservations

    def get(self, member_id: int, book_id: int) -> Reservation | None:
        return self.reservations.get_by_id((member_id, book_id))

    def reserve(
        self,
        member_id: int,
        book_id: int,
        reserved_at: datetime | None = None,
        holds_copy: bool = False,
    ) -> Reservation:
        """Append a reservation to the book's queue."""
        if self.reservations.exists((member_id, book_id)):
            raise CirculationError(
                FailureKind.DUPLICATE_RESERVATION,
                f"Member {member_id} already holds a reservation for book {book_id}",
            )
        reservation = Reservation(
            member_id=member_id,
            book_id=book_id,
            sequence=self.reservations.next_sequence(),
            reserved_at=reserved_at or datetime.now(),
            holds_copy=holds_copy,
        )
        self.reservations.add(reservation)
        return reservation

    def queue_for(self, book_id: int) -> list[Reservation]:
        return self.reservations.for_book(book_id)

    def first_reservation_for(self, book_id: int) -> Reservation | None:
        queue = self.queue_for(book_id)
        return queue[0] if queue else None

    def first_waiting_without_copy(self, book_id: int) -> Reservation | None:
        """Earliest reservation of the book that has no copy set aside yet."""
        for reservation in self.queue_for(book_id):
            if not reservation.holds_copy:
                return reservation
        return None

    def position(self, member_id: int, book_id: int) -> int | None:
        """1-based queue position, or None when the member has no reservation."""
        for index, reservation in enumerate(self.queue_for(book_id), start=1):
            if reservation.member_id == member_id:
                return index
        return None

    def mark_holding(self, reservation: Reservation) -> Reservation:
        reservation.holds_copy = True
        self.reservations.upsert(reservation)
        return reservation

    def remove(self, member_id: int, book_id: int) -> Reservation | None:
        """Delete a reservation; returns it, or None when there was none."""
        return self.reservations.remove((member_id, book_id))
