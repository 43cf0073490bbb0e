"""
Whole-collection persistence of the circulation ledgers.

The engine never writes single rows. After every committed transaction it
hands the complete state (books, members, issues, reservations) to a
``SnapshotStore``, and it reads the complete state back at startup. The most
recent snapshot written wins.

- ``InMemorySnapshotStore`` keeps the snapshot in memory; used by tests.
- ``SqlSnapshotStore`` rewrites the four SQL tables in one transaction.
"""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field
from sqlalchemy import delete, insert, select

from ..models import Book, CopyCounters, IssueRecord, Member, Reservation
from .schema import Book as BookDB
from .schema import IssueRecord as IssueDB
from .schema import Member as MemberDB
from .schema import Reservation as ReservationDB
from .session import DatabaseManager

logger = logging.getLogger(__name__)


class LibrarySnapshot(BaseModel):
    """The four circulation collections at one point in time."""

    books: list[Book] = Field(default_factory=list)
    members: list[Member] = Field(default_factory=list)
    issues: list[IssueRecord] = Field(default_factory=list)
    reservations: list[Reservation] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.books or self.members or self.issues or self.reservations)


class SnapshotStore(ABC):
    """Load-all / save-all storage of a ``LibrarySnapshot``."""

    @abstractmethod
    def load(self) -> LibrarySnapshot:
        """Return the most recently saved snapshot (empty if none)."""

    @abstractmethod
    def save(self, snapshot: LibrarySnapshot) -> None:
        """Replace the stored snapshot. Must raise on failure."""

    def close(self) -> None:
        """Release any storage handle; the store reopens it on next use."""


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self, snapshot: LibrarySnapshot | None = None):
        self._snapshot = (snapshot or LibrarySnapshot()).model_copy(deep=True)
        self.save_count = 0

    def load(self) -> LibrarySnapshot:
        return self._snapshot.model_copy(deep=True)

    def save(self, snapshot: LibrarySnapshot) -> None:
        self._snapshot = snapshot.model_copy(deep=True)
        self.save_count += 1


class SqlSnapshotStore(SnapshotStore):
    """
    Snapshot store backed by the SQL schema in ``database.schema``.

    ``save`` deletes and reinserts every row inside a single
    ``session_scope()``, so a failed save leaves the previous snapshot intact.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.db_manager.init_database()

    def close(self) -> None:
        self.db_manager.close()

    def load(self) -> LibrarySnapshot:
        with self.db_manager.session_scope() as session:
            books = [_book_from_row(row) for row in session.execute(select(BookDB).order_by(BookDB.id)).scalars()]
            members = [
                Member.model_validate(row, from_attributes=True)
                for row in session.execute(select(MemberDB).order_by(MemberDB.id)).scalars()
            ]
            issues = [
                IssueRecord.model_validate(row, from_attributes=True)
                for row in session.execute(select(IssueDB).order_by(IssueDB.id)).scalars()
            ]
            reservations = [
                Reservation.model_validate(row, from_attributes=True)
                for row in session.execute(
                    select(ReservationDB).order_by(ReservationDB.sequence)
                ).scalars()
            ]

        logger.info(
            "Loaded snapshot: %d books, %d members, %d issues, %d reservations",
            len(books),
            len(members),
            len(issues),
            len(reservations),
        )
        return LibrarySnapshot(books=books, members=members, issues=issues, reservations=reservations)

    def save(self, snapshot: LibrarySnapshot) -> None:
        with self.db_manager.session_scope() as session:
            # Children first on delete, parents first on insert
            for table in (ReservationDB, IssueDB, MemberDB, BookDB):
                session.execute(delete(table))

            rows = [
                (BookDB, [_book_to_row(book) for book in snapshot.books]),
                (MemberDB, [member.model_dump() for member in snapshot.members]),
                (IssueDB, [issue.model_dump() for issue in snapshot.issues]),
                (ReservationDB, [reservation.model_dump() for reservation in snapshot.reservations]),
            ]
            for table, values in rows:
                if values:
                    session.execute(insert(table), values)

        logger.debug("Saved snapshot with %d issues", len(snapshot.issues))


def _book_to_row(book: Book) -> dict:
    row = book.model_dump(exclude={"copies"})
    copies = book.copies
    row["total_copies"] = copies.total if copies else None
    row["available_copies"] = copies.available if copies else None
    row["reserved_copies"] = copies.reserved if copies else None
    return row


def _book_from_row(row: BookDB) -> Book:
    copies = None
    if row.total_copies is not None:
        copies = CopyCounters(
            total=row.total_copies,
            available=row.available_copies or 0,
            reserved=row.reserved_copies or 0,
        )
    return Book(
        id=row.id,
        title=row.title,
        author=row.author,
        publisher=row.publisher,
        publication_year=row.publication_year,
        category=row.category,
        variant=row.variant,
        copies=copies,
    )
