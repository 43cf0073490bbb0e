"""
Repositories over the circulation snapshot.

Each entity collection (books, members, issues, reservations) lives in a
repository that keeps two layers:

1. committed state, as last written by the snapshot store
2. staged upserts and removals of the transaction in progress

Reads see staged changes first. ``LibraryUnitOfWork.commit()`` writes the
merged state of all four repositories as one snapshot and only then folds
the staged changes into committed state; if the write fails every staged
change is discarded and ``PersistenceError`` is raised. This way the engine
composes the four collections into a single logical transaction.

All models handed out or taken in are deep copies, so a caller mutating a
model cannot change committed state behind the repository's back.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable
from typing import Generic, TypeVar

from pydantic import BaseModel

from ..models import Book, IssueRecord, Member, Reservation
from .snapshot_store import LibrarySnapshot, SnapshotStore

logger = logging.getLogger(__name__)

KeyType = TypeVar("KeyType", bound=Hashable)
ModelType = TypeVar("ModelType", bound=BaseModel)


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when attempting to create a duplicate entity."""


class PersistenceError(RepositoryException):
    """Raised when a transaction could not be written to the snapshot store."""


_REMOVED = None


class SnapshotRepository(ABC, Generic[KeyType, ModelType]):
    """Keyed collection with committed and staged layers."""

    entity_name = "Entity"

    def __init__(self, items: Iterable[ModelType] = ()):
        self._committed: dict[KeyType, ModelType] = {}
        for item in items:
            self._committed[self.key_of(item)] = item.model_copy(deep=True)
        self._staged: dict[KeyType, ModelType | None] = {}

    @abstractmethod
    def key_of(self, item: ModelType) -> KeyType:
        """Return the identity of ``item``."""

    def _current(self, key: KeyType) -> ModelType | None:
        if key in self._staged:
            return self._staged[key]
        return self._committed.get(key)

    def get_by_id(self, key: KeyType) -> ModelType | None:
        item = self._current(key)
        return item.model_copy(deep=True) if item is not None else None

    def get_or_raise(self, key: KeyType) -> ModelType:
        item = self.get_by_id(key)
        if item is None:
            raise NotFoundError(f"{self.entity_name} {key} not found")
        return item

    def exists(self, key: KeyType) -> bool:
        return self._current(key) is not None

    def add(self, item: ModelType) -> ModelType:
        key = self.key_of(item)
        if self.exists(key):
            raise DuplicateError(f"{self.entity_name} {key} already exists")
        return self.upsert(item)

    def upsert(self, item: ModelType) -> ModelType:
        self._staged[self.key_of(item)] = item.model_copy(deep=True)
        return item

    def remove(self, key: KeyType) -> ModelType | None:
        """Stage a removal. Removing a missing key is a no-op."""
        current = self.get_by_id(key)
        if current is not None:
            self._staged[key] = _REMOVED
        return current

    def list(self) -> list[ModelType]:
        merged = dict(self._committed)
        for key, item in self._staged.items():
            if item is _REMOVED:
                merged.pop(key, None)
            else:
                merged[key] = item
        return [item.model_copy(deep=True) for item in merged.values()]

    def __len__(self) -> int:
        return len(self.list())

    @property
    def has_changes(self) -> bool:
        return bool(self._staged)

    def fold(self) -> None:
        """Make the staged changes committed state."""
        for key, item in self._staged.items():
            if item is _REMOVED:
                self._committed.pop(key, None)
            else:
                self._committed[key] = item
        self._staged.clear()

    def discard(self) -> None:
        self._staged.clear()


class BookRepository(SnapshotRepository[int, Book]):
    entity_name = "Book"

    def key_of(self, item: Book) -> int:
        return item.id


class MemberRepository(SnapshotRepository[int, Member]):
    entity_name = "Member"

    def key_of(self, item: Member) -> int:
        return item.id


class IssueRepository(SnapshotRepository[int, IssueRecord]):
    entity_name = "Issue record"

    def key_of(self, item: IssueRecord) -> int:
        return item.id

    def next_id(self) -> int:
        ids = [issue.id for issue in self.list()]
        return max(ids, default=0) + 1

    def open_issue_for(self, member_id: int, book_id: int) -> IssueRecord | None:
        for issue in self.list():
            if issue.is_open and issue.member_id == member_id and issue.book_id == book_id:
                return issue
        return None

    def open_issues_for_book(self, book_id: int) -> list[IssueRecord]:
        return [issue for issue in self.list() if issue.is_open and issue.book_id == book_id]

    def for_member(self, member_id: int) -> list[IssueRecord]:
        issues = [issue for issue in self.list() if issue.member_id == member_id]
        return sorted(issues, key=lambda issue: (issue.issue_date, issue.id))


class ReservationRepository(SnapshotRepository[tuple[int, int], Reservation]):
    entity_name = "Reservation"

    def key_of(self, item: Reservation) -> tuple[int, int]:
        return item.key

    def next_sequence(self) -> int:
        sequences = [reservation.sequence for reservation in self.list()]
        return max(sequences, default=0) + 1

    def for_book(self, book_id: int) -> list[Reservation]:
        """Reservations of a book in queue order."""
        reservations = [r for r in self.list() if r.book_id == book_id]
        return sorted(reservations, key=lambda r: r.sequence)


class LibraryUnitOfWork:
    """
    Groups the four repositories into one transaction over a snapshot store.

    Example:
        ```python
        uow = LibraryUnitOfWork(InMemorySnapshotStore())
        uow.books.add(book)
        uow.members.add(member)
        uow.commit()
        ```
    """

    def __init__(self, store: SnapshotStore):
        self.store = store
        snapshot = store.load()
        self.books = BookRepository(snapshot.books)
        self.members = MemberRepository(snapshot.members)
        self.issues = IssueRepository(snapshot.issues)
        self.reservations = ReservationRepository(snapshot.reservations)

    @property
    def repositories(self) -> tuple[SnapshotRepository, ...]:
        return (self.books, self.members, self.issues, self.reservations)

    @property
    def has_changes(self) -> bool:
        return any(repo.has_changes for repo in self.repositories)

    def snapshot(self) -> LibrarySnapshot:
        """Merged view of committed and staged state."""
        return LibrarySnapshot(
            books=self.books.list(),
            members=self.members.list(),
            issues=self.issues.list(),
            reservations=self.reservations.list(),
        )

    def commit(self) -> None:
        """
        Persist the merged state, then make it committed.

        Raises:
            PersistenceError: The store rejected the snapshot. All staged
                changes have been discarded.
        """
        if not self.has_changes:
            return

        try:
            self.store.save(self.snapshot())
        except Exception as e:
            logger.exception("Snapshot write failed, discarding staged changes")
            self.rollback()
            raise PersistenceError(f"Failed to persist library snapshot: {e!s}") from e

        for repo in self.repositories:
            repo.fold()

    def rollback(self) -> None:
        for repo in self.repositories:
            repo.discard()
