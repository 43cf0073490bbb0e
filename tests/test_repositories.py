"""Tests for the snapshot repositories, unit of work and SQL snapshot store."""

from datetime import datetime, timedelta

import pytest

from library_circulation.database.repository import (
    BookRepository,
    DuplicateError,
    IssueRepository,
    LibraryUnitOfWork,
    NotFoundError,
    PersistenceError,
)
from library_circulation.database.snapshot_store import (
    InMemorySnapshotStore,
    LibrarySnapshot,
    SqlSnapshotStore,
)
from library_circulation.models import (
    Book,
    BookCategory,
    IssueRecord,
    Member,
    MemberCategory,
    MemberStatus,
    Reservation,
)

NOW = datetime(2024, 3, 1, 10, 0, 0)


def sample_snapshot() -> LibrarySnapshot:
    return LibrarySnapshot(
        books=[
            Book.physical(
                id=10,
                title="Dune",
                author="Frank Herbert",
                total_copies=2,
                publisher="Chilton",
                publication_year=1965,
                category=BookCategory.SCIENCE,
            ),
            Book.digital(id=12, title="Persuasion", author="Jane Austen"),
        ],
        members=[
            Member(
                id=1,
                name="Asha Verma",
                email="asha.verma@example.com",
                category=MemberCategory.STUDENT,
                current_borrowed_books=1,
                membership_date=NOW,
            ),
            Member(
                id=2,
                name="Rahul Iyer",
                category=MemberCategory.FACULTY,
                total_fine_amount=60.0,
                status=MemberStatus.SUSPENDED,
                membership_date=NOW,
            ),
        ],
        issues=[
            IssueRecord(id=1, member_id=1, book_id=10, issue_date=NOW, due_date=NOW + timedelta(days=5)),
            IssueRecord(
                id=2,
                member_id=2,
                book_id=12,
                issue_date=NOW,
                due_date=NOW + timedelta(days=5),
                return_date=NOW + timedelta(days=20),
                fine_amount=10.0,
            ),
        ],
        reservations=[
            Reservation(member_id=2, book_id=10, sequence=1, reserved_at=NOW, holds_copy=False),
        ],
    )


class TestSnapshotRepository:
    def test_staged_changes_visible_before_fold(self):
        repo = BookRepository()
        repo.add(Book.digital(id=1, title="Emma", author="Jane Austen"))

        assert repo.exists(1)
        assert repo.has_changes

        repo.discard()
        assert repo.get_by_id(1) is None

    def test_fold_commits_staged_changes(self):
        repo = BookRepository([Book.digital(id=1, title="Emma", author="Jane Austen")])
        repo.remove(1)
        repo.add(Book.digital(id=2, title="Beloved", author="Toni Morrison"))
        repo.fold()

        assert [book.id for book in repo.list()] == [2]
        assert not repo.has_changes

    def test_reads_return_copies(self):
        repo = BookRepository([Book.digital(id=1, title="Emma", author="Jane Austen")])

        book = repo.get_by_id(1)
        book.title = "Changed"

        assert repo.get_by_id(1).title == "Emma"

    def test_duplicate_and_missing(self):
        repo = BookRepository([Book.digital(id=1, title="Emma", author="Jane Austen")])

        with pytest.raises(DuplicateError):
            repo.add(Book.digital(id=1, title="Emma", author="Jane Austen"))
        with pytest.raises(NotFoundError):
            repo.get_or_raise(2)
        assert repo.remove(2) is None

    def test_issue_queries(self):
        repo = IssueRepository(sample_snapshot().issues)

        assert repo.next_id() == 3
        assert repo.open_issue_for(1, 10).id == 1
        assert repo.open_issue_for(2, 12) is None
        assert [issue.id for issue in repo.open_issues_for_book(10)] == [1]


class TestLibraryUnitOfWork:
    def test_commit_saves_merged_snapshot(self):
        store = InMemorySnapshotStore(sample_snapshot())
        uow = LibraryUnitOfWork(store)

        uow.members.add(Member(id=3, name="Meera Nair"))
        uow.commit()

        assert store.save_count == 1
        assert [m.id for m in store.load().members] == [1, 2, 3]
        assert not uow.has_changes

    def test_commit_without_changes_skips_save(self):
        store = InMemorySnapshotStore()
        LibraryUnitOfWork(store).commit()

        assert store.save_count == 0

    def test_failed_save_discards_staged_changes(self):
        class BrokenStore(InMemorySnapshotStore):
            def save(self, snapshot):
                raise OSError("read-only file system")

        uow = LibraryUnitOfWork(BrokenStore(sample_snapshot()))
        uow.members.add(Member(id=3, name="Meera Nair"))

        with pytest.raises(PersistenceError):
            uow.commit()

        assert uow.members.get_by_id(3) is None
        assert len(uow.members) == 2


class TestSqlSnapshotStore:
    def test_empty_database_loads_empty_snapshot(self, db_manager):
        store = SqlSnapshotStore(db_manager)

        assert store.load().is_empty

    def test_round_trip(self, db_manager):
        store = SqlSnapshotStore(db_manager)
        snapshot = sample_snapshot()

        store.save(snapshot)

        assert store.load() == snapshot

    def test_save_replaces_previous_snapshot(self, db_manager):
        store = SqlSnapshotStore(db_manager)
        store.save(sample_snapshot())

        smaller = LibrarySnapshot(books=[Book.digital(id=99, title="Lolita", author="Vladimir Nabokov")])
        store.save(smaller)

        assert store.load() == smaller

    def test_engine_over_sql_store_survives_restart(self, db_manager):
        from library_circulation.circulation.engine import CirculationEngine

        engine = CirculationEngine(SqlSnapshotStore(db_manager), clock=lambda: NOW)
        engine.register_member(Member(id=1, name="Asha Verma", category=MemberCategory.STUDENT))
        engine.add_book(Book.physical(id=10, title="Dune", author="Frank Herbert", total_copies=1))
        engine.issue_book(1, 10)

        restarted = CirculationEngine(SqlSnapshotStore(db_manager), clock=lambda: NOW)

        assert restarted.get_book(10).copies.available == 0
        assert restarted.get_member(1).current_borrowed_books == 1
        assert restarted.snapshot().issues[0].due_date == NOW + timedelta(days=5)

    def test_closed_store_reopens_on_next_use(self, db_manager):
        store = SqlSnapshotStore(db_manager)
        store.save(sample_snapshot())

        store.close()

        assert store.load() == sample_snapshot()
