"""Test configuration and fixtures for the Library Circulation server.

Engines run over an in-memory snapshot store and a controllable clock, so
every test starts from the same small library and can move time forward to
make books overdue.
"""

from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from library_circulation.circulation.engine import CirculationEngine, reset_engine, set_engine
from library_circulation.config import CirculationConfig, reset_config
from library_circulation.database.session import DatabaseManager
from library_circulation.database.snapshot_store import InMemorySnapshotStore
from library_circulation.models import Book, Member, MemberCategory

START = datetime(2024, 3, 1, 10, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now


@pytest.fixture(autouse=True)
def isolate_singletons() -> Generator[None, None, None]:
    """Make sure no test leaks a global config or engine into the next."""
    reset_config()
    reset_engine()
    yield
    reset_engine()
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def engine(store: InMemorySnapshotStore, clock: FakeClock) -> CirculationEngine:
    return CirculationEngine(store, clock=clock)


@pytest.fixture
def library(engine: CirculationEngine) -> CirculationEngine:
    """Engine seeded with four members and three books.

    Members: 1 student, 2 faculty, 3 regular, 4 student.
    Books: 10 physical (2 copies), 11 physical (1 copy), 12 digital.
    """
    engine.register_member(Member(id=1, name="Asha Verma", category=MemberCategory.STUDENT))
    engine.register_member(Member(id=2, name="Rahul Iyer", category=MemberCategory.FACULTY))
    engine.register_member(Member(id=3, name="Meera Nair", category=MemberCategory.REGULAR))
    engine.register_member(Member(id=4, name="Kabir Shah", category=MemberCategory.STUDENT))
    engine.add_book(Book.physical(id=10, title="Dune", author="Frank Herbert", total_copies=2))
    engine.add_book(Book.physical(id=11, title="Emma", author="Jane Austen", total_copies=1))
    engine.add_book(Book.digital(id=12, title="Persuasion", author="Jane Austen"))
    return engine


@pytest.fixture
def installed_engine(library: CirculationEngine) -> CirculationEngine:
    """The seeded engine installed as the global instance used by tools and resources."""
    set_engine(library)
    return library


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "circulation.db"


@pytest.fixture
def db_manager(test_db_path: Path) -> Generator[DatabaseManager, None, None]:
    manager = DatabaseManager(f"sqlite:///{test_db_path}")
    yield manager
    manager.close()


@pytest.fixture
def test_config(test_db_path: Path) -> CirculationConfig:
    return CirculationConfig(
        server_name="test-library-circulation",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
    )
