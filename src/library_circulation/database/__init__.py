"""
Persistence layer: SQL schema, sessions, snapshot stores and repositories.
"""

from .repository import (
    DuplicateError,
    LibraryUnitOfWork,
    NotFoundError,
    PersistenceError,
    RepositoryException,
)
from .session import DatabaseManager
from .snapshot_store import (
    InMemorySnapshotStore,
    LibrarySnapshot,
    SnapshotStore,
    SqlSnapshotStore,
)

__all__ = [
    "DatabaseManager",
    "DuplicateError",
    "InMemorySnapshotStore",
    "LibrarySnapshot",
    "LibraryUnitOfWork",
    "NotFoundError",
    "PersistenceError",
    "RepositoryException",
    "SnapshotStore",
    "SqlSnapshotStore",
]
