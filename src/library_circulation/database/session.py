"""
SQLite session handling for the snapshot store.

Each load or save of the SQL snapshot store opens one short-lived session
from ``session_scope()``: the whole snapshot commits together or not at all.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)


def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Owns the SQLAlchemy engine of one SQLite file.

    The engine is built on first use and disposed by ``close()``; a closed
    manager builds a fresh engine if it is used again.
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or get_config().get_database_url()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            # One shared connection; circulation operations are already serialised
            self._engine = create_engine(
                self.database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
            event.listen(self._engine, "connect", _enable_foreign_keys)
            logger.info("Opened snapshot database %s", self._engine.url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        return self._session_factory

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Run a block in one transaction.

        ```python
        with db_manager.session_scope() as session:
            session.execute(delete(BookDB))
        ```
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            logger.exception("Snapshot transaction failed, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        """Create the snapshot tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        """Dispose of the engine; called on server shutdown."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Closed snapshot database %s", self._engine.url)
        self._engine = None
        self._session_factory = None
