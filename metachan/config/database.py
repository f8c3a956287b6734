"""Database Configuration for Metachan."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from types import TracebackType

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from metachan.config.settings import get_config
from metachan.exceptions import DataPathError

__all__ = ["MetachanDB", "db"]

SQLITE_PRAGMAS = (
    "journal_mode=WAL",
    "synchronous=NORMAL",
    "temp_store=MEMORY",
    "cache_size=-20000",
)


class MetachanDB:
    """Database manager for the Metachan application.

    Creates the SQLite database inside the data directory and makes sure every
    table declared by the models exists. Can be used as a context manager to
    automatically close the database session.
    """

    def __init__(self, data_path: Path) -> None:
        """Initializes the database manager.

        Args:
            data_path (Path): Directory where the database should be stored

        Raises:
            DataPathError: If data_path exists but is a file instead of a directory
        """
        self.data_path = data_path
        self.db_path = data_path / "metachan.db"

        self.engine = self._setup_db()
        self._SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        self._session: Session | None = None
        self._create_tables()

    def _setup_db(self) -> Engine:
        """Creates the SQLite engine, validating the data directory first.

        Returns:
            Engine: Configured SQLAlchemy engine instance

        Raises:
            DataPathError: If data_path exists but is a file instead of a directory
        """
        if not self.data_path.exists():
            self.data_path.mkdir(parents=True, exist_ok=True)
        elif self.data_path.is_file():
            raise DataPathError(
                f"{self.__class__.__name__}: The path '{self.data_path}' is a file, "
                "please delete it first or choose a different data folder path",
            )

        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            future=True,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            cur = dbapi_connection.cursor()
            try:
                for pragma in SQLITE_PRAGMAS:
                    cur.execute(f"PRAGMA {pragma};")
            finally:
                cur.close()

        return engine

    def _create_tables(self) -> None:
        """Registers the models with SQLAlchemy and creates missing tables."""
        from metachan.models.db import Base

        Base.metadata.create_all(self.engine)

    def __enter__(self) -> MetachanDB:
        """Enters the context manager, returning the database instance."""
        self._session = self._SessionLocal()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the session opened for this context, if any."""
        if self._session is not None:
            self._session.close()
            self._session = None

    @property
    def session(self) -> Session:
        """Return the current SQLAlchemy session, creating it if needed."""
        if self._session is None:
            self._session = self._SessionLocal()
        return self._session


@lru_cache(maxsize=1)
def db() -> MetachanDB:
    """Get the singleton database manager for the configured data path.

    Returns:
        MetachanDB: The database manager instance.
    """
    return MetachanDB(get_config().data_path)
