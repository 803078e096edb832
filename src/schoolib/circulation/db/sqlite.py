"""SQLite record store: engine setup and short-lived sessions.

Every manager opens its own session per call; nothing in the circulation
core holds a session across two store operations.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

MEMORY = ":memory:"


def default_db_path() -> str:
    """Database location from ``SCHOOLIB_DB_PATH`` or the per-user default."""
    return os.environ.get(
        "SCHOOLIB_DB_PATH",
        str(Path.home() / ".schoolib" / "library.db"),
    )


class Database:
    """Owns the engine and hands out sessions."""

    def __init__(self, db_path: Optional[str] = None):
        """Open (or create) a library database.

        Args:
            db_path: SQLite file path, or ``":memory:"``. Defaults to
                     ``default_db_path()``.
        """
        db_path = str(db_path) if db_path is not None else default_db_path()
        self.is_memory = db_path == MEMORY
        self.db_path = Path(db_path)

        self.engine = self._build_engine()
        event.listen(self.engine, "connect", self._on_connect)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def _build_engine(self) -> Engine:
        if self.is_memory:
            # One shared connection, otherwise each session sees an empty database
            return create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    def _on_connect(self, dbapi_connection, connection_record) -> None:
        if self.is_memory:
            return
        # Readers keep going while a checkout writes
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    def create_tables(self) -> None:
        """Create every table the circulation core uses."""
        # Model modules register themselves on Base when imported
        from ..catalog import models as catalog_models  # noqa: F401
        from ..lending import models as lending_models  # noqa: F401
        from ..notifications import models as notification_models  # noqa: F401
        from ..registry import models as registry_models  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop every table. Test and reset use only."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Process-wide database used by the CLI
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Return the shared database, creating it and its tables on first use."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Forget the shared database. Used by tests."""
    global _db
    if _db is not None:
        _db.engine.dispose()
    _db = None
