"""Catalog manager for titles and copy codes."""

from typing import Optional

from sqlalchemy import func, select

from ..db.sqlite import Database, get_db
from ..errors import InUseError, TitleNotFound
from ..lending.locks import TitleLockTable, get_title_locks
from .codes import CodeSet, next_generated_codes, normalize_code
from .models import Title
from .schemas import TitleCreate, TitleUpdate


class CatalogManager:
    """Manages catalog titles and their copy code manifests."""

    def __init__(self, db: Optional[Database] = None, locks: Optional[TitleLockTable] = None):
        """Initialize catalog manager.

        Args:
            db: Database instance
            locks: Lock table shared with checkout (process-wide table if not provided)
        """
        self.db = db or get_db()
        self.locks = locks or get_title_locks()

    # -------------------------------------------------------------------------
    # Titles
    # -------------------------------------------------------------------------

    def create_title(self, data: TitleCreate) -> Title:
        """Create a catalog title.

        Args:
            data: Title creation data

        Returns:
            Created title
        """
        with self.db.get_session() as session:
            title = Title(name=data.name, author=data.author)
            title.set_codes(CodeSet(data.codes))
            session.add(title)
            session.commit()
            session.refresh(title)
            session.expunge(title)
            return title

    def get_title(self, title_id: str) -> Optional[Title]:
        """Get a title by ID."""
        with self.db.get_session() as session:
            title = session.get(Title, title_id)
            if title:
                session.expunge(title)
            return title

    def require_title(self, title_id: str) -> Title:
        """Like ``get_title`` but raises ``TitleNotFound``."""
        title = self.get_title(title_id)
        if title is None:
            raise TitleNotFound(title_id)
        return title

    def search_titles(self, query: str, limit: int = 20) -> list[Title]:
        """Search titles by name or author."""
        pattern = f"%{query}%"
        with self.db.get_session() as session:
            stmt = (
                select(Title)
                .where((Title.name.ilike(pattern)) | (Title.author.ilike(pattern)))
                .order_by(Title.name)
                .limit(limit)
            )
            titles = session.execute(stmt).scalars().all()
            for t in titles:
                session.expunge(t)
            return list(titles)

    def list_titles(self) -> list[Title]:
        """List all titles by name."""
        with self.db.get_session() as session:
            titles = session.execute(select(Title).order_by(func.lower(Title.name))).scalars().all()
            for t in titles:
                session.expunge(t)
            return list(titles)

    def update_title(self, title_id: str, data: TitleUpdate) -> Optional[Title]:
        """Update a title's details. Returns None if not found."""
        with self.db.get_session() as session:
            title = session.get(Title, title_id)
            if not title:
                return None

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(title, field, value)

            session.commit()
            session.refresh(title)
            session.expunge(title)
            return title

    # -------------------------------------------------------------------------
    # Copy codes
    # -------------------------------------------------------------------------

    def add_code(self, title_id: str, code: str) -> CodeSet:
        """Add a copy code to a title.

        Raises:
            TitleNotFound: if the title does not exist
            ValueError: if the code is empty or already present
        """
        with self.locks.hold(title_id):
            with self.db.get_session() as session:
                title = self._load(session, title_id)
                codes = title.get_codes().add(code)
                title.set_codes(codes)
                return codes

    def generate_codes(self, title_id: str, count: int = 1, prefix: Optional[str] = None) -> list[str]:
        """Add ``count`` system-generated codes to a title.

        Returns:
            The new codes
        """
        with self.locks.hold(title_id):
            with self.db.get_session() as session:
                title = self._load(session, title_id)
                codes = title.get_codes()
                new_codes = next_generated_codes(codes, prefix or title.id[:8].upper(), count)
                for code in new_codes:
                    codes = codes.add(code)
                title.set_codes(codes)
                return new_codes

    def remove_code(self, title_id: str, code: str) -> CodeSet:
        """Remove a copy code from a title.

        Raises:
            TitleNotFound: if the title does not exist
            InUseError: if an open loan in either ledger holds the copy
            ValueError: if the title has no such code
        """
        from ..lending.ledger import Ledgers

        code = normalize_code(code)
        ledgers = Ledgers(self.db)

        # Same lock as checkout, so the copy cannot be lent mid-removal
        with self.locks.hold(title_id):
            if any(ledger.is_code_held(title_id, code) for ledger in ledgers):
                raise InUseError(title_id, code)

            with self.db.get_session() as session:
                title = self._load(session, title_id)
                codes = title.get_codes().remove(code)
                title.set_codes(codes)
                return codes

    def _load(self, session, title_id: str) -> Title:
        title = session.get(Title, title_id)
        if title is None:
            raise TitleNotFound(title_id)
        return title
