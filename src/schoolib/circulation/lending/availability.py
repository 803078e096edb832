"""Copy availability.

Availability is never stored. Every call reads the title's code manifest
and the open loans of both ledgers and subtracts one from the other, so
the answer cannot drift from ledger state.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select

from ..catalog.codes import CodeSet
from ..catalog.models import Title
from ..catalog.schemas import TitleAvailability
from ..db.sqlite import Database, get_db
from ..errors import TitleNotFound
from .ledger import Ledgers
from .schemas import LoanRecord

logger = logging.getLogger(__name__)


@dataclass
class IntegrityIssue:
    """Loan data that breaks an availability invariant."""

    title_id: str
    code: Optional[str]
    message: str
    loan_ids: list[str] = field(default_factory=list)
    severity: str = "warning"


@dataclass
class AvailabilitySnapshot:
    """Derived availability of one title at the moment it was computed."""

    title_id: str
    codes: CodeSet
    available_codes: set[str]
    holders: dict[str, LoanRecord] = field(default_factory=dict)
    issues: list[IntegrityIssue] = field(default_factory=list)

    @property
    def held_codes(self) -> set[str]:
        return set(self.holders)

    def first_available(self) -> Optional[str]:
        """Lexicographically smallest free code."""
        return min(self.available_codes) if self.available_codes else None


class AvailabilityResolver:
    """Computes which copies of a title are not on loan."""

    def __init__(self, db: Optional[Database] = None, ledgers: Optional[Ledgers] = None):
        """Initialize resolver.

        Args:
            db: Database instance
            ledgers: Ledgers to read (built from ``db`` if not given)
        """
        self.db = db or get_db()
        self.ledgers = ledgers or Ledgers(self.db)

    def compute_available(self, title_id: str) -> set[str]:
        """Codes of ``title_id`` with no open loan in any ledger."""
        return self.resolve(title_id).available_codes

    def resolve(self, title_id: str) -> AvailabilitySnapshot:
        """Full availability snapshot for a title.

        Raises:
            TitleNotFound: if the title does not exist
        """
        codes = self._codes_for(title_id)
        open_loans = self.ledgers.open_loans(title_id=title_id)
        return self._snapshot(title_id, codes, open_loans)

    def list_checkout_eligible(self) -> list[TitleAvailability]:
        """Titles with at least one free copy, ordered by name."""
        with self.db.get_session() as session:
            titles = session.execute(select(Title).order_by(Title.name)).scalars().all()
            entries = [(t.id, t.name, t.author, t.get_codes()) for t in titles]

        eligible = []
        for title_id, name, author, codes in entries:
            if not len(codes):
                continue
            snapshot = self._snapshot(
                title_id, codes, self.ledgers.open_loans(title_id=title_id)
            )
            if snapshot.available_codes:
                eligible.append(
                    TitleAvailability(
                        id=title_id,
                        name=name,
                        author=author,
                        total_codes=len(codes),
                        available_codes=sorted(snapshot.available_codes),
                    )
                )
        return eligible

    def _codes_for(self, title_id: str) -> CodeSet:
        with self.db.get_session() as session:
            title = session.get(Title, title_id)
            if title is None:
                raise TitleNotFound(title_id)
            return title.get_codes()

    def _snapshot(
        self,
        title_id: str,
        codes: CodeSet,
        open_loans: list[LoanRecord],
    ) -> AvailabilitySnapshot:
        snapshot = AvailabilitySnapshot(
            title_id=title_id,
            codes=codes,
            available_codes=set(),
        )

        by_code: dict[str, list[LoanRecord]] = {}
        for loan in open_loans:
            if not loan.copy_code:
                snapshot.issues.append(
                    IntegrityIssue(
                        title_id=title_id,
                        code=None,
                        message="Open loan has no copy code and holds no specific copy",
                        loan_ids=[loan.id],
                        severity="info",
                    )
                )
                continue
            by_code.setdefault(loan.copy_code, []).append(loan)

        for code, loans in by_code.items():
            loans.sort(key=lambda l: l.opened_at)
            snapshot.holders[code] = loans[-1]
            if len(loans) > 1:
                stale = [l.id for l in loans[:-1]]
                logger.warning(
                    "Copy %s of title %s has %d open loans; ignoring older loans %s",
                    code,
                    title_id,
                    len(loans),
                    ", ".join(stale),
                )
                snapshot.issues.append(
                    IntegrityIssue(
                        title_id=title_id,
                        code=code,
                        message=f"{len(loans)} open loans for one copy",
                        loan_ids=stale,
                    )
                )

        snapshot.available_codes = codes.without(snapshot.holders)
        return snapshot
