"""Per-title checkout locks.

The record store cannot commit a read and a dependent write atomically,
so checkouts of the same title are serialized in-process. Titles never
share a lock, so checkouts of different titles run in parallel.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ..errors import CheckoutTimeout

logger = logging.getLogger(__name__)


class TitleLockTable:
    """Lazily created mutex per title ID."""

    def __init__(self):
        self._guard = threading.Lock()
        # Never pruned; one entry per title ever locked, so bounded by the catalog
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, title_id: str) -> threading.Lock:
        """Get (creating if needed) the lock for a title."""
        with self._guard:
            lock = self._locks.get(title_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[title_id] = lock
            return lock

    @contextmanager
    def hold(self, title_id: str, timeout: Optional[float] = None) -> Generator[None, None, None]:
        """Hold the title's lock for the duration of the block.

        Raises:
            CheckoutTimeout: if the lock is not acquired within ``timeout``
        """
        lock = self.lock_for(title_id)
        acquired = lock.acquire(timeout=timeout if timeout is not None else -1)
        if not acquired:
            logger.warning("Gave up waiting %.1fs for checkout lock on title %s", timeout, title_id)
            raise CheckoutTimeout(title_id, timeout or 0.0)
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every coordinator in the process
_default_locks = TitleLockTable()


def get_title_locks() -> TitleLockTable:
    """Process-wide lock table."""
    return _default_locks
