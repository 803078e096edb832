"""Circulation core for the school library.

Provides functionality for:
- Catalog titles and their physical copy codes
- Student and staff borrower registries
- Copy availability across the student and staff loan ledgers
- Checkout, return, cancellation and renewal of loans
- Overdue notification feed
"""

from schoolib import __version__

__all__ = ["__version__"]
