"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the circulation core,
including test databases, registered borrowers and catalog titles.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from schoolib.circulation.catalog import CatalogManager, TitleCreate
from schoolib.circulation.config import Config, reset_config
from schoolib.circulation.db.sqlite import Database, reset_db
from schoolib.circulation.lending import TitleLockTable
from schoolib.circulation.registry import RegistryManager, StaffCreate, StudentCreate


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def db() -> Database:
    """Create an in-memory database for testing."""
    reset_db()
    reset_config()
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def file_db(temp_db_path: Path) -> Database:
    """Create a file-backed database, needed when several threads write."""
    database = Database(str(temp_db_path))
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def config(temp_db_path: Path) -> Config:
    """Configuration with default loan policy."""
    return Config(
        db_path=temp_db_path,
        loan_duration_days=30,
        max_loans_per_borrower=3,
        enable_notifications=True,
        overdue_severe_days=7,
        checkout_lock_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def locks() -> TitleLockTable:
    """A lock table private to the test."""
    return TitleLockTable()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def registry(db: Database) -> RegistryManager:
    return RegistryManager(db)


@pytest.fixture
def catalog(db: Database) -> CatalogManager:
    return CatalogManager(db)


@pytest.fixture
def student(registry: RegistryManager):
    """A registered student."""
    return registry.create_student(StudentCreate(name="Maya Patel", class_name="5B"))


@pytest.fixture
def staff_member(registry: RegistryManager):
    """A registered staff member."""
    return registry.create_staff(StaffCreate(name="Mr. Okafor", role="Teacher"))


@pytest.fixture
def title(catalog: CatalogManager):
    """A title with copies A and B."""
    return catalog.create_title(
        TitleCreate(name="Charlotte's Web", author="E. B. White", codes=["A", "B"])
    )


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_env(temp_db_path: Path) -> Generator[Path, None, None]:
    """Point the CLI at a fresh database file."""
    reset_db()
    reset_config()
    os.environ["SCHOOLIB_DB_PATH"] = str(temp_db_path)

    yield temp_db_path

    reset_db()
    reset_config()
    if "SCHOOLIB_DB_PATH" in os.environ:
        del os.environ["SCHOOLIB_DB_PATH"]
