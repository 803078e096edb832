"""Circulation settings.

Values come from ``SCHOOLIB_*`` environment variables, with a ``.env``
file in the working directory taken into account.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .db.sqlite import default_db_path

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Loan policy, notification and runtime settings."""

    db_path: Path

    # Loan policy
    loan_duration_days: int
    max_loans_per_borrower: int  # CLI-level limit, see checkout command

    # Notifications
    enable_notifications: bool
    overdue_severe_days: int

    checkout_lock_timeout: float  # seconds
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Build settings from the environment."""
        return cls(
            db_path=Path(default_db_path()).expanduser(),
            loan_duration_days=_env_int("SCHOOLIB_LOAN_DURATION_DAYS", 30),
            max_loans_per_borrower=_env_int("SCHOOLIB_MAX_LOANS_PER_BORROWER", 3),
            enable_notifications=_env_bool("SCHOOLIB_ENABLE_NOTIFICATIONS", True),
            overdue_severe_days=_env_int("SCHOOLIB_OVERDUE_SEVERE_DAYS", 7),
            checkout_lock_timeout=_env_float("SCHOOLIB_CHECKOUT_LOCK_TIMEOUT", 10.0),
            log_level=os.environ.get("SCHOOLIB_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Return a list of problems; empty when the settings are usable."""
        problems = []

        if self.loan_duration_days < 1:
            problems.append("Loan duration must be at least one day")
        if self.max_loans_per_borrower < 1:
            problems.append("Maximum loans per borrower must be at least 1")
        if self.overdue_severe_days < 0:
            problems.append("Overdue severity threshold cannot be negative")
        if self.checkout_lock_timeout <= 0:
            problems.append("Checkout lock timeout must be positive")

        if str(self.db_path) != ":memory:":
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                problems.append(f"Cannot create database directory: {self.db_path.parent}")

        return problems


_config: Optional[Config] = None


def get_config() -> Config:
    """Shared settings, loaded on first use."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Drop the shared settings so the next call reloads them. Used by tests."""
    global _config
    _config = None
