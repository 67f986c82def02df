"""
Ledger exceptions.

Storage failures (NotFoundError, TransactionConflictError,
StorageUnavailableError) come from the storage package and are
re-exported here so callers can catch everything from one place.
"""

from typing import Optional

from shipyard_ledger.models.ledger import ValidationIssue
from shipyard_ledger.services.storage.interface import (
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    TransactionConflictError,
)


class LedgerError(Exception):
    """Base exception for ledger rule violations."""
    pass


class LedgerValidationError(LedgerError):
    """Bad input, detected before anything is written."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class DuplicatePeriodError(LedgerValidationError):
    """A partner already has a statement for this month and year."""

    def __init__(self, partner_id: str, month: int, year: int):
        super().__init__(
            f"Partner {partner_id} already has a statement for {year}-{month:02d}",
            [ValidationIssue(
                field="period",
                issue_type="duplicate",
                message=f"A statement for {year}-{month:02d} already exists",
                severity="error",
            )],
        )
        self.partner_id = partner_id
        self.month = month
        self.year = year


class InvalidStateError(LedgerError):
    """Operation is not legal for the statement's current status."""
    pass


__all__ = [
    "DuplicatePeriodError",
    "InvalidStateError",
    "LedgerError",
    "LedgerValidationError",
    "NotFoundError",
    "StorageError",
    "StorageUnavailableError",
    "TransactionConflictError",
]
