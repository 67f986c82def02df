"""
Ledger engine: totals, continuity, statement lifecycle and dashboard.
"""

from shipyard_ledger.errors import (
    DuplicatePeriodError,
    InvalidStateError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    TransactionConflictError,
)
from shipyard_ledger.ledger.continuity import BalanceContinuityResolver
from shipyard_ledger.ledger.dashboard import DashboardAggregator
from shipyard_ledger.ledger.lifecycle import (
    LineChange,
    PartnerStatementLifecycle,
    ProjectStatementLifecycle,
    Recalculation,
)
from shipyard_ledger.ledger.repository import LedgerRecords, LineRepository
from shipyard_ledger.ledger.totals import (
    compute_final_balance,
    compute_next_month_balance,
    compute_totals,
)

__all__ = [
    "BalanceContinuityResolver",
    "DashboardAggregator",
    "DuplicatePeriodError",
    "InvalidStateError",
    "LedgerError",
    "LedgerRecords",
    "LedgerValidationError",
    "LineChange",
    "LineRepository",
    "NotFoundError",
    "PartnerStatementLifecycle",
    "ProjectStatementLifecycle",
    "Recalculation",
    "StorageError",
    "StorageUnavailableError",
    "TransactionConflictError",
    "compute_final_balance",
    "compute_next_month_balance",
    "compute_totals",
]
