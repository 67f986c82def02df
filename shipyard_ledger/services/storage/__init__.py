"""
Storage Services Package

Provides the abstract document store and its concrete implementations.
Google Sheets is the shared backend; the in-memory store serves tests.
"""

from shipyard_ledger.services.storage.interface import (
    Document,
    DocumentStore,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    Transaction,
    TransactionConflictError,
)
from shipyard_ledger.services.storage.memory import InMemoryDocumentStore
from shipyard_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "Document",
    "DocumentStore",
    "Transaction",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "StorageUnavailableError",
    "TransactionConflictError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
