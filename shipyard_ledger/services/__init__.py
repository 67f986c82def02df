"""Services package."""

from shipyard_ledger.services.storage import (
    Document,
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    Transaction,
    TransactionConflictError,
)

__all__ = [
    "Document",
    "DocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
    "StorageUnavailableError",
    "Transaction",
    "TransactionConflictError",
]
