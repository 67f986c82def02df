"""
Abstract Document Store Interface

DESIGN DECISION: The ledger talks to a generic document store through
get/query/put/delete and a transaction. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Transactions are optimistic. Every document carries a version number.
Reads inside a transaction remember the version they saw; writes are
buffered and applied together at commit, and only if none of the
documents read has changed in the meantime. Otherwise the whole unit is
discarded and TransactionConflictError is raised, so a caller can simply
run the operation again.
"""

import copy
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional


Document = dict[str, Any]
DocKey = tuple[str, str]


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class TransactionConflictError(StorageError):
    """A document read inside a transaction changed before commit."""
    pass


class StorageUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass


def _matches(doc: Document, where: Optional[dict[str, Any]]) -> bool:
    if not where:
        return True
    return all(doc.get(field) == value for field, value in where.items())


class Transaction(ABC):
    """
    One atomic unit of reads and buffered writes.

    Obtained from DocumentStore.transaction(); never constructed directly
    by ledger code. Reads see this transaction's own pending writes.
    """

    def __init__(self):
        self._read_versions: dict[DocKey, int] = {}
        self._writes: dict[DocKey, Optional[Document]] = {}

    @abstractmethod
    async def _fetch(self, collection: str, doc_id: str) -> tuple[Optional[Document], int]:
        """Return (document or None, version) straight from the backend."""
        pass

    @abstractmethod
    async def _fetch_collection(self, collection: str) -> list[tuple[str, Document, int]]:
        """Return (id, document, version) for every live document in a collection."""
        pass

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        key = (collection, doc_id)
        if key in self._writes:
            return copy.deepcopy(self._writes[key])
        doc, version = await self._fetch(collection, doc_id)
        self._read_versions.setdefault(key, version)
        return doc

    async def query(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        """Equality-filtered read of a collection, including pending writes."""
        found: dict[str, Document] = {}
        for doc_id, doc, version in await self._fetch_collection(collection):
            self._read_versions.setdefault((collection, doc_id), version)
            found[doc_id] = doc
        for (coll, doc_id), pending in self._writes.items():
            if coll != collection:
                continue
            if pending is None:
                found.pop(doc_id, None)
            else:
                found[doc_id] = copy.deepcopy(pending)
        return [doc for doc in found.values() if _matches(doc, where)]

    def put(self, collection: str, doc_id: str, data: Document) -> None:
        doc = copy.deepcopy(data)
        doc["id"] = doc_id
        self._writes[(collection, doc_id)] = doc

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes[(collection, doc_id)] = None

    @property
    def read_versions(self) -> dict[DocKey, int]:
        return dict(self._read_versions)

    @property
    def pending_writes(self) -> dict[DocKey, Optional[Document]]:
        return dict(self._writes)


class DocumentStore(ABC):
    """
    Abstract interface for the document store.

    Any storage implementation (Google Sheets, Firestore, PostgreSQL, etc.)
    must implement _begin and _commit; the single-document helpers are
    expressed as one-operation transactions.
    """

    @abstractmethod
    def _begin(self) -> Transaction:
        pass

    @abstractmethod
    async def _commit(self, txn: Transaction) -> None:
        """
        Apply txn's pending writes atomically.

        Raises:
            TransactionConflictError: If any document txn read has a newer version
            StorageUnavailableError: If the backend could not be reached
        """
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Run a block as one atomic unit.

        An exception inside the block discards every buffered write.
        """
        txn = self._begin()
        yield txn
        if txn.pending_writes:
            await self._commit(txn)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self.transaction() as txn:
            return await txn.get(collection, doc_id)

    async def query(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        async with self.transaction() as txn:
            return await txn.query(collection, where)

    async def put(self, collection: str, doc_id: str, data: Document) -> None:
        async with self.transaction() as txn:
            txn.put(collection, doc_id, data)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self.transaction() as txn:
            txn.delete(collection, doc_id)
