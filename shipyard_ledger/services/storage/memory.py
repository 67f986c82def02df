"""
In-memory document store.

Used by tests and local runs. Commits are serialized with an asyncio.Lock;
the version check inside the lock is what lets two concurrent closes of
the same statement resolve to exactly one winner.
"""

import asyncio
import copy
from typing import Optional

from shipyard_ledger.services.storage.interface import (
    DocKey,
    Document,
    DocumentStore,
    Transaction,
    TransactionConflictError,
)


class _MemoryTransaction(Transaction):
    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def _fetch(self, collection: str, doc_id: str) -> tuple[Optional[Document], int]:
        return self._store._read(collection, doc_id)

    async def _fetch_collection(self, collection: str) -> list[tuple[str, Document, int]]:
        return self._store._read_collection(collection)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store with per-document versions."""

    def __init__(self):
        self._docs: dict[DocKey, Document] = {}
        # versions survive deletes so a delete-then-recreate is still a change
        self._versions: dict[DocKey, int] = {}
        self._commit_lock = asyncio.Lock()

    def _read(self, collection: str, doc_id: str) -> tuple[Optional[Document], int]:
        key = (collection, doc_id)
        doc = self._docs.get(key)
        return copy.deepcopy(doc), self._versions.get(key, 0)

    def _read_collection(self, collection: str) -> list[tuple[str, Document, int]]:
        return [
            (doc_id, copy.deepcopy(doc), self._versions.get((coll, doc_id), 0))
            for (coll, doc_id), doc in self._docs.items()
            if coll == collection
        ]

    def _begin(self) -> Transaction:
        return _MemoryTransaction(self)

    async def _commit(self, txn: Transaction) -> None:
        async with self._commit_lock:
            for key, seen in txn.read_versions.items():
                if self._versions.get(key, 0) != seen:
                    raise TransactionConflictError(
                        f"Document {key[0]}/{key[1]} changed during transaction"
                    )
            for key, doc in txn.pending_writes.items():
                self._versions[key] = self._versions.get(key, 0) + 1
                if doc is None:
                    self._docs.pop(key, None)
                else:
                    self._docs[key] = copy.deepcopy(doc)

    def version_of(self, collection: str, doc_id: str) -> int:
        return self._versions.get((collection, doc_id), 0)
