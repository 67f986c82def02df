"""
Ledger repositories.

Thin typed wrappers over a document store Transaction. They know where
each record lives and how it round-trips through pydantic; they enforce
no business rule. In particular LineRepository does not check that the
statement is DRAFT - that is the lifecycle manager's job.

Layout:
    projects/{project_id}
    partners/{partner_id}
    project_statements/{statement_id}
    project_statements/{statement_id}/statement_lines/{line_id}
    partner_statements/{partner_id}_{year}_{month}
    partner_statements/{statement_id}/history/{entry_id}
"""

from datetime import datetime
from typing import Sequence, TypeVar

from pydantic import BaseModel

from shipyard_ledger.models.ledger import (
    LinePatch,
    Partner,
    PartnerStatement,
    Project,
    ProjectStatement,
    StatementHistoryEntry,
    StatementLine,
)
from shipyard_ledger.services.storage import Document, NotFoundError, Transaction


PROJECTS = "projects"
PARTNERS = "partners"
PROJECT_STATEMENTS = "project_statements"
PARTNER_STATEMENTS = "partner_statements"
EXPENSES = "expenses"
COMPANY_OVERVIEW = "company_overview"
COMPANY_OVERVIEW_ID = "main"

ModelT = TypeVar("ModelT", bound=BaseModel)


def lines_collection(statement_id: str) -> str:
    return f"{PROJECT_STATEMENTS}/{statement_id}/statement_lines"


def history_collection(statement_id: str) -> str:
    return f"{PARTNER_STATEMENTS}/{statement_id}/history"


def partner_statement_id(partner_id: str, year: int, month: int) -> str:
    """
    Deterministic id for a partner's period.

    Two concurrent creates for the same period touch the same document,
    so the optimistic commit lets only one of them through.
    """
    return f"{partner_id}_{year:04d}_{month:02d}"


def to_document(model: BaseModel) -> Document:
    return model.model_dump(mode="json")


class LineRepository:
    """Append/update/remove the lines of one project statement."""

    def __init__(self, txn: Transaction):
        self._txn = txn

    async def add_line(self, statement_id: str, line: StatementLine) -> str:
        self._txn.put(lines_collection(statement_id), line.id, to_document(line))
        return line.id

    async def get_line(self, statement_id: str, line_id: str) -> StatementLine:
        doc = await self._txn.get(lines_collection(statement_id), line_id)
        if doc is None:
            raise NotFoundError(f"Line {line_id} not found in statement {statement_id}")
        return StatementLine.model_validate(doc)

    async def update_line(
        self,
        statement_id: str,
        line_id: str,
        patches: Sequence[LinePatch],
        now: datetime,
    ) -> StatementLine:
        """
        Apply field updates to a line.

        Raises:
            NotFoundError: If the line doesn't exist
            pydantic.ValidationError: If the result is not a valid line
        """
        line = await self.get_line(statement_id, line_id)
        data = line.model_dump()
        for patch in patches:
            data.update(patch.changes(now, line))
        data["updated_at"] = now
        updated = StatementLine.model_validate(data)
        self._txn.put(lines_collection(statement_id), line_id, to_document(updated))
        return updated

    async def remove_line(self, statement_id: str, line_id: str) -> None:
        await self.get_line(statement_id, line_id)
        self._txn.delete(lines_collection(statement_id), line_id)

    async def list_lines(self, statement_id: str) -> list[StatementLine]:
        """Lines in creation order."""
        docs = await self._txn.query(lines_collection(statement_id))
        lines = [StatementLine.model_validate(doc) for doc in docs]
        lines.sort(key=lambda line: (line.created_at, line.id))
        return lines


class LedgerRecords:
    """Typed access to owners and statements inside one transaction."""

    def __init__(self, txn: Transaction):
        self._txn = txn

    async def _load(self, collection: str, doc_id: str, model: type[ModelT]) -> ModelT:
        doc = await self._txn.get(collection, doc_id)
        if doc is None:
            raise NotFoundError(f"{model.__name__} {doc_id} not found")
        return model.model_validate(doc)

    async def project(self, project_id: str) -> Project:
        return await self._load(PROJECTS, project_id, Project)

    async def partner(self, partner_id: str) -> Partner:
        return await self._load(PARTNERS, partner_id, Partner)

    async def project_statement(self, statement_id: str) -> ProjectStatement:
        return await self._load(PROJECT_STATEMENTS, statement_id, ProjectStatement)

    async def partner_statement(self, statement_id: str) -> PartnerStatement:
        return await self._load(PARTNER_STATEMENTS, statement_id, PartnerStatement)

    async def project_statements(self, project_id: str) -> list[ProjectStatement]:
        """Statements of a project, newest date first."""
        docs = await self._txn.query(PROJECT_STATEMENTS, {"project_id": project_id})
        statements = [ProjectStatement.model_validate(doc) for doc in docs]
        statements.sort(key=lambda s: (s.date, s.created_at), reverse=True)
        return statements

    async def partner_statements(self, partner_id: str) -> list[PartnerStatement]:
        """Statements of a partner, newest period first."""
        docs = await self._txn.query(PARTNER_STATEMENTS, {"partner_id": partner_id})
        statements = [PartnerStatement.model_validate(doc) for doc in docs]
        statements.sort(key=lambda s: s.period, reverse=True)
        return statements

    async def history(self, statement_id: str) -> list[StatementHistoryEntry]:
        docs = await self._txn.query(history_collection(statement_id))
        entries = [StatementHistoryEntry.model_validate(doc) for doc in docs]
        entries.sort(key=lambda e: e.changed_at, reverse=True)
        return entries

    def save_project(self, project: Project) -> None:
        self._txn.put(PROJECTS, project.id, to_document(project))

    def save_partner(self, partner: Partner) -> None:
        self._txn.put(PARTNERS, partner.id, to_document(partner))

    def save_project_statement(self, statement: ProjectStatement) -> None:
        self._txn.put(PROJECT_STATEMENTS, statement.id, to_document(statement))

    def save_partner_statement(self, statement: PartnerStatement) -> None:
        self._txn.put(PARTNER_STATEMENTS, statement.id, to_document(statement))

    async def partner_statement_exists(self, statement_id: str) -> bool:
        return await self._txn.get(PARTNER_STATEMENTS, statement_id) is not None

    async def delete_partner_statement(self, statement_id: str) -> None:
        """Remove a statement together with its history."""
        for entry in await self.history(statement_id):
            self._txn.delete(history_collection(statement_id), entry.id)
        self._txn.delete(PARTNER_STATEMENTS, statement_id)

    def append_history(self, entry: StatementHistoryEntry) -> None:
        self._txn.put(history_collection(entry.statement_id), entry.id, to_document(entry))
