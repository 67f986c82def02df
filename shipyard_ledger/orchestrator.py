"""
Main Orchestrator for Shipyard Ledger

This module ties together all the components and exposes the ledger API
consumed by the CRUD screens:
1. Project statements (create → add/update/delete lines → close)
2. Partner statements (create → update → close ⇄ reopen)
3. Dashboard summary

DESIGN DECISION: The orchestrator is a thin facade.
- Business rules live in the lifecycle managers
- Each call is one atomic ledger operation
- Every state change is audited

The acting user is an opaque string used only for audit fields.
"""

from datetime import date
from typing import Any, Optional

from pydantic import ValidationError
import structlog

from shipyard_ledger.audit import AuditLogger
from shipyard_ledger.config import LedgerSettings, get_settings
from shipyard_ledger.ledger import (
    DashboardAggregator,
    PartnerStatementLifecycle,
    ProjectStatementLifecycle,
    Recalculation,
)
from shipyard_ledger.models import (
    AuditEvent,
    DashboardSummary,
    PartnerStatement,
    PreviousBalanceSuggestion,
    ProjectStatement,
    StatementHistoryEntry,
    StatementLine,
)
from shipyard_ledger.services.storage import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LedgerOrchestrator:
    """
    Facade over the statement lifecycle managers and the dashboard.

    Usage:
        ledger = LedgerOrchestrator(store)
        statement_id = await ledger.create_project_statement(project_id, "March", date(2024, 3, 31))
        await ledger.add_statement_line(statement_id, "INCOME", "Hull work", "10000")
        await ledger.close_project_statement(statement_id)
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        settings = settings or get_settings().ledger
        audit_logger = audit_logger or AuditLogger(store)
        self._projects = ProjectStatementLifecycle(store, settings, audit_logger)
        self._partners = PartnerStatementLifecycle(store, settings, audit_logger)
        self._dashboard = DashboardAggregator(store, settings)
        self._audit_logger = audit_logger

    # -------------------------------------------------------------------------
    # Project statements
    # -------------------------------------------------------------------------

    async def create_project_statement(
        self,
        project_id: str,
        title: Any,
        statement_date: Any,
        previous_balance: Any = None,
        actor: Optional[str] = None,
    ) -> str:
        """
        Create a DRAFT project statement.

        previous_balance may be omitted to take the suggested value; it
        can only differ from the suggestion for a project's first period
        unless continuity enforcement is switched off.

        Returns:
            The new statement id
        """
        statement = await self._projects.create_statement(
            project_id, title, statement_date, previous_balance, actor
        )
        return statement.id

    async def add_statement_line(
        self,
        statement_id: str,
        direction: Any,
        category: Any,
        amount: Any,
        is_paid: bool = False,
        description: str = "",
        actor: Optional[str] = None,
    ) -> str:
        """Returns the new line id."""
        return await self._projects.add_line(
            statement_id, direction, category, amount, is_paid, description, actor
        )

    async def update_statement_line(
        self,
        statement_id: str,
        line_id: str,
        patch: list[Any],
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        """
        Apply field updates to a line.

        Args:
            patch: Field updates, e.g. [{"field": "is_paid", "value": True}]
        """
        return await self._projects.update_line(statement_id, line_id, patch, actor)

    async def delete_statement_line(
        self,
        statement_id: str,
        line_id: str,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        return await self._projects.delete_line(statement_id, line_id, actor)

    async def close_project_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        return await self._projects.close(statement_id, actor)

    async def reopen_project_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        """Only when LEDGER_ALLOW_PROJECT_REOPEN is set."""
        return await self._projects.reopen(statement_id, actor)

    async def recalculate_project_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> Recalculation:
        return await self._projects.recalculate(statement_id, actor)

    async def set_transfer_action(
        self,
        statement_id: str,
        action: Any,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        return await self._projects.set_transfer_action(statement_id, action, actor)

    async def get_project_statement(self, statement_id: str) -> ProjectStatement:
        return await self._projects.get_statement(statement_id)

    async def list_project_statements(self, project_id: str) -> list[ProjectStatement]:
        return await self._projects.list_statements(project_id)

    async def list_statement_lines(self, statement_id: str) -> list[StatementLine]:
        return await self._projects.list_lines(statement_id)

    async def suggest_project_previous_balance(
        self,
        project_id: str,
        before: Optional[date] = None,
    ) -> PreviousBalanceSuggestion:
        return await self._projects.suggest_previous_balance(project_id, before)

    # -------------------------------------------------------------------------
    # Partner statements
    # -------------------------------------------------------------------------

    async def create_partner_statement(
        self,
        partner_id: str,
        month: Any,
        year: Any,
        fields: Optional[dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> str:
        """
        Create the DRAFT statement of one partner-month.

        Returns:
            The statement id ("{partner_id}_{year}_{month}")
        """
        statement = await self._partners.create_statement(partner_id, month, year, fields, actor)
        return statement.id

    async def update_partner_statement(
        self,
        statement_id: str,
        patch: list[Any],
        actor: Optional[str] = None,
    ) -> PartnerStatement:
        """
        Args:
            patch: Field updates, e.g. [{"field": "monthly_salary", "value": "2000"}]
        """
        return await self._partners.update(statement_id, patch, actor)

    async def close_partner_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> PartnerStatement:
        return await self._partners.close(statement_id, actor)

    async def reopen_partner_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> PartnerStatement:
        return await self._partners.reopen(statement_id, actor)

    async def delete_partner_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> None:
        await self._partners.delete(statement_id, actor)

    async def recalculate_partner_statement(
        self,
        statement_id: str,
        actor: Optional[str] = None,
    ) -> Recalculation:
        return await self._partners.recalculate(statement_id, actor)

    async def get_partner_statement(self, statement_id: str) -> PartnerStatement:
        return await self._partners.get_statement(statement_id)

    async def list_partner_statements(self, partner_id: str) -> list[PartnerStatement]:
        return await self._partners.list_statements(partner_id)

    async def get_partner_statement_history(self, statement_id: str) -> list[StatementHistoryEntry]:
        return await self._partners.get_history(statement_id)

    async def get_last_closed_partner_statement(self, partner_id: str) -> Optional[PartnerStatement]:
        return await self._partners.get_last_closed_statement(partner_id)

    async def suggest_partner_previous_balance(
        self,
        partner_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> PreviousBalanceSuggestion:
        return await self._partners.suggest_previous_balance(partner_id, month, year)

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    async def get_dashboard_summary(self, today: Optional[date] = None) -> DashboardSummary:
        return await self._dashboard.get_dashboard_summary(today)

    async def get_audit_trail(self, entity_id: str) -> list[AuditEvent]:
        """Persisted audit events about one statement or owner, oldest first."""
        return await self._audit_logger.get_events_by_entity(entity_id)


def create_ledger_components(
    use_sheets: bool = True,
) -> tuple[LedgerOrchestrator, DocumentStore]:
    """
    Factory function to create the ledger and its store.

    Args:
        use_sheets: Whether to use Google Sheets storage.
                    Set to False for an in-memory store (tests, demos).

    Returns:
        (ledger, store)
    """
    if use_sheets:
        try:
            worksheet = GoogleSheetsClient().get_documents_sheet()
            store: DocumentStore = GoogleSheetsDocumentStore(worksheet=worksheet)
        except (StorageError, ValidationError) as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            store = InMemoryDocumentStore()
    else:
        store = InMemoryDocumentStore()

    return LedgerOrchestrator(store), store
