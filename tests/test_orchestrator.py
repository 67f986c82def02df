"""
End-to-end tests through the ledger facade.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_helpers import load_partner, load_project
from shipyard_ledger.orchestrator import LedgerOrchestrator, create_ledger_components
from shipyard_ledger.models import AuditEventType, StatementStatus
from shipyard_ledger.services.storage import InMemoryDocumentStore


@pytest.fixture
def ledger(store, settings, audit_logger) -> LedgerOrchestrator:
    return LedgerOrchestrator(store, settings, audit_logger)


class TestProjectFlow:
    """Create, fill and close a project statement through the facade."""

    @pytest.mark.asyncio
    async def test_month_end(self, ledger, store, project):
        """The closing balance reaches the project and the audit trail."""
        statement_id = await ledger.create_project_statement(project.id, "July", "2024-07-31", actor="u1")
        await ledger.add_statement_line(statement_id, "INCOME", "Hull", "10000", actor="u1")
        line_id = await ledger.add_statement_line(statement_id, "EXPENSE", "Paint", "4000", actor="u1")
        await ledger.update_statement_line(
            statement_id, line_id, [{"field": "is_paid", "value": True}], actor="u1"
        )

        closed = await ledger.close_project_statement(statement_id, actor="u1")
        assert closed.status == StatementStatus.CLOSED
        assert closed.final_balance == Decimal("6000")
        assert (await load_project(store, project.id)).running_balance == Decimal("6000")

        suggestion = await ledger.suggest_project_previous_balance(project.id)
        assert suggestion.value == Decimal("6000")
        assert suggestion.is_editable is False

        trail = [e.event_type for e in await ledger.get_audit_trail(statement_id)]
        assert trail[-1] == AuditEventType.PROJECT_STATEMENT_CLOSED
        assert trail.count(AuditEventType.STATEMENT_LINE_ADDED) == 2

    @pytest.mark.asyncio
    async def test_listing(self, ledger, project):
        """Statements and lines are readable back."""
        statement_id = await ledger.create_project_statement(project.id, "July", date(2024, 7, 31))
        await ledger.add_statement_line(statement_id, "INCOME", "Hull", "1")
        assert [s.id for s in await ledger.list_project_statements(project.id)] == [statement_id]
        assert len(await ledger.list_statement_lines(statement_id)) == 1
        assert (await ledger.get_project_statement(statement_id)).title == "July"


class TestPartnerFlow:
    """Partner statements through the facade."""

    @pytest.mark.asyncio
    async def test_close_and_reopen(self, ledger, store, partner):
        """Close moves the partner's balance; reopen restores it."""
        statement_id = await ledger.create_partner_statement(
            partner.id, 7, 2024, {"previous_balance": "0", "actual_withdrawn": "300"}
        )
        await ledger.update_partner_statement(statement_id, [{"field": "monthly_salary", "value": "100"}])
        await ledger.close_partner_statement(statement_id)
        assert (await load_partner(store, partner.id)).running_balance == Decimal("200")

        await ledger.reopen_partner_statement(statement_id)
        assert (await load_partner(store, partner.id)).running_balance == Decimal("0")
        history = await ledger.get_partner_statement_history(statement_id)
        assert len(history) >= 2

    @pytest.mark.asyncio
    async def test_delete_draft(self, ledger, partner):
        """A DRAFT statement can be deleted."""
        statement_id = await ledger.create_partner_statement(partner.id, 8, 2024)
        await ledger.delete_partner_statement(statement_id)
        assert await ledger.list_partner_statements(partner.id) == []
        assert await ledger.get_last_closed_partner_statement(partner.id) is None


class TestFactory:
    """Component wiring."""

    @pytest.mark.asyncio
    async def test_in_memory_components(self):
        """use_sheets=False wires an empty in-memory store."""
        ledger, store = create_ledger_components(use_sheets=False)
        assert isinstance(store, InMemoryDocumentStore)
        summary = await ledger.get_dashboard_summary(date(2024, 7, 15))
        assert summary.project_count == 0

    def test_unconfigured_sheets_fall_back_to_memory(self, monkeypatch):
        """Missing Google Sheets settings leave the ledger running in memory."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        _, store = create_ledger_components(use_sheets=True)
        assert isinstance(store, InMemoryDocumentStore)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
