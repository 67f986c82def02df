"""
Tests for the audit logger and settings.
"""

import pytest

from shipyard_ledger.audit import AUDIT_COLLECTION, AuditLogger, create_correlation_id
from shipyard_ledger.config import LedgerSettings, get_settings, validate_all_settings
from shipyard_ledger.models import AuditEventBuilder, AuditEventType
from shipyard_ledger.services.storage import InMemoryDocumentStore, StorageUnavailableError


class BrokenStore(InMemoryDocumentStore):
    async def _commit(self, txn):
        raise StorageUnavailableError("audit sheet unreachable")


def _event(statement_id: str = "st-1"):
    return AuditEventBuilder.line_changed(
        AuditEventType.STATEMENT_LINE_ADDED, statement_id, "line-1", "10.00", "user-1"
    )


class TestAuditLogger:
    """Audit events are logged locally and persisted when possible."""

    @pytest.mark.asyncio
    async def test_persists_event(self):
        """Events land in the audit_log collection."""
        store = InMemoryDocumentStore()
        logger = AuditLogger(store)
        event = _event()

        assert await logger.log(event) is True
        doc = await store.get(AUDIT_COLLECTION, str(event.event_id))
        assert doc["event_type"] == "statement_line_added"

        events = await logger.get_events_by_entity("st-1")
        assert [e.event_id for e in events] == [event.event_id]

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported_not_raised(self):
        """A failed audit write returns False instead of failing the caller."""
        logger = AuditLogger(BrokenStore())
        assert await logger.log(_event()) is False

    @pytest.mark.asyncio
    async def test_local_only(self):
        """Without storage, logging succeeds and nothing can be queried."""
        logger = AuditLogger()
        assert await logger.log(_event()) is True
        assert await logger.get_events_by_entity("st-1") == []

    def test_correlation_ids_unique(self):
        """Each user action gets its own correlation id."""
        assert create_correlation_id() != create_correlation_id()


class TestSettings:
    """Configuration defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        """Continuity is enforced and project reopen is off by default."""
        monkeypatch.delenv("LEDGER_ALLOW_PROJECT_REOPEN", raising=False)
        monkeypatch.delenv("LEDGER_ENFORCE_BALANCE_CONTINUITY", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.allow_project_reopen is False
        assert settings.enforce_balance_continuity is True
        assert settings.transaction_retry_attempts == 2
        assert settings.dashboard_trend_months == 6

    def test_environment_override(self, monkeypatch):
        """LEDGER_ variables configure the policy switches."""
        monkeypatch.setenv("LEDGER_ALLOW_PROJECT_REOPEN", "true")
        monkeypatch.setenv("LEDGER_DASHBOARD_TREND_MONTHS", "12")
        settings = LedgerSettings(_env_file=None)
        assert settings.allow_project_reopen is True
        assert settings.dashboard_trend_months == 12

    def test_validate_all_settings_reports_missing_sheets(self, monkeypatch):
        """Missing Google Sheets configuration is reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
