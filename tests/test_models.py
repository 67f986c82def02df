"""
Tests for Shipyard Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Lifecycle tests run against the in-memory document store
3. No real API calls in tests (the Sheets store uses a fake worksheet)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import TypeAdapter

from shipyard_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    LineDirection,
    LineOperation,
    LinePatch,
    MonthlyTrendItem,
    Partner,
    PartnerStatement,
    PartnerStatementPatch,
    Project,
    ProjectStatement,
    SetLinePaid,
    StatementLine,
    StatementStatus,
    UpdateLine,
    ValidationIssue,
    ValidationResult,
    to_money,
)


NOW = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


class TestLedgerModels:
    """Tests for ledger owners, statements and lines."""

    def test_project_defaults(self):
        """A new project starts active with a zero balance."""
        project = Project(name="  Pendik Yard  ")
        assert project.name == "Pendik Yard"
        assert project.running_balance == Decimal("0")
        assert project.is_active is True
        assert project.id

    def test_partner_share_bounds(self):
        """Share percentage must lie within 0..100."""
        with pytest.raises(ValueError):
            Partner(name="Ahmet", share_percentage=Decimal("101"))

    def test_line_rejects_zero_amount(self):
        """Amounts are strictly positive; the sign lives in direction."""
        with pytest.raises(ValueError):
            StatementLine(
                statement_id="s",
                direction=LineDirection.EXPENSE,
                category="Paint",
                amount=Decimal("0"),
            )

    def test_line_rejects_three_decimals(self):
        """Money has at most two decimal places."""
        with pytest.raises(ValueError):
            StatementLine(
                statement_id="s",
                direction=LineDirection.INCOME,
                category="Hull",
                amount=Decimal("1.005"),
            )

    def test_paid_line_requires_paid_at(self):
        """is_paid and paid_at go together."""
        with pytest.raises(ValueError, match="paid_at"):
            StatementLine(
                statement_id="s",
                direction=LineDirection.EXPENSE,
                category="Paint",
                amount=Decimal("10"),
                is_paid=True,
            )

    def test_unpaid_line_rejects_paid_at(self):
        """An unpaid line cannot carry a payment moment."""
        with pytest.raises(ValueError, match="paid_at"):
            StatementLine(
                statement_id="s",
                direction=LineDirection.EXPENSE,
                category="Paint",
                amount=Decimal("10"),
                paid_at=NOW,
            )

    def test_statement_json_round_trip(self):
        """Statements survive the document store's JSON form unchanged."""
        statement = ProjectStatement(
            project_id="p",
            title="July",
            date=date(2024, 7, 31),
            previous_balance=Decimal("-12.30"),
            final_balance=Decimal("100.00"),
        )
        restored = ProjectStatement.model_validate(statement.model_dump(mode="json"))
        assert restored == statement
        assert restored.is_closed is False

    def test_partner_statement_period(self):
        """Period orders by year then month."""
        december = PartnerStatement(id="a", partner_id="p", month=12, year=2023)
        january = PartnerStatement(id="b", partner_id="p", month=1, year=2024)
        assert december.period < january.period
        assert december.status == StatementStatus.DRAFT

    def test_to_money(self):
        """to_money rounds half up to two places."""
        assert to_money("2.675") == Decimal("2.68")
        assert to_money(3) == Decimal("3.00")


class TestUpdateVariants:
    """Tests for the tagged field updates."""

    def test_line_patch_dispatches_on_field(self):
        """The field name selects the variant and its value type."""
        patches = TypeAdapter(list[LinePatch]).validate_python([
            {"field": "amount", "value": "12.50"},
            {"field": "direction", "value": "INCOME"},
        ])
        assert patches[0].value == Decimal("12.50")
        assert patches[1].value == LineDirection.INCOME

    def test_unknown_field_rejected(self):
        """Only declared fields can be patched."""
        with pytest.raises(ValueError):
            TypeAdapter(LinePatch).validate_python({"field": "totals", "value": 1})

    def test_partner_patch_rejects_negative(self):
        """Compensation figures cannot go negative."""
        with pytest.raises(ValueError):
            TypeAdapter(PartnerStatementPatch).validate_python(
                {"field": "monthly_salary", "value": "-1"}
            )

    def test_previous_balance_may_be_negative(self):
        """Balances carry a sign; figures do not."""
        patch = TypeAdapter(PartnerStatementPatch).validate_python(
            {"field": "previous_balance", "value": "-900"}
        )
        assert patch.value == Decimal("-900")

    def test_set_paid_keeps_existing_paid_at(self):
        """Marking an already paid line paid keeps its original moment."""
        earlier = datetime(2024, 6, 1, tzinfo=timezone.utc)
        line = StatementLine(
            statement_id="s",
            direction=LineDirection.EXPENSE,
            category="Paint",
            amount=Decimal("10"),
            is_paid=True,
            paid_at=earlier,
        )
        assert SetLinePaid(value=True).changes(NOW, line) == {"is_paid": True, "paid_at": earlier}
        assert SetLinePaid(value=False).changes(NOW, line) == {"is_paid": False, "paid_at": None}

    def test_variants_are_frozen(self):
        """Field updates are immutable values."""
        patch = SetLinePaid(value=True)
        with pytest.raises(ValueError):
            patch.value = False

    def test_line_operation(self):
        """Operations dispatch on op."""
        op = TypeAdapter(LineOperation).validate_python(
            {"op": "update", "line_id": "l1", "patches": [{"field": "category", "value": "Steel"}]}
        )
        assert isinstance(op, UpdateLine)
        with pytest.raises(ValueError):
            TypeAdapter(LineOperation).validate_python({"op": "update", "line_id": "l1", "patches": []})


class TestValidationModels:
    """Tests for validation-related models."""

    def test_validation_result_valid(self):
        """Test ValidationResult when valid."""
        result = ValidationResult(schema_valid=True, semantic_valid=True, issues=[])
        assert result.is_valid is True
        assert result.has_errors is False
        assert result.error_count == 0

    def test_validation_result_with_errors(self):
        """Test ValidationResult with errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="out_of_range",
                    message="Too large",
                    severity="error",
                ),
                ValidationIssue(
                    field="note",
                    issue_type="long",
                    message="Long note",
                    severity="warning",
                ),
            ],
        )
        assert result.is_valid is False
        assert result.has_errors is True
        assert result.error_count == 1

    def test_month_key_pattern(self):
        """Trend keys are YYYY-MM."""
        with pytest.raises(ValueError):
            MonthlyTrendItem(month_key="2024-7")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.PARTNER_STATEMENT_CLOSED,
            entity_type="partner_statement",
            entity_id="p_2024_07",
            description="Partner statement closed",
        )
        assert event.event_type == AuditEventType.PARTNER_STATEMENT_CLOSED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.STORAGE_FAILURE,
            severity=AuditSeverity.ERROR,
            description="Storage unavailable during close_project_statement",
            error_message="503 backend error",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "storage_failure"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "503 backend error"

    def test_balance_propagated_builder(self):
        """Close events carry old and new balances as strings."""
        correlation_id = uuid4()
        event = AuditEventBuilder.balance_propagated(
            AuditEventType.PROJECT_STATEMENT_CLOSED,
            "project_statement",
            "st-1",
            "proj-1",
            Decimal("0.00"),
            Decimal("6000.00"),
            actor="user-1",
            correlation_id=correlation_id,
        )
        assert event.entity_id == "st-1"
        assert event.actor == "user-1"
        assert event.correlation_id == correlation_id
        assert event.details["new_balance"] == "6000.00"

    def test_recalculation_severity(self):
        """A recalculation that changed stored values is a warning."""
        changed = AuditEventBuilder.statement_recalculated(
            AuditEventType.PROJECT_STATEMENT_RECALCULATED,
            "project_statement", "st-1", Decimal("1"), True, None,
        )
        unchanged = AuditEventBuilder.statement_recalculated(
            AuditEventType.PROJECT_STATEMENT_RECALCULATED,
            "project_statement", "st-1", Decimal("1"), False, None,
        )
        assert changed.severity == AuditSeverity.WARNING
        assert unchanged.severity == AuditSeverity.INFO

    def test_to_document_is_json_ready(self):
        """Stored events contain only JSON types."""
        event = AuditEventBuilder.continuity_overridden(
            "partner_statement", "partner-1", Decimal("-900"), Decimal("0"), "u1"
        )
        doc = event.to_document()
        assert doc["event_type"] == "continuity_overridden"
        assert isinstance(doc["event_id"], str)
        assert doc["details"] == {"suggested": "-900", "supplied": "0"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
