"""
Audit Models for Shipyard Ledger

Events describing who changed which statement and how balances moved.

DESIGN DECISION: the audit_log collection is append-only; events are
never edited or removed, not even when their statement is deleted.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from shipyard_ledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Project statements
    PROJECT_STATEMENT_CREATED = "project_statement_created"
    STATEMENT_LINE_ADDED = "statement_line_added"
    STATEMENT_LINE_UPDATED = "statement_line_updated"
    STATEMENT_LINE_REMOVED = "statement_line_removed"
    PROJECT_STATEMENT_CLOSED = "project_statement_closed"
    PROJECT_STATEMENT_REOPENED = "project_statement_reopened"
    PROJECT_STATEMENT_RECALCULATED = "project_statement_recalculated"
    TRANSFER_ACTION_SET = "transfer_action_set"

    # Partner statements
    PARTNER_STATEMENT_CREATED = "partner_statement_created"
    PARTNER_STATEMENT_UPDATED = "partner_statement_updated"
    PARTNER_STATEMENT_CLOSED = "partner_statement_closed"
    PARTNER_STATEMENT_REOPENED = "partner_statement_reopened"
    PARTNER_STATEMENT_DELETED = "partner_statement_deleted"
    PARTNER_STATEMENT_RECALCULATED = "partner_statement_recalculated"

    # Continuity
    CONTINUITY_OVERRIDDEN = "continuity_overridden"

    # System events
    TRANSACTION_CONFLICT = "transaction_conflict"
    STORAGE_FAILURE = "storage_failure"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One ledger state change, as stored in audit_log."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # subject
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'project_statement', 'partner_statement')"
    )
    entity_id: Optional[str] = None

    # ties the events of one user action together
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one screen action)"
    )

    # Opaque identity of the acting user
    actor: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Flat key/value form for the structured log."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor": self.actor,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_document(self) -> dict:
        """Convert to a document for the audit_log collection."""
        doc = self.model_dump(mode="json")
        # details may hold Decimals already rendered as strings; keep them flat
        doc["details"] = json.loads(json.dumps(self.details, default=str))
        return doc


def _money(value: Any) -> str:
    return str(value)


class AuditEventBuilder:
    """
    One constructor per ledger event.

    Usage:
        event = AuditEventBuilder.line_changed(AuditEventType.STATEMENT_LINE_ADDED, statement_id, line_id, balance, actor)
        event = AuditEventBuilder.balance_propagated(AuditEventType.PROJECT_STATEMENT_CLOSED, ...)
    """

    @staticmethod
    def project_statement_created(
        statement_id: str,
        project_id: str,
        previous_balance: Any,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_STATEMENT_CREATED,
            entity_type="project_statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Project statement created for project {project_id}",
            details={
                "project_id": project_id,
                "previous_balance": _money(previous_balance),
            },
        )

    @staticmethod
    def line_changed(
        event_type: AuditEventType,
        statement_id: str,
        line_id: str,
        final_balance: Any,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.STATEMENT_LINE_ADDED: "added",
            AuditEventType.STATEMENT_LINE_UPDATED: "updated",
            AuditEventType.STATEMENT_LINE_REMOVED: "removed",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            entity_type="project_statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Statement line {verb}",
            details={
                "line_id": line_id,
                "final_balance": _money(final_balance),
            },
        )

    @staticmethod
    def balance_propagated(
        event_type: AuditEventType,
        entity_type: str,
        statement_id: str,
        owner_id: str,
        old_balance: Any,
        new_balance: Any,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Close or reopen: the owner's running balance moved."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Owner {owner_id} balance {_money(old_balance)} -> {_money(new_balance)}",
            details={
                "owner_id": owner_id,
                "old_balance": _money(old_balance),
                "new_balance": _money(new_balance),
            },
        )

    @staticmethod
    def partner_statement_changed(
        event_type: AuditEventType,
        statement_id: str,
        partner_id: str,
        next_month_balance: Any,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
        fields: Optional[list[str]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="partner_statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Partner statement {event_type.value.rsplit('_', 1)[-1]}",
            details={
                "partner_id": partner_id,
                "next_month_balance": _money(next_month_balance),
                "fields": fields or [],
            },
        )

    @staticmethod
    def statement_recalculated(
        event_type: AuditEventType,
        entity_type: str,
        statement_id: str,
        balance: Any,
        changed: bool,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING if changed else AuditSeverity.INFO,
            entity_type=entity_type,
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=(
                "Stored balance differed from recomputed value"
                if changed else "Recalculation matched stored balance"
            ),
            details={"balance": _money(balance), "changed": changed},
        )

    @staticmethod
    def transfer_action_set(
        statement_id: str,
        action: str,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_ACTION_SET,
            entity_type="project_statement",
            entity_id=statement_id,
            correlation_id=correlation_id,
            actor=actor,
            description=f"Transfer action set to {action}",
            details={"transfer_action": action},
        )

    @staticmethod
    def continuity_overridden(
        entity_type: str,
        owner_id: str,
        suggested: Any,
        supplied: Any,
        actor: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTINUITY_OVERRIDDEN,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=owner_id,
            correlation_id=correlation_id,
            actor=actor,
            description="Previous balance differs from the last closed period",
            details={
                "suggested": _money(suggested),
                "supplied": _money(supplied),
            },
        )

    @staticmethod
    def transaction_conflict(
        operation: str,
        entity_id: str,
        attempt: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Transaction conflict during {operation}",
            details={"operation": operation, "attempt": attempt},
        )

    @staticmethod
    def storage_failure(
        operation: str,
        entity_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILURE,
            severity=AuditSeverity.ERROR,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage unavailable during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
