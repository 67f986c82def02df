"""
Data Models Package

This package contains all Pydantic models used in Shipyard Ledger.
All data flowing through the system must conform to these schemas.
"""

from shipyard_ledger.models.ledger import (
    AddLine,
    HistoryChangeType,
    LineDirection,
    LineOperation,
    LinePatch,
    Money,
    NewStatementLine,
    Partner,
    PartnerStatement,
    PartnerStatementFields,
    PartnerStatementPatch,
    PreviousBalanceSuggestion,
    Project,
    ProjectStatement,
    RemoveLine,
    SetActualWithdrawn,
    SetLineAmount,
    SetLineCategory,
    SetLineDescription,
    SetLineDirection,
    SetLinePaid,
    SetMonthlySalary,
    SetNote,
    SetPersonalExpenseReimbursement,
    SetPreviousBalance,
    SetProfitShare,
    StatementHistoryEntry,
    StatementLine,
    StatementStatus,
    StatementTotals,
    TransferAction,
    UpdateLine,
    ValidationIssue,
    ValidationResult,
    to_money,
)
from shipyard_ledger.models.dashboard import (
    CompanyOverview,
    DashboardSummary,
    Expense,
    ExpenseStatus,
    MonthlyTrendItem,
    PartnerBalance,
)
from shipyard_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AddLine",
    "HistoryChangeType",
    "LineDirection",
    "LineOperation",
    "LinePatch",
    "Money",
    "NewStatementLine",
    "Partner",
    "PartnerStatement",
    "PartnerStatementFields",
    "PartnerStatementPatch",
    "PreviousBalanceSuggestion",
    "Project",
    "ProjectStatement",
    "RemoveLine",
    "SetActualWithdrawn",
    "SetLineAmount",
    "SetLineCategory",
    "SetLineDescription",
    "SetLineDirection",
    "SetLinePaid",
    "SetMonthlySalary",
    "SetNote",
    "SetPersonalExpenseReimbursement",
    "SetPreviousBalance",
    "SetProfitShare",
    "StatementHistoryEntry",
    "StatementLine",
    "StatementStatus",
    "StatementTotals",
    "TransferAction",
    "UpdateLine",
    "ValidationIssue",
    "ValidationResult",
    "to_money",
    # Dashboard models
    "CompanyOverview",
    "DashboardSummary",
    "Expense",
    "ExpenseStatus",
    "MonthlyTrendItem",
    "PartnerBalance",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
