"""
Core Ledger Models for Shipyard Ledger

These models define the strict schemas for statements, lines and the
entities that own them. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Round-trip through the document store unchanged
4. Support the audit trail

DESIGN DECISION: Money is a Decimal with two decimal places everywhere.
Floats never enter the ledger, so recomputing totals any number of times
cannot drift.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


TWOPLACES = Decimal("0.01")

Money = Annotated[Decimal, Field(max_digits=18, decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=18, decimal_places=2)]
NonNegativeMoney = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]

ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert a number or numeric string to a two-place Decimal."""
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class StatementStatus(str, Enum):
    """
    Statement lifecycle status.

    CRITICAL: CLOSED is terminal for lines. Only partner statements
    (and project statements when explicitly enabled) may go back to DRAFT.
    """
    DRAFT = "DRAFT"
    CLOSED = "CLOSED"


class LineDirection(str, Enum):
    """Sign of a statement line. Amounts are always stored positive."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransferAction(str, Enum):
    """What happened to a project's cash after the statement (informational)."""
    NONE = "NONE"
    TRANSFERRED_TO_SAFE = "TRANSFERRED_TO_SAFE"
    CARRIED_OVER = "CARRIED_OVER"


class HistoryChangeType(str, Enum):
    """Kinds of change recorded in a partner statement's history."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CLOSE = "CLOSE"
    REOPEN = "REOPEN"


# =============================================================================
# LEDGER OWNERS
# =============================================================================

class Project(BaseModel):
    """
    A sub-contracted shipyard project with its own cash account.

    running_balance is written only by closing (or reopening) a statement.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, max_length=200)
    running_balance: Money = ZERO
    is_active: bool = True


class Partner(BaseModel):
    """A company partner paid through monthly compensation statements."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    share_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    base_salary: NonNegativeMoney = ZERO
    running_balance: Money = ZERO
    is_active: bool = True


# =============================================================================
# PROJECT STATEMENTS
# =============================================================================

class StatementTotals(BaseModel):
    """
    Aggregated figures of a project statement.

    net_cash_real = total_income - total_expense_paid.
    Unpaid expenses are tracked but do not move cash.
    """
    total_income: Money = ZERO
    total_expense_paid: Money = ZERO
    total_expense_unpaid: Money = ZERO
    net_cash_real: Money = ZERO


class StatementLine(BaseModel):
    """One income or expense entry inside a project statement."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    statement_id: str
    direction: LineDirection
    category: str = Field(..., min_length=1, max_length=100)
    amount: PositiveMoney
    is_paid: bool = False
    description: str = Field(default="", max_length=500)
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None

    @model_validator(mode='after')
    def validate_paid_at(self) -> 'StatementLine':
        """paid_at exists exactly while the line is paid."""
        if not self.is_paid and self.paid_at is not None:
            raise ValueError("paid_at must be empty for an unpaid line")
        if self.is_paid and self.paid_at is None:
            raise ValueError("paid_at is required for a paid line")
        return self


class ProjectStatement(BaseModel):
    """
    A dated batch of income/expense lines for one project.

    CRITICAL: totals and final_balance are derived from the lines and
    previous_balance. They are only ever written by the lifecycle manager.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    project_id: str
    title: str = Field(..., min_length=1, max_length=200)
    date: date
    status: StatementStatus = StatementStatus.DRAFT
    previous_balance: Money = ZERO
    previous_balance_locked: bool = False
    totals: StatementTotals = Field(default_factory=StatementTotals)
    final_balance: Money = ZERO
    transfer_action: TransferAction = TransferAction.NONE

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    closed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status == StatementStatus.CLOSED


# =============================================================================
# PARTNER STATEMENTS
# =============================================================================

class PartnerStatement(BaseModel):
    """
    A partner's compensation statement for one calendar month.

    Sign convention: a positive balance is money the partner owes the
    company (withdrawn more than earned).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    partner_id: str
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    status: StatementStatus = StatementStatus.DRAFT
    previous_balance: Money = ZERO
    previous_balance_locked: bool = False
    personal_expense_reimbursement: NonNegativeMoney = ZERO
    monthly_salary: NonNegativeMoney = ZERO
    profit_share: NonNegativeMoney = ZERO
    actual_withdrawn: NonNegativeMoney = ZERO
    next_month_balance: Money = ZERO
    note: str = Field(default="", max_length=1000)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    closed_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def is_closed(self) -> bool:
        return self.status == StatementStatus.CLOSED


class PartnerStatementFields(BaseModel):
    """Compensation figures supplied when a partner statement is created."""
    model_config = ConfigDict(str_strip_whitespace=True)

    previous_balance: Optional[Money] = None
    personal_expense_reimbursement: NonNegativeMoney = ZERO
    monthly_salary: NonNegativeMoney = ZERO
    profit_share: NonNegativeMoney = ZERO
    actual_withdrawn: NonNegativeMoney = ZERO
    note: str = Field(default="", max_length=1000)


class StatementHistoryEntry(BaseModel):
    """Snapshot of a partner statement taken just before it changed."""

    id: str = Field(default_factory=new_id)
    statement_id: str
    partner_id: str
    change_type: HistoryChangeType
    previous_data: dict[str, Any] = Field(default_factory=dict)
    changed_at: datetime = Field(default_factory=utc_now)
    changed_by: str = "system"


class PreviousBalanceSuggestion(BaseModel):
    """Opening balance proposed for the next statement of an owner."""

    value: Money
    is_editable: bool
    source_statement_id: Optional[str] = None


# =============================================================================
# UPDATE VARIANTS
# =============================================================================
# Each variant names exactly one field. A patch is a list of variants,
# so adding a field means adding a variant rather than widening a dict.

class _FieldUpdate(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    def changes(self, now: datetime, current: BaseModel) -> dict[str, Any]:
        return {self.field: self.value}


class SetLineDirection(_FieldUpdate):
    field: Literal["direction"] = "direction"
    value: LineDirection


class SetLineCategory(_FieldUpdate):
    field: Literal["category"] = "category"
    value: str = Field(..., min_length=1, max_length=100)


class SetLineAmount(_FieldUpdate):
    field: Literal["amount"] = "amount"
    value: PositiveMoney


class SetLineDescription(_FieldUpdate):
    field: Literal["description"] = "description"
    value: str = Field(default="", max_length=500)


class SetLinePaid(_FieldUpdate):
    field: Literal["is_paid"] = "is_paid"
    value: bool

    def changes(self, now: datetime, current: BaseModel) -> dict[str, Any]:
        if not self.value:
            return {"is_paid": False, "paid_at": None}
        # keep the original payment moment if it was already paid
        return {"is_paid": True, "paid_at": current.paid_at or now}


LinePatch = Annotated[
    Union[SetLineDirection, SetLineCategory, SetLineAmount, SetLineDescription, SetLinePaid],
    Field(discriminator="field"),
]


class SetPreviousBalance(_FieldUpdate):
    field: Literal["previous_balance"] = "previous_balance"
    value: Money


class SetPersonalExpenseReimbursement(_FieldUpdate):
    field: Literal["personal_expense_reimbursement"] = "personal_expense_reimbursement"
    value: NonNegativeMoney


class SetMonthlySalary(_FieldUpdate):
    field: Literal["monthly_salary"] = "monthly_salary"
    value: NonNegativeMoney


class SetProfitShare(_FieldUpdate):
    field: Literal["profit_share"] = "profit_share"
    value: NonNegativeMoney


class SetActualWithdrawn(_FieldUpdate):
    field: Literal["actual_withdrawn"] = "actual_withdrawn"
    value: NonNegativeMoney


class SetNote(_FieldUpdate):
    field: Literal["note"] = "note"
    value: str = Field(default="", max_length=1000)


PartnerStatementPatch = Annotated[
    Union[
        SetPreviousBalance,
        SetPersonalExpenseReimbursement,
        SetMonthlySalary,
        SetProfitShare,
        SetActualWithdrawn,
        SetNote,
    ],
    Field(discriminator="field"),
]


# =============================================================================
# LINE OPERATIONS
# =============================================================================

class NewStatementLine(BaseModel):
    """Caller-supplied content of a line to add."""
    model_config = ConfigDict(str_strip_whitespace=True)

    direction: LineDirection
    category: str = Field(..., min_length=1, max_length=100)
    amount: PositiveMoney
    is_paid: bool = False
    description: str = Field(default="", max_length=500)


class AddLine(BaseModel):
    op: Literal["add"] = "add"
    line: NewStatementLine


class UpdateLine(BaseModel):
    op: Literal["update"] = "update"
    line_id: str
    patches: list[LinePatch] = Field(..., min_length=1)


class RemoveLine(BaseModel):
    op: Literal["remove"] = "remove"
    line_id: str


LineOperation = Annotated[
    Union[AddLine, UpdateLine, RemoveLine],
    Field(discriminator="op"),
]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (business limits)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
