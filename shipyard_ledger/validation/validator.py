"""
Two-Stage Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking through the pydantic models
- Required field presence (title, category, direction)
- Strictly positive two-decimal amounts

STAGE 2 - SEMANTIC VALIDATION:
- Business limits (single line ceiling)
- Plausible statement periods

IMPORTANT: Validation NEVER silently fixes input.
Every problem is reported, and nothing is written until input is valid.
"""

from datetime import date
from typing import Any, Callable, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as SchemaError

from shipyard_ledger.config.settings import LedgerSettings
from shipyard_ledger.errors import LedgerValidationError
from shipyard_ledger.models.ledger import (
    AddLine,
    LineOperation,
    LinePatch,
    Money,
    NewStatementLine,
    PartnerStatementFields,
    PartnerStatementPatch,
    SetLineAmount,
    UpdateLine,
    ValidationIssue,
    ValidationResult,
)


MIN_STATEMENT_YEAR = 2000
MAX_STATEMENT_YEAR = 2100

T = TypeVar("T")
S = TypeVar("S", bound=BaseModel)

_line_patches = TypeAdapter(list[LinePatch])
_partner_patches = TypeAdapter(list[PartnerStatementPatch])
_line_operation = TypeAdapter(LineOperation)
_balance = TypeAdapter(Money)


class _StatementHeader(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    date: date


class _PartnerPeriod(BaseModel):
    month: int
    year: int
    figures: PartnerStatementFields


def _schema_issues(error: SchemaError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "input",
            issue_type=err["type"],
            message=err["msg"],
            severity="error",
        )
        for err in error.errors()
    ]


class StatementInputValidator:
    """
    Validates caller input for statement operations.

    Stage 1 builds the typed model; stage 2 runs only if stage 1 passed.
    """

    def __init__(self, settings: LedgerSettings):
        self._settings = settings

    def _run(
        self,
        parse: Callable[[], T],
        semantic: Optional[Callable[[T], list[ValidationIssue]]] = None,
    ) -> tuple[Optional[T], ValidationResult]:
        try:
            value = parse()
        except SchemaError as e:
            return None, ValidationResult(
                schema_valid=False,
                semantic_valid=False,
                issues=_schema_issues(e),
            )

        issues = semantic(value) if semantic else []
        has_errors = any(issue.severity == "error" for issue in issues)
        return value, ValidationResult(
            schema_valid=True,
            semantic_valid=not has_errors,
            issues=issues,
        )

    def _require(self, value: Optional[T], result: ValidationResult, what: str) -> T:
        if not result.is_valid:
            raise LedgerValidationError(
                f"Invalid {what}: {self.get_summary(result)}",
                result.issues,
            )
        return value

    def _check_amount(self, amount: Any, field: str) -> list[ValidationIssue]:
        if amount > self._settings.max_line_amount:
            return [ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"Amount {amount} exceeds the limit of {self._settings.max_line_amount}",
                severity="error",
            )]
        return []

    def _check_period(self, month: int, year: int) -> list[ValidationIssue]:
        issues = []
        if not 1 <= month <= 12:
            issues.append(ValidationIssue(
                field="month",
                issue_type="out_of_range",
                message="Month must be between 1 and 12",
                severity="error",
            ))
        if not MIN_STATEMENT_YEAR <= year <= MAX_STATEMENT_YEAR:
            issues.append(ValidationIssue(
                field="year",
                issue_type="out_of_range",
                message=f"Year must be between {MIN_STATEMENT_YEAR} and {MAX_STATEMENT_YEAR}",
                severity="error",
            ))
        return issues

    # -------------------------------------------------------------------------

    def validate_new_line(self, data: Any) -> NewStatementLine:
        value, result = self._run(
            lambda: NewStatementLine.model_validate(data),
            lambda line: self._check_amount(line.amount, "amount"),
        )
        return self._require(value, result, "statement line")

    def validate_line_patches(self, patches: Sequence[Any]) -> list[LinePatch]:
        def semantic(parsed: list[LinePatch]) -> list[ValidationIssue]:
            issues = []
            for patch in parsed:
                if isinstance(patch, SetLineAmount):
                    issues.extend(self._check_amount(patch.value, "amount"))
            if not parsed:
                issues.append(ValidationIssue(
                    field="patches",
                    issue_type="missing",
                    message="At least one field update is required",
                    severity="error",
                ))
            return issues

        value, result = self._run(
            lambda: _line_patches.validate_python(list(patches)),
            semantic,
        )
        return self._require(value, result, "line update")

    def validate_statement_header(self, title: Any, statement_date: Any) -> tuple[str, date]:
        def semantic(header: _StatementHeader) -> list[ValidationIssue]:
            if not header.title.strip():
                return [ValidationIssue(
                    field="title",
                    issue_type="missing",
                    message="Statement title is required",
                    severity="error",
                )]
            return []

        value, result = self._run(
            lambda: _StatementHeader(title=title, date=statement_date),
            semantic,
        )
        header = self._require(value, result, "statement")
        return header.title.strip(), header.date

    def validate_partner_fields(
        self,
        month: Any,
        year: Any,
        fields: Any,
    ) -> tuple[int, int, PartnerStatementFields]:
        def semantic(parsed: _PartnerPeriod) -> list[ValidationIssue]:
            return self._check_period(parsed.month, parsed.year)

        value, result = self._run(
            lambda: _PartnerPeriod(month=month, year=year, figures=fields or {}),
            semantic,
        )
        parsed = self._require(value, result, "partner statement")
        return parsed.month, parsed.year, parsed.figures

    def validate_partner_patches(self, patches: Sequence[Any]) -> list[PartnerStatementPatch]:
        def semantic(parsed: list[PartnerStatementPatch]) -> list[ValidationIssue]:
            if not parsed:
                return [ValidationIssue(
                    field="patches",
                    issue_type="missing",
                    message="At least one field update is required",
                    severity="error",
                )]
            return []

        value, result = self._run(
            lambda: _partner_patches.validate_python(list(patches)),
            semantic,
        )
        return self._require(value, result, "partner statement update")

    def validate_line_operation(self, operation: Any) -> LineOperation:
        """Parse an add/update/remove operation and validate its payload."""
        value, result = self._run(lambda: _line_operation.validate_python(operation))
        parsed = self._require(value, result, "line operation")
        if isinstance(parsed, AddLine):
            return AddLine(line=self.validate_new_line(parsed.line))
        if isinstance(parsed, UpdateLine):
            return UpdateLine(
                line_id=parsed.line_id,
                patches=self.validate_line_patches(parsed.patches),
            )
        return parsed

    def validate_balance(self, value: Any, field: str = "previous_balance") -> Any:
        """A signed two-decimal amount, or None when not supplied."""
        if value is None:
            return None
        parsed, result = self._run(lambda: _balance.validate_python(value))
        if not result.is_valid:
            for issue in result.issues:
                issue.field = field
        return self._require(parsed, result, field)

    def validate_derived(self, statement: S) -> S:
        """
        Re-check a statement after its balances were recomputed.

        Derived figures are set without validation; a sum past the Money
        bounds must be rejected before it is saved.
        """
        value, result = self._run(
            lambda: type(statement).model_validate(statement.model_dump())
        )
        return self._require(value, result, "derived balance")

    def get_summary(self, result: ValidationResult) -> str:
        """One-line description of what is wrong."""
        if result.is_valid:
            return "ok"
        return "; ".join(
            f"{issue.field}: {issue.message}"
            for issue in result.issues
            if issue.severity == "error"
        )
