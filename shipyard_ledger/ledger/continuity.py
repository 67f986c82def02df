"""
Balance Continuity Resolver

A new statement opens with the balance the previous period closed with.
The anchor is the most recent CLOSED statement of the same owner before
the new period. A DRAFT statement is never an anchor: its balance can
still move. Without an anchor the owner's running balance is proposed
and may be edited (e.g. to record an opening balance).
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from shipyard_ledger.config.settings import LedgerSettings
from shipyard_ledger.errors import LedgerValidationError
from shipyard_ledger.ledger.repository import LedgerRecords
from shipyard_ledger.models.ledger import (
    PreviousBalanceSuggestion,
    StatementStatus,
    ValidationIssue,
)


logger = structlog.get_logger(__name__)


class BalanceContinuityResolver:
    """Suggests and, when configured, enforces a statement's previous balance."""

    def __init__(self, settings: LedgerSettings):
        self._settings = settings

    async def suggest_for_project(
        self,
        records: LedgerRecords,
        project_id: str,
        before: Optional[date] = None,
    ) -> PreviousBalanceSuggestion:
        project = await records.project(project_id)
        for statement in await records.project_statements(project_id):
            if before is not None and statement.date >= before:
                continue
            if statement.status == StatementStatus.CLOSED:
                return PreviousBalanceSuggestion(
                    value=statement.final_balance,
                    is_editable=False,
                    source_statement_id=statement.id,
                )
        return PreviousBalanceSuggestion(value=project.running_balance, is_editable=True)

    async def suggest_for_partner(
        self,
        records: LedgerRecords,
        partner_id: str,
        before: Optional[tuple[int, int]] = None,
    ) -> PreviousBalanceSuggestion:
        """
        Args:
            before: (year, month) of the statement being created
        """
        partner = await records.partner(partner_id)
        for statement in await records.partner_statements(partner_id):
            if before is not None and statement.period >= before:
                continue
            if statement.status == StatementStatus.CLOSED:
                return PreviousBalanceSuggestion(
                    value=statement.next_month_balance,
                    is_editable=False,
                    source_statement_id=statement.id,
                )
        return PreviousBalanceSuggestion(value=partner.running_balance, is_editable=True)

    def resolve(
        self,
        suggestion: PreviousBalanceSuggestion,
        supplied: Optional[Decimal],
    ) -> tuple[Decimal, bool, bool]:
        """
        Decide the previous balance a new statement opens with.

        Returns:
            (previous_balance, locked, overridden)
            locked: the value is anchored to a closed period
            overridden: a supplied value broke continuity (advisory mode only)

        Raises:
            LedgerValidationError: If continuity is enforced and supplied
                differs from a non-editable suggestion
        """
        if supplied is None:
            return suggestion.value, not suggestion.is_editable, False
        if suggestion.is_editable:
            return supplied, False, False
        if supplied == suggestion.value:
            return supplied, True, False

        if self._settings.enforce_balance_continuity:
            raise LedgerValidationError(
                "Previous balance must equal the last closed period's balance",
                [ValidationIssue(
                    field="previous_balance",
                    issue_type="continuity",
                    message=(
                        f"Expected {suggestion.value} carried from statement "
                        f"{suggestion.source_statement_id}, got {supplied}"
                    ),
                    severity="error",
                )],
            )

        logger.warning(
            "continuity_not_enforced",
            suggested=str(suggestion.value),
            supplied=str(supplied),
            source_statement_id=suggestion.source_statement_id,
        )
        return supplied, False, True
