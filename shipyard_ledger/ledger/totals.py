"""
Totals Calculator

Pure functions only: no storage, no clock, no settings. The lifecycle
manager calls these inside the same transaction as the write that
changed their inputs.
"""

from decimal import Decimal
from typing import Iterable

from shipyard_ledger.models.ledger import (
    ZERO,
    LineDirection,
    PartnerStatement,
    StatementLine,
    StatementTotals,
)


def compute_totals(lines: Iterable[StatementLine]) -> StatementTotals:
    """
    Aggregate a statement's lines.

    Income adds to total_income. Expenses add to total_expense_paid or
    total_expense_unpaid depending on is_paid. Only paid expenses reduce
    net_cash_real.
    """
    total_income = ZERO
    total_expense_paid = ZERO
    total_expense_unpaid = ZERO

    for line in lines:
        if line.direction == LineDirection.INCOME:
            total_income += line.amount
        elif line.is_paid:
            total_expense_paid += line.amount
        else:
            total_expense_unpaid += line.amount

    return StatementTotals(
        total_income=total_income,
        total_expense_paid=total_expense_paid,
        total_expense_unpaid=total_expense_unpaid,
        net_cash_real=total_income - total_expense_paid,
    )


def compute_final_balance(previous_balance: Decimal, totals: StatementTotals) -> Decimal:
    return previous_balance + totals.net_cash_real


def compute_next_month_balance(
    previous_balance: Decimal,
    personal_expense_reimbursement: Decimal,
    monthly_salary: Decimal,
    profit_share: Decimal,
    actual_withdrawn: Decimal,
) -> Decimal:
    """
    Balance a partner carries into the next month.

    Entitlements (reimbursement, salary, profit share) reduce what the
    partner owes; money actually withdrawn increases it.
    """
    entitlement = personal_expense_reimbursement + monthly_salary + profit_share
    return previous_balance + actual_withdrawn - entitlement


def partner_statement_balance(statement: PartnerStatement) -> Decimal:
    return compute_next_month_balance(
        statement.previous_balance,
        statement.personal_expense_reimbursement,
        statement.monthly_salary,
        statement.profit_share,
        statement.actual_withdrawn,
    )
