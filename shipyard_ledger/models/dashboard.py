"""
Read-side models for the dashboard.

Expenses and the company overview are maintained by plain CRUD screens;
the ledger only reads them here.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from shipyard_ledger.models.ledger import ZERO, Money, PositiveMoney, new_id


class ExpenseStatus(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"


class Expense(BaseModel):
    """A standalone company expense record."""

    id: str = Field(default_factory=new_id)
    amount: PositiveMoney
    description: str = ""
    date: date
    status: ExpenseStatus = ExpenseStatus.UNPAID
    project_id: Optional[str] = None
    is_deleted: bool = False


class CompanyOverview(BaseModel):
    """The single company-wide safe (cash box) figure."""

    company_safe_balance: Money = ZERO
    currency: str = "TRY"


class MonthlyTrendItem(BaseModel):
    """One calendar month bucket of a trend series."""

    month_key: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    total: Money = ZERO


class PartnerBalance(BaseModel):
    partner_id: str
    partner_name: str
    running_balance: Money


class DashboardSummary(BaseModel):
    """
    Summary figures across all ledger owners.

    Recomputed from current state on every request; nothing is cached.
    """

    currency: str
    company_safe_balance: Money = ZERO

    # Projects
    project_count: int = Field(default=0, ge=0)
    total_projects_balance: Money = ZERO
    total_pending_in_projects: Money = Field(
        default=ZERO,
        description="Sum of positive project balances (cash still held at shipyards)"
    )

    # Expenses
    paid_expenses_this_month: Money = ZERO

    # Partners
    partners: list[PartnerBalance] = Field(default_factory=list)
    total_partners_positive: Money = ZERO
    total_partners_negative: Money = Field(
        default=ZERO,
        description="Absolute sum of negative partner balances"
    )

    # Trends, oldest month first
    expense_trend: list[MonthlyTrendItem] = Field(default_factory=list)
    statement_net_cash_trend: list[MonthlyTrendItem] = Field(default_factory=list)
