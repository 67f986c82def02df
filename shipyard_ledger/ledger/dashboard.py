"""
Dashboard Aggregator

Read-only summary across projects, partners and expenses. Every call
re-reads current state inside one read transaction; nothing is cached.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

import structlog

from shipyard_ledger.config import LedgerSettings, get_settings
from shipyard_ledger.ledger.repository import (
    COMPANY_OVERVIEW,
    COMPANY_OVERVIEW_ID,
    EXPENSES,
    PARTNERS,
    PROJECT_STATEMENTS,
    PROJECTS,
)
from shipyard_ledger.models.dashboard import (
    CompanyOverview,
    DashboardSummary,
    Expense,
    ExpenseStatus,
    MonthlyTrendItem,
    PartnerBalance,
)
from shipyard_ledger.models.ledger import (
    ZERO,
    Partner,
    Project,
    ProjectStatement,
    StatementStatus,
)
from shipyard_ledger.services.storage import DocumentStore


logger = structlog.get_logger(__name__)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def trailing_month_keys(today: date, months: int) -> list[str]:
    """The last `months` calendar months ending with today's, oldest first."""
    keys = []
    year, month = today.year, today.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def _bucket(keys: list[str], items: Iterable[tuple[date, Decimal]]) -> list[MonthlyTrendItem]:
    totals = {key: ZERO for key in keys}
    for day, amount in items:
        key = month_key(day)
        if key in totals:
            totals[key] += amount
    return [MonthlyTrendItem(month_key=key, total=totals[key]) for key in keys]


class DashboardAggregator:
    """Computes the DashboardSummary from current persisted state."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._today = today or date.today

    async def get_dashboard_summary(self, today: Optional[date] = None) -> DashboardSummary:
        today = today or self._today()

        async with self._store.transaction() as txn:
            overview_doc = await txn.get(COMPANY_OVERVIEW, COMPANY_OVERVIEW_ID)
            projects = [Project.model_validate(doc) for doc in await txn.query(PROJECTS)]
            partners = [Partner.model_validate(doc) for doc in await txn.query(PARTNERS)]
            expenses = [Expense.model_validate(doc) for doc in await txn.query(EXPENSES)]
            statements = [
                ProjectStatement.model_validate(doc)
                for doc in await txn.query(PROJECT_STATEMENTS, {"status": StatementStatus.CLOSED.value})
            ]

        overview = CompanyOverview.model_validate(overview_doc) if overview_doc else CompanyOverview()

        active_projects = [p for p in projects if p.is_active]
        project_balances = [p.running_balance for p in active_projects]

        active_partners = sorted((p for p in partners if p.is_active), key=lambda p: p.name)
        partner_balances = [p.running_balance for p in active_partners]

        paid_expenses = [
            e for e in expenses
            if e.status == ExpenseStatus.PAID and not e.is_deleted
        ]
        this_month = month_key(today)

        keys = trailing_month_keys(today, self._settings.dashboard_trend_months)

        summary = DashboardSummary(
            currency=self._settings.currency,
            company_safe_balance=overview.company_safe_balance,
            project_count=len(active_projects),
            total_projects_balance=sum(project_balances, ZERO),
            total_pending_in_projects=sum((b for b in project_balances if b > 0), ZERO),
            paid_expenses_this_month=sum(
                (e.amount for e in paid_expenses if month_key(e.date) == this_month),
                ZERO,
            ),
            partners=[
                PartnerBalance(
                    partner_id=p.id,
                    partner_name=p.name,
                    running_balance=p.running_balance,
                )
                for p in active_partners
            ],
            total_partners_positive=sum((b for b in partner_balances if b > 0), ZERO),
            total_partners_negative=sum((-b for b in partner_balances if b < 0), ZERO),
            expense_trend=_bucket(keys, ((e.date, e.amount) for e in paid_expenses)),
            statement_net_cash_trend=_bucket(
                keys, ((s.date, s.totals.net_cash_real) for s in statements)
            ),
        )

        logger.debug(
            "dashboard_summary_computed",
            project_count=summary.project_count,
            partner_count=len(summary.partners),
        )
        return summary
