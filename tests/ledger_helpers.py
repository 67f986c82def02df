"""Helpers shared by the ledger tests (imported directly, not fixtures)."""

from datetime import datetime, timedelta, timezone

from shipyard_ledger.config import LedgerSettings
from shipyard_ledger.ledger import (
    LedgerRecords,
    LineRepository,
    compute_final_balance,
    compute_totals,
)
from shipyard_ledger.ledger.totals import partner_statement_balance
from shipyard_ledger.models import Partner, Project
from shipyard_ledger.services.storage import InMemoryDocumentStore, StorageUnavailableError


def make_settings(**overrides) -> LedgerSettings:
    values = {
        "allow_project_reopen": False,
        "enforce_balance_continuity": True,
        "transaction_retry_attempts": 2,
    }
    values.update(overrides)
    return LedgerSettings(_env_file=None, **values)


class SteppingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


async def load_project(store, project_id: str) -> Project:
    async with store.transaction() as txn:
        return await LedgerRecords(txn).project(project_id)


async def load_partner(store, partner_id: str) -> Partner:
    async with store.transaction() as txn:
        return await LedgerRecords(txn).partner(partner_id)


async def assert_balance_invariant(store, statement_id: str) -> None:
    """
    Recompute a project statement from its persisted lines and compare
    with the persisted totals and final balance.
    """
    async with store.transaction() as txn:
        statement = await LedgerRecords(txn).project_statement(statement_id)
        lines = await LineRepository(txn).list_lines(statement_id)
    totals = compute_totals(lines)
    assert statement.totals == totals
    assert statement.final_balance == compute_final_balance(statement.previous_balance, totals)
    assert statement.final_balance == (
        statement.previous_balance + totals.total_income - totals.total_expense_paid
    )


async def assert_partner_invariant(store, statement_id: str) -> None:
    async with store.transaction() as txn:
        statement = await LedgerRecords(txn).partner_statement(statement_id)
    assert statement.next_month_balance == partner_statement_balance(statement)


class FailingCommitStore(InMemoryDocumentStore):
    """Fails the next commit as if the backend were unreachable."""

    def __init__(self):
        super().__init__()
        self.fail_next_commit = False

    async def _commit(self, txn):
        if self.fail_next_commit:
            self.fail_next_commit = False
            raise StorageUnavailableError("backend unreachable")
        await super()._commit(txn)


class RacingStore(InMemoryDocumentStore):
    """Runs a competing operation just before the next commit."""

    def __init__(self):
        super().__init__()
        self.competitor = None

    async def _commit(self, txn):
        competitor, self.competitor = self.competitor, None
        if competitor is not None:
            await competitor()
        await super()._commit(txn)
