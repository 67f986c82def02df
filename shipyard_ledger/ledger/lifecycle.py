"""
Statement Lifecycle Manager

Owns every state change of project and partner statements:
creation, line/field mutation, close, reopen, delete and recalculation.

DESIGN DECISION: Each operation is ONE document store transaction.
- Derived totals are recomputed inside the same transaction as the
  write that changed their inputs, so a line without its totals is never
  observable.
- Close and reopen write the statement AND the owner's running balance
  in the same transaction; either both land or neither does.
- A TransactionConflictError means another writer got there first. The
  whole operation is re-run from fresh reads (at most
  transaction_retry_attempts times); on the re-run a concurrent close is
  seen as CLOSED and fails with InvalidStateError.

Audit events are written after commit and never undo it.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Sequence, TypeVar
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from shipyard_ledger.audit import AuditLogger, create_correlation_id
from shipyard_ledger.config import LedgerSettings, get_settings
from shipyard_ledger.ledger.continuity import BalanceContinuityResolver
from shipyard_ledger.errors import (
    DuplicatePeriodError,
    InvalidStateError,
    LedgerValidationError,
    StorageUnavailableError,
    TransactionConflictError,
)
from shipyard_ledger.ledger.repository import (
    LedgerRecords,
    LineRepository,
    partner_statement_id,
)
from shipyard_ledger.ledger.totals import (
    compute_final_balance,
    compute_totals,
    partner_statement_balance,
)
from shipyard_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from shipyard_ledger.models.ledger import (
    AddLine,
    HistoryChangeType,
    NewStatementLine,
    PartnerStatement,
    PreviousBalanceSuggestion,
    ProjectStatement,
    RemoveLine,
    SetPreviousBalance,
    StatementHistoryEntry,
    StatementLine,
    StatementStatus,
    TransferAction,
    UpdateLine,
    ValidationIssue,
    new_id,
    utc_now,
)
from shipyard_ledger.services.storage import DocumentStore, Transaction
from shipyard_ledger.validation import StatementInputValidator


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class LineChange(NamedTuple):
    """Result of a line operation: the recomputed statement and the line touched."""
    statement: ProjectStatement
    line_id: str


class Recalculation(NamedTuple):
    statement: Any
    changed: bool


class _StatementLifecycle:
    """Shared plumbing: transactions with conflict retry, audit, validation."""

    entity_type = "statement"

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[StatementInputValidator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or StatementInputValidator(self._settings)
        self._continuity = BalanceContinuityResolver(self._settings)
        self._clock = clock or utc_now

    async def _run(
        self,
        operation: str,
        entity_id: str,
        fn: Callable[[Transaction, LedgerRecords], Awaitable[T]],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """
        Run fn inside one transaction, re-running it on a commit conflict.

        Raises:
            TransactionConflictError: If every attempt lost the race
            StorageUnavailableError: If the store could not be reached
        """
        def on_conflict(retry_state: RetryCallState) -> None:
            self._audit_logger.log_local(
                AuditEventBuilder.transaction_conflict(
                    operation, entity_id, retry_state.attempt_number, correlation_id
                )
            )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TransactionConflictError),
                stop=stop_after_attempt(self._settings.transaction_retry_attempts),
                before_sleep=on_conflict,
                reraise=True,
            ):
                with attempt:
                    async with self._store.transaction() as txn:
                        result = await fn(txn, LedgerRecords(txn))
        except StorageUnavailableError as e:
            # audit_log lives in the same store; local log only
            self._audit_logger.log_local(
                AuditEventBuilder.storage_failure(operation, entity_id, str(e), correlation_id)
            )
            raise
        return result

    async def _read(self, fn: Callable[[Transaction, LedgerRecords], Awaitable[T]]) -> T:
        async with self._store.transaction() as txn:
            return await fn(txn, LedgerRecords(txn))

    async def _audit(self, *events: Optional[AuditEvent]) -> None:
        for event in events:
            if event is not None:
                await self._audit_logger.log(event)

    def _recalculation_event(
        self,
        event_type: AuditEventType,
        statement_id: str,
        balance: Decimal,
        changed: bool,
        actor: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEventBuilder.statement_recalculated(
            event_type, self.entity_type, statement_id, balance, changed, actor, correlation_id
        )

    def _continuity_event(
        self,
        owner_id: str,
        suggestion: PreviousBalanceSuggestion,
        supplied: Optional[Decimal],
        overridden: bool,
        actor: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Optional[AuditEvent]:
        if not overridden:
            return None
        return AuditEventBuilder.continuity_overridden(
            self.entity_type, owner_id, suggestion.value, supplied, actor, correlation_id
        )


# =============================================================================
# PROJECT STATEMENTS
# =============================================================================

class ProjectStatementLifecycle(_StatementLifecycle):
    """
    Project statements: DRAFT while lines change, CLOSED once the final
    balance has been carried into the project's running balance.

    Reopen is a policy switch (LedgerSettings.allow_project_reopen).
    """

    entity_type = "project_statement"

    async def create_statement(
        self,
        project_id: str,
        title: Any,
        statement_date: Any,
        previous_balance: Any = None,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        """
        Create a DRAFT statement opening with the resolved previous balance.

        Raises:
            LedgerValidationError: Bad title/date, or a previous balance that
                breaks continuity while it is enforced
            NotFoundError: If the project doesn't exist
        """
        title, statement_date = self._validator.validate_statement_header(title, statement_date)
        supplied = self._validator.validate_balance(previous_balance)
        correlation_id = create_correlation_id()

        async def create(txn: Transaction, records: LedgerRecords):
            await records.project(project_id)
            suggestion = await self._continuity.suggest_for_project(records, project_id)
            value, locked, overridden = self._continuity.resolve(suggestion, supplied)
            now = self._clock()
            statement = ProjectStatement(
                project_id=project_id,
                title=title,
                date=statement_date,
                previous_balance=value,
                previous_balance_locked=locked,
                final_balance=value,
                created_at=now,
                updated_at=now,
                created_by=actor,
                updated_by=actor,
            )
            records.save_project_statement(statement)
            return statement, suggestion, overridden

        statement, suggestion, overridden = await self._run(
            "create_project_statement", project_id, create, correlation_id
        )
        await self._audit(
            AuditEventBuilder.project_statement_created(
                statement.id, project_id, statement.previous_balance, actor, correlation_id
            ),
            self._continuity_event(project_id, suggestion, supplied, overridden, actor, correlation_id),
        )
        return statement

    async def mutate_lines(
        self,
        statement_id: str,
        operation: Any,
        actor: Optional[str] = None,
    ) -> LineChange:
        """
        Apply one add/update/remove operation and recompute the statement.

        The line write and the new totals commit together.

        Raises:
            InvalidStateError: If the statement is CLOSED
            NotFoundError: If the statement or line doesn't exist
            LedgerValidationError: If the operation is malformed
        """
        operation = self._validator.validate_line_operation(operation)
        # fixed before the retry loop so a re-run writes the same line
        line_id = new_id() if isinstance(operation, AddLine) else operation.line_id
        correlation_id = create_correlation_id()

        async def mutate(txn: Transaction, records: LedgerRecords):
            statement = await records.project_statement(statement_id)
            if statement.is_closed:
                raise InvalidStateError(
                    f"Statement {statement_id} is CLOSED; its lines can no longer change"
                )
            lines = LineRepository(txn)
            now = self._clock()

            if isinstance(operation, AddLine):
                await lines.add_line(
                    statement_id,
                    _build_line(statement_id, line_id, operation.line, now, actor),
                )
            elif isinstance(operation, UpdateLine):
                await lines.update_line(statement_id, line_id, operation.patches, now)
            else:
                await lines.remove_line(statement_id, line_id)

            updated = _with_totals(statement, await lines.list_lines(statement_id))
            updated = updated.model_copy(update={"updated_at": now, "updated_by": actor})
            updated = self._validator.validate_derived(updated)
            records.save_project_statement(updated)
            return updated

        statement = await self._run(f"{operation.op}_line", statement_id, mutate, correlation_id)
        event_type = {
            "add": AuditEventType.STATEMENT_LINE_ADDED,
            "update": AuditEventType.STATEMENT_LINE_UPDATED,
            "remove": AuditEventType.STATEMENT_LINE_REMOVED,
        }[operation.op]
        await self._audit(
            AuditEventBuilder.line_changed(
                event_type, statement_id, line_id, statement.final_balance, actor, correlation_id
            )
        )
        return LineChange(statement, line_id)

    async def add_line(
        self,
        statement_id: str,
        direction: Any,
        category: Any,
        amount: Any,
        is_paid: bool = False,
        description: str = "",
        actor: Optional[str] = None,
    ) -> str:
        """Add a line and return its id."""
        change = await self.mutate_lines(
            statement_id,
            {
                "op": "add",
                "line": {
                    "direction": direction,
                    "category": category,
                    "amount": amount,
                    "is_paid": is_paid,
                    "description": description,
                },
            },
            actor,
        )
        return change.line_id

    async def update_line(
        self,
        statement_id: str,
        line_id: str,
        patches: Sequence[Any],
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        change = await self.mutate_lines(
            statement_id,
            {"op": "update", "line_id": line_id, "patches": list(patches)},
            actor,
        )
        return change.statement

    async def delete_line(
        self,
        statement_id: str,
        line_id: str,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        change = await self.mutate_lines(statement_id, RemoveLine(line_id=line_id), actor)
        return change.statement

    async def close(self, statement_id: str, actor: Optional[str] = None) -> ProjectStatement:
        """
        DRAFT -> CLOSED, carrying final_balance into the project's running balance.

        Raises:
            InvalidStateError: If the statement is not DRAFT
        """
        correlation_id = create_correlation_id()

        async def close(txn: Transaction, records: LedgerRecords):
            statement = await records.project_statement(statement_id)
            if statement.status != StatementStatus.DRAFT:
                raise InvalidStateError(f"Statement {statement_id} is already {statement.status.value}")

            project = await records.project(statement.project_id)
            now = self._clock()
            closed = _with_totals(statement, await LineRepository(txn).list_lines(statement_id))
            closed = closed.model_copy(update={
                "status": StatementStatus.CLOSED,
                "closed_at": now,
                "updated_at": now,
                "updated_by": actor,
            })
            closed = self._validator.validate_derived(closed)
            records.save_project_statement(closed)
            records.save_project(project.model_copy(update={"running_balance": closed.final_balance}))
            return closed, project.running_balance

        closed, old_balance = await self._run(
            "close_project_statement", statement_id, close, correlation_id
        )
        logger.info(
            "project_statement_closed",
            statement_id=statement_id,
            project_id=closed.project_id,
            final_balance=str(closed.final_balance),
        )
        await self._audit(
            AuditEventBuilder.balance_propagated(
                AuditEventType.PROJECT_STATEMENT_CLOSED,
                self.entity_type,
                statement_id,
                closed.project_id,
                old_balance,
                closed.final_balance,
                actor,
                correlation_id,
            )
        )
        return closed

    async def reopen(self, statement_id: str, actor: Optional[str] = None) -> ProjectStatement:
        """
        CLOSED -> DRAFT, restoring the project's balance to previous_balance.

        Raises:
            InvalidStateError: If reopening is disabled, the statement is not
                CLOSED, or a later statement of the project is already CLOSED
        """
        if not self._settings.allow_project_reopen:
            raise InvalidStateError("Reopening project statements is disabled")

        correlation_id = create_correlation_id()

        async def reopen(txn: Transaction, records: LedgerRecords):
            statement = await records.project_statement(statement_id)
            if statement.status != StatementStatus.CLOSED:
                raise InvalidStateError(f"Statement {statement_id} is not CLOSED")

            position = (statement.date, statement.created_at)
            for other in await records.project_statements(statement.project_id):
                if other.id != statement.id and other.is_closed and (other.date, other.created_at) > position:
                    raise InvalidStateError(
                        f"Statement {other.id} closes a later period; reopen it first"
                    )

            project = await records.project(statement.project_id)
            now = self._clock()
            reopened = statement.model_copy(update={
                "status": StatementStatus.DRAFT,
                "closed_at": None,
                "updated_at": now,
                "updated_by": actor,
            })
            records.save_project_statement(reopened)
            records.save_project(project.model_copy(update={"running_balance": statement.previous_balance}))
            return reopened, project.running_balance

        reopened, old_balance = await self._run(
            "reopen_project_statement", statement_id, reopen, correlation_id
        )
        await self._audit(
            AuditEventBuilder.balance_propagated(
                AuditEventType.PROJECT_STATEMENT_REOPENED,
                self.entity_type,
                statement_id,
                reopened.project_id,
                old_balance,
                reopened.previous_balance,
                actor,
                correlation_id,
            )
        )
        return reopened

    async def recalculate(self, statement_id: str, actor: Optional[str] = None) -> Recalculation:
        """
        Recompute totals from the persisted lines, in any status.

        Writes only if the stored figures were off. Never touches the
        project's running balance.
        """
        correlation_id = create_correlation_id()

        async def recalculate(txn: Transaction, records: LedgerRecords):
            statement = await records.project_statement(statement_id)
            recomputed = self._validator.validate_derived(
                _with_totals(statement, await LineRepository(txn).list_lines(statement_id))
            )
            changed = (
                recomputed.totals != statement.totals
                or recomputed.final_balance != statement.final_balance
            )
            if changed:
                recomputed = recomputed.model_copy(update={"updated_at": self._clock(), "updated_by": actor})
                records.save_project_statement(recomputed)
            return Recalculation(recomputed, changed)

        result = await self._run(
            "recalculate_project_statement", statement_id, recalculate, correlation_id
        )
        await self._audit(self._recalculation_event(
            AuditEventType.PROJECT_STATEMENT_RECALCULATED,
            statement_id,
            result.statement.final_balance,
            result.changed,
            actor,
            correlation_id,
        ))
        return result

    async def set_transfer_action(
        self,
        statement_id: str,
        action: Any,
        actor: Optional[str] = None,
    ) -> ProjectStatement:
        """Record what happened to the cash. Informational; any status."""
        try:
            action = TransferAction(action)
        except ValueError as e:
            raise LedgerValidationError(
                f"Unknown transfer action: {action}",
                [ValidationIssue(
                    field="transfer_action",
                    issue_type="enum",
                    message=f"Expected one of {[a.value for a in TransferAction]}",
                    severity="error",
                )],
            ) from e

        correlation_id = create_correlation_id()

        async def set_action(txn: Transaction, records: LedgerRecords):
            statement = await records.project_statement(statement_id)
            updated = statement.model_copy(update={
                "transfer_action": action,
                "updated_at": self._clock(),
                "updated_by": actor,
            })
            records.save_project_statement(updated)
            return updated

        statement = await self._run("set_transfer_action", statement_id, set_action, correlation_id)
        await self._audit(AuditEventBuilder.transfer_action_set(
            statement_id, action.value, actor, correlation_id
        ))
        return statement

    async def get_statement(self, statement_id: str) -> ProjectStatement:
        return await self._read(lambda txn, records: records.project_statement(statement_id))

    async def list_statements(self, project_id: str) -> list[ProjectStatement]:
        async def read(txn: Transaction, records: LedgerRecords):
            await records.project(project_id)
            return await records.project_statements(project_id)

        return await self._read(read)

    async def list_lines(self, statement_id: str) -> list[StatementLine]:
        async def read(txn: Transaction, records: LedgerRecords):
            await records.project_statement(statement_id)
            return await LineRepository(txn).list_lines(statement_id)

        return await self._read(read)

    async def suggest_previous_balance(
        self,
        project_id: str,
        before: Optional[date] = None,
    ) -> PreviousBalanceSuggestion:
        return await self._read(
            lambda txn, records: self._continuity.suggest_for_project(records, project_id, before)
        )


def _build_line(
    statement_id: str,
    line_id: str,
    line: NewStatementLine,
    now: datetime,
    actor: Optional[str],
) -> StatementLine:
    return StatementLine(
        id=line_id,
        statement_id=statement_id,
        direction=line.direction,
        category=line.category,
        amount=line.amount,
        is_paid=line.is_paid,
        description=line.description,
        paid_at=now if line.is_paid else None,
        created_at=now,
        updated_at=now,
        created_by=actor,
    )


def _with_totals(statement: ProjectStatement, lines: list[StatementLine]) -> ProjectStatement:
    totals = compute_totals(lines)
    return statement.model_copy(update={
        "totals": totals,
        "final_balance": compute_final_balance(statement.previous_balance, totals),
    })


# =============================================================================
# PARTNER STATEMENTS
# =============================================================================

class PartnerStatementLifecycle(_StatementLifecycle):
    """
    Monthly partner statements, one per (partner, month, year).

    Unlike project statements they may always be reopened: reopening
    undoes the close by restoring the partner's running balance to the
    statement's previous balance. Every change is recorded in the
    statement's history.
    """

    entity_type = "partner_statement"

    def _history(
        self,
        statement: PartnerStatement,
        change_type: HistoryChangeType,
        previous: Optional[PartnerStatement],
        now: datetime,
        actor: Optional[str],
    ) -> StatementHistoryEntry:
        return StatementHistoryEntry(
            statement_id=statement.id,
            partner_id=statement.partner_id,
            change_type=change_type,
            previous_data=previous.model_dump(mode="json") if previous else {},
            changed_at=now,
            changed_by=actor or "system",
        )

    async def create_statement(
        self,
        partner_id: str,
        month: Any,
        year: Any,
        fields: Any = None,
        actor: Optional[str] = None,
    ) -> PartnerStatement:
        """
        Create the DRAFT statement of one partner-month.

        Raises:
            DuplicatePeriodError: If the partner already has this period
            LedgerValidationError: Bad figures or a continuity violation
            NotFoundError: If the partner doesn't exist
        """
        month, year, figures = self._validator.validate_partner_fields(month, year, fields)
        statement_id = partner_statement_id(partner_id, year, month)
        correlation_id = create_correlation_id()

        async def create(txn: Transaction, records: LedgerRecords):
            await records.partner(partner_id)
            if await records.partner_statement_exists(statement_id):
                raise DuplicatePeriodError(partner_id, month, year)

            suggestion = await self._continuity.suggest_for_partner(records, partner_id, (year, month))
            value, locked, overridden = self._continuity.resolve(suggestion, figures.previous_balance)
            now = self._clock()
            statement = PartnerStatement(
                id=statement_id,
                partner_id=partner_id,
                month=month,
                year=year,
                previous_balance=value,
                previous_balance_locked=locked,
                personal_expense_reimbursement=figures.personal_expense_reimbursement,
                monthly_salary=figures.monthly_salary,
                profit_share=figures.profit_share,
                actual_withdrawn=figures.actual_withdrawn,
                note=figures.note,
                created_at=now,
                updated_at=now,
                created_by=actor,
                updated_by=actor,
            )
            statement = self._validator.validate_derived(_with_next_month_balance(statement))
            records.save_partner_statement(statement)
            records.append_history(self._history(statement, HistoryChangeType.CREATE, None, now, actor))
            return statement, suggestion, overridden

        statement, suggestion, overridden = await self._run(
            "create_partner_statement", statement_id, create, correlation_id
        )
        await self._audit(
            AuditEventBuilder.partner_statement_changed(
                AuditEventType.PARTNER_STATEMENT_CREATED,
                statement.id,
                partner_id,
                statement.next_month_balance,
                actor,
                correlation_id,
            ),
            self._continuity_event(
                partner_id, suggestion, figures.previous_balance, overridden, actor, correlation_id
            ),
        )
        return statement

    async def update(
        self,
        statement_id: str,
        patches: Sequence[Any],
        actor: Optional[str] = None,
    ) -> PartnerStatement:
        """
        Apply field updates to a DRAFT statement and recompute its balance.

        A previous balance anchored to a closed period can only be changed
        when continuity is not enforced.

        Raises:
            InvalidStateError: If the statement is CLOSED
            LedgerValidationError: Bad figures or a continuity violation
        """
        patches = self._validator.validate_partner_patches(patches)

        correlation_id = create_correlation_id()

        async def update(txn: Transaction, records: LedgerRecords):
            statement = await records.partner_statement(statement_id)
            if statement.is_closed:
                raise InvalidStateError(f"Statement {statement_id} is CLOSED; reopen it to edit")

            now = self._clock()
            data = statement.model_dump()
            overridden = None
            for patch in patches:
                if (
                    isinstance(patch, SetPreviousBalance)
                    and statement.previous_balance_locked
                    and patch.value != statement.previous_balance
                ):
                    overridden = self._override_locked_balance(statement, patch.value)
                    data["previous_balance_locked"] = False
                data.update(patch.changes(now, statement))
            data.update(updated_at=now, updated_by=actor)

            updated = self._validator.validate_derived(
                _with_next_month_balance(PartnerStatement.model_validate(data))
            )
            records.save_partner_statement(updated)
            records.append_history(self._history(updated, HistoryChangeType.UPDATE, statement, now, actor))
            return updated, overridden

        updated, overridden = await self._run(
            "update_partner_statement", statement_id, update, correlation_id
        )
        await self._audit(
            AuditEventBuilder.partner_statement_changed(
                AuditEventType.PARTNER_STATEMENT_UPDATED,
                statement_id,
                updated.partner_id,
                updated.next_month_balance,
                actor,
                correlation_id,
                fields=[patch.field for patch in patches],
            ),
            overridden and AuditEventBuilder.continuity_overridden(
                self.entity_type, updated.partner_id, overridden[0], overridden[1], actor, correlation_id
            ),
        )
        return updated

    def _override_locked_balance(
        self,
        statement: PartnerStatement,
        supplied: Decimal,
    ) -> tuple[Decimal, Decimal]:
        suggestion = PreviousBalanceSuggestion(
            value=statement.previous_balance,
            is_editable=False,
            source_statement_id=statement.id,
        )
        # raises when continuity is enforced
        self._continuity.resolve(suggestion, supplied)
        return statement.previous_balance, supplied

    async def close(self, statement_id: str, actor: Optional[str] = None) -> PartnerStatement:
        """
        DRAFT -> CLOSED, carrying next_month_balance into the partner's running balance.

        Raises:
            InvalidStateError: If the statement is not DRAFT
        """
        correlation_id = create_correlation_id()

        async def close(txn: Transaction, records: LedgerRecords):
            statement = await records.partner_statement(statement_id)
            if statement.status != StatementStatus.DRAFT:
                raise InvalidStateError(f"Statement {statement_id} is already {statement.status.value}")

            partner = await records.partner(statement.partner_id)
            now = self._clock()
            closed = _with_next_month_balance(statement).model_copy(update={
                "status": StatementStatus.CLOSED,
                "closed_at": now,
                "updated_at": now,
                "updated_by": actor,
            })
            closed = self._validator.validate_derived(closed)
            records.save_partner_statement(closed)
            records.save_partner(partner.model_copy(update={"running_balance": closed.next_month_balance}))
            records.append_history(self._history(closed, HistoryChangeType.CLOSE, statement, now, actor))
            return closed, partner.running_balance

        closed, old_balance = await self._run(
            "close_partner_statement", statement_id, close, correlation_id
        )
        logger.info(
            "partner_statement_closed",
            statement_id=statement_id,
            partner_id=closed.partner_id,
            next_month_balance=str(closed.next_month_balance),
        )
        await self._audit(
            AuditEventBuilder.balance_propagated(
                AuditEventType.PARTNER_STATEMENT_CLOSED,
                self.entity_type,
                statement_id,
                closed.partner_id,
                old_balance,
                closed.next_month_balance,
                actor,
                correlation_id,
            )
        )
        return closed

    async def reopen(self, statement_id: str, actor: Optional[str] = None) -> PartnerStatement:
        """
        CLOSED -> DRAFT, restoring the partner's running balance to the
        statement's previous balance.

        Raises:
            InvalidStateError: If the statement is not CLOSED or a later
                period of the same partner is already CLOSED
        """
        correlation_id = create_correlation_id()

        async def reopen(txn: Transaction, records: LedgerRecords):
            statement = await records.partner_statement(statement_id)
            if statement.status != StatementStatus.CLOSED:
                raise InvalidStateError(f"Statement {statement_id} is not CLOSED")

            for other in await records.partner_statements(statement.partner_id):
                if other.is_closed and other.period > statement.period:
                    raise InvalidStateError(
                        f"Period {other.year}-{other.month:02d} is already CLOSED; reopen it first"
                    )

            partner = await records.partner(statement.partner_id)
            now = self._clock()
            reopened = statement.model_copy(update={
                "status": StatementStatus.DRAFT,
                "closed_at": None,
                "updated_at": now,
                "updated_by": actor,
            })
            records.save_partner_statement(reopened)
            records.save_partner(partner.model_copy(update={"running_balance": statement.previous_balance}))
            records.append_history(self._history(reopened, HistoryChangeType.REOPEN, statement, now, actor))
            return reopened, partner.running_balance

        reopened, old_balance = await self._run(
            "reopen_partner_statement", statement_id, reopen, correlation_id
        )
        await self._audit(
            AuditEventBuilder.balance_propagated(
                AuditEventType.PARTNER_STATEMENT_REOPENED,
                self.entity_type,
                statement_id,
                reopened.partner_id,
                old_balance,
                reopened.previous_balance,
                actor,
                correlation_id,
            )
        )
        return reopened

    async def delete(self, statement_id: str, actor: Optional[str] = None) -> None:
        """
        Remove a DRAFT statement and its history.

        Raises:
            InvalidStateError: If the statement is CLOSED
        """
        correlation_id = create_correlation_id()

        async def delete(txn: Transaction, records: LedgerRecords):
            statement = await records.partner_statement(statement_id)
            if statement.is_closed:
                raise InvalidStateError(f"Statement {statement_id} is CLOSED and cannot be deleted")
            await records.delete_partner_statement(statement_id)
            return statement

        statement = await self._run("delete_partner_statement", statement_id, delete, correlation_id)
        await self._audit(
            AuditEventBuilder.partner_statement_changed(
                AuditEventType.PARTNER_STATEMENT_DELETED,
                statement_id,
                statement.partner_id,
                statement.next_month_balance,
                actor,
                correlation_id,
            )
        )

    async def recalculate(self, statement_id: str, actor: Optional[str] = None) -> Recalculation:
        """Recompute next_month_balance from the stored figures, in any status."""
        correlation_id = create_correlation_id()

        async def recalculate(txn: Transaction, records: LedgerRecords):
            statement = await records.partner_statement(statement_id)
            recomputed = self._validator.validate_derived(_with_next_month_balance(statement))
            changed = recomputed.next_month_balance != statement.next_month_balance
            if changed:
                recomputed = recomputed.model_copy(update={"updated_at": self._clock(), "updated_by": actor})
                records.save_partner_statement(recomputed)
            return Recalculation(recomputed, changed)

        result = await self._run(
            "recalculate_partner_statement", statement_id, recalculate, correlation_id
        )
        await self._audit(self._recalculation_event(
            AuditEventType.PARTNER_STATEMENT_RECALCULATED,
            statement_id,
            result.statement.next_month_balance,
            result.changed,
            actor,
            correlation_id,
        ))
        return result

    async def get_statement(self, statement_id: str) -> PartnerStatement:
        return await self._read(lambda txn, records: records.partner_statement(statement_id))

    async def list_statements(self, partner_id: str) -> list[PartnerStatement]:
        async def read(txn: Transaction, records: LedgerRecords):
            await records.partner(partner_id)
            return await records.partner_statements(partner_id)

        return await self._read(read)

    async def get_history(self, statement_id: str) -> list[StatementHistoryEntry]:
        """History entries, newest first."""
        return await self._read(lambda txn, records: records.history(statement_id))

    async def get_last_closed_statement(self, partner_id: str) -> Optional[PartnerStatement]:
        for statement in await self.list_statements(partner_id):
            if statement.is_closed:
                return statement
        return None

    async def suggest_previous_balance(
        self,
        partner_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> PreviousBalanceSuggestion:
        """Suggestion for a new statement; pass month/year to ignore later periods."""
        before = (year, month) if month is not None and year is not None else None
        return await self._read(
            lambda txn, records: self._continuity.suggest_for_partner(records, partner_id, before)
        )


def _with_next_month_balance(statement: PartnerStatement) -> PartnerStatement:
    return statement.model_copy(update={"next_month_balance": partner_statement_balance(statement)})
