"""
Audit Logger

One event per ledger state change: who closed or reopened which period,
and how each balance moved.

Events are written after the ledger transaction has committed. A failed
audit write is reported through the return value of AuditLogger.log; the
committed change stands.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from shipyard_ledger.config import get_settings
from shipyard_ledger.models.audit import AuditEvent, AuditSeverity
from shipyard_ledger.services.storage import DocumentStore, StorageError


AUDIT_COLLECTION = "audit_log"


def configure_logging(log_level: str = "INFO", log_json: bool = True) -> None:
    """Configure structlog on top of the standard library logger."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level))
    renderer = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_app_settings = get_settings().app
configure_logging(_app_settings.log_level, _app_settings.log_json)


class AuditLogger:
    """
    Records ledger events in the structured log and, when a store is
    given, in its audit_log collection.
    """

    def __init__(
        self,
        storage: Optional[DocumentStore] = None,
    ):
        """
        Args:
            storage: Store holding the audit_log collection; local log only when None
        """
        self._storage = storage
        self._logger = structlog.get_logger("shipyard_ledger.audit")

    def log_local(self, event: AuditEvent) -> None:
        """Write an event to the local structured log only."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log locally, then append to audit_log.

        Returns:
            False if the audit_log write failed, True otherwise
        """
        self.log_local(event)

        if self._storage:
            try:
                await self._storage.put(
                    AUDIT_COLLECTION,
                    str(event.event_id),
                    event.to_document(),
                )
                return True
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def get_events_by_entity(self, entity_id: str) -> list[AuditEvent]:
        """Persisted events about one entity, oldest first."""
        if not self._storage:
            return []
        docs = await self._storage.query(AUDIT_COLLECTION, {"entity_id": entity_id})
        events = [AuditEvent.model_validate(doc) for doc in docs]
        events.sort(key=lambda e: e.timestamp)
        return events


def create_correlation_id() -> UUID:
    """
    Id shared by every audit event one ledger operation emits.
    """
    return uuid4()
