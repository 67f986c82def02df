"""
Shared fixtures for the ledger tests.

Every test gets a fresh in-memory document store, one project and one
partner, and lifecycle managers with explicit settings (the environment
and any .env file are ignored).
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from ledger_helpers import SteppingClock, make_settings
from shipyard_ledger.audit import AuditLogger
from shipyard_ledger.config import LedgerSettings
from shipyard_ledger.ledger import PartnerStatementLifecycle, ProjectStatementLifecycle
from shipyard_ledger.ledger.repository import PARTNERS, PROJECTS, to_document
from shipyard_ledger.models import Partner, Project
from shipyard_ledger.services.storage import InMemoryDocumentStore


@pytest.fixture
def settings() -> LedgerSettings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def audit_logger(store) -> AuditLogger:
    return AuditLogger(store)


@pytest_asyncio.fixture
async def project(store) -> Project:
    project = Project(id="proj-1", name="Tuzla Dry Dock", location="Tuzla")
    await store.put(PROJECTS, project.id, to_document(project))
    return project


@pytest_asyncio.fixture
async def partner(store) -> Partner:
    partner = Partner(
        id="partner-1",
        name="Ahmet",
        share_percentage=Decimal("50"),
        base_salary=Decimal("2000.00"),
    )
    await store.put(PARTNERS, partner.id, to_document(partner))
    return partner


@pytest.fixture
def projects(store, settings, audit_logger, clock) -> ProjectStatementLifecycle:
    return ProjectStatementLifecycle(store, settings, audit_logger, clock=clock)


@pytest.fixture
def partners(store, settings, audit_logger, clock) -> PartnerStatementLifecycle:
    return PartnerStatementLifecycle(store, settings, audit_logger, clock=clock)
