"""
Pytest fixtures for the portal workflow test suite.

Provides:
- Structured logging configuration and capture
- A fresh in-memory SQLite database per test (StaticPool, so every
  session shares the one connection)
- Deterministic clock, config, registry and actors
- Inventory / BOM lookups and a wired DocumentWorkflowService

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL).  Tables
  are dropped and recreated around every test.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from portal_config import PortalConfig, get_active_config
from portal_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from portal_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from portal_kernel.domain.clock import DeterministicClock
from portal_kernel.domain.documents import Actor, DocumentKind, Role
from portal_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from portal_modules.inventory.lookups import StaticBomLookup, StaticInventory
from portal_modules.registry import default_registry
from portal_services.document_service import DocumentWorkflowService
from tests.helpers import make_actor, make_line


DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture portal_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.request_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("portal_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh engine and schema per test.  Immutability listeners active."""
    engine = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield engine
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """A plain session; tests commit or roll back explicitly."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def config() -> PortalConfig:
    return get_active_config()


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def admin() -> Actor:
    return make_actor(Role.ADMIN)


@pytest.fixture
def manager() -> Actor:
    return make_actor(Role.MANAGER)


@pytest.fixture
def purchaser() -> Actor:
    return make_actor(Role.PURCHASER)


@pytest.fixture
def sales_rep() -> Actor:
    return make_actor(Role.SALES)


@pytest.fixture
def warehouse_clerk() -> Actor:
    return make_actor(Role.WAREHOUSE)


@pytest.fixture
def customer() -> Actor:
    return make_actor(Role.CUSTOMER)


@pytest.fixture
def inventory() -> StaticInventory:
    return StaticInventory()


@pytest.fixture
def bom_lookup() -> StaticBomLookup:
    return StaticBomLookup()


@pytest.fixture
def service(session_factory, clock, config, registry, inventory, bom_lookup):
    return DocumentWorkflowService(
        session_factory,
        registry=registry,
        clock=clock,
        config=config,
        inventory=inventory,
        bom_lookup=bom_lookup,
    )


@pytest.fixture
def po_factory(service, purchaser):
    """Create a draft purchase order through the service."""

    def _create(*, actor: Actor | None = None, lines=None, supplier_name: str = "Acme"):
        return service.create_document(
            DocumentKind.PURCHASE_ORDER,
            actor or purchaser,
            lines=lines if lines is not None else (make_line(),),
            supplier_id=uuid4(),
            supplier_name=supplier_name,
            location="JHB",
        )

    return _create
