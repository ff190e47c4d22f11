"""
Tests for the shared database plumbing.

============================================================
TEST SCENARIOS
============================================================
1. URL resolution from the environment
2. initialize_database creates the evidence and audit tables
3. transaction_scope rolls back on any exception and wraps
   SQLAlchemy failures
4. Unreachable database raises DatabaseConnectionError

============================================================
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from sqlalchemy import inspect, select, text
from sqlalchemy.exc import OperationalError

from core.exceptions import PersistenceError
from database import (
    DatabaseConnectionError,
    DatabasePersistenceError,
    create_database_engine,
    get_database_url,
    get_session_factory,
    initialize_database,
    transaction_scope,
    verify_database_connection,
)
from readiness import ReadinessEvidence, ReadinessRequest, ReadinessResponse, ReadinessStatus
from readiness.models import ReadinessEvidenceRecord
from readiness.repository import EvidenceRepository


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def engine():
    engine = create_database_engine("sqlite://")
    initialize_database(engine)
    yield engine
    engine.dispose()


def evidence(evaluation_id: str = "eval-1") -> ReadinessEvidence:
    response = ReadinessResponse(
        evaluation_id=evaluation_id,
        status=ReadinessStatus.READY,
        summary="All requirements met. Token launch can proceed.",
        can_proceed=True,
        details=None,
        evaluated_at=NOW,
    )
    return ReadinessEvidence.from_evaluation(ReadinessRequest(user_id="user-1"), response, NOW)


# ============================================================
# URL RESOLUTION
# ============================================================

class TestDatabaseUrl:

    def test_sync_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL_SYNC", "postgresql://db/readiness")
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://db/other")

        assert get_database_url() == "postgresql://db/readiness"

    def test_async_driver_is_stripped(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL_SYNC", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://db/readiness")

        assert get_database_url() == "postgresql://db/readiness"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL_SYNC", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)

        assert get_database_url() == "sqlite:///./readiness.db"


# ============================================================
# INITIALIZATION
# ============================================================

class TestInitialization:

    def test_tables_created(self, engine):
        tables = set(inspect(engine).get_table_names())

        assert {"readiness_evidence", "entitlement_audit_entries"} <= tables

    def test_connection_verified(self, engine):
        assert verify_database_connection(engine)

    def test_connection_failure(self):
        broken = MagicMock()
        broken.connect.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))

        with pytest.raises(DatabaseConnectionError):
            verify_database_connection(broken)


# ============================================================
# TRANSACTIONS
# ============================================================

class TestTransactionScope:

    def test_commit(self, engine):
        factory = get_session_factory(engine)

        with transaction_scope(factory) as session:
            EvidenceRepository(session).add(evidence())

        with transaction_scope(factory) as session:
            assert session.execute(select(ReadinessEvidenceRecord)).scalars().all()

    def test_rollback_on_application_error(self, engine):
        factory = get_session_factory(engine)

        with pytest.raises(ValueError):
            with transaction_scope(factory) as session:
                EvidenceRepository(session).add(evidence())
                raise ValueError("abort")

        with transaction_scope(factory) as session:
            assert session.execute(select(ReadinessEvidenceRecord)).scalars().all() == []

    def test_sqlalchemy_error_is_wrapped(self, engine):
        factory = get_session_factory(engine)

        with pytest.raises(DatabasePersistenceError) as exc_info:
            with transaction_scope(factory) as session:
                session.execute(text("SELECT * FROM missing_table"))

        assert isinstance(exc_info.value, PersistenceError)
