"""
Tests for readiness evidence storage.

============================================================
TEST SCENARIOS
============================================================
1. Evidence hash covers snapshots and creation time
2. In-memory store is append-only, history newest first
3. SQL store round-trips evidence, hash still verifies
4. SQL store rejects a second record for an evaluation
5. Lookup by token deployment id

============================================================
"""

import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from core.exceptions import EvidenceStoreError
from database.engine import Base, create_database_engine, get_session_factory
from readiness import (
    InMemoryEvidenceStore,
    ReadinessEvidence,
    ReadinessRequest,
    ReadinessResponse,
    ReadinessStatus,
    compute_data_hash,
)
from readiness import models as _models  # noqa: F401
from readiness.repository import SqlEvidenceStore


START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

def make_evidence(
    evaluation_id: str,
    user_id: str = "user-1",
    created_at: datetime = START,
    token_deployment_id=None,
) -> ReadinessEvidence:
    request = ReadinessRequest(user_id=user_id, token_type="ASA", correlation_id="corr-1")
    response = ReadinessResponse(
        evaluation_id=evaluation_id,
        status=ReadinessStatus.READY,
        summary="All requirements met. Token launch can proceed.",
        can_proceed=True,
        details=None,
        evaluated_at=created_at,
        correlation_id="corr-1",
    )
    return ReadinessEvidence.from_evaluation(
        request, response, created_at=created_at, token_deployment_id=token_deployment_id
    )


@pytest.fixture
def memory_store():
    return InMemoryEvidenceStore()


@pytest.fixture
def sql_store():
    engine = create_database_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield SqlEvidenceStore(get_session_factory(engine))
    engine.dispose()


# ============================================================
# HASHING
# ============================================================

class TestDataHash:

    def test_hash_verifies(self):
        evidence = make_evidence("eval-1")

        assert evidence.verify_hash()
        assert evidence.data_hash == compute_data_hash(
            "eval-1",
            "user-1",
            evidence.request_snapshot,
            evidence.response_snapshot,
            START,
        )

    def test_tampered_snapshot_fails_verification(self):
        evidence = make_evidence("eval-1")
        tampered = replace(evidence, response_snapshot=evidence.response_snapshot.replace("Ready", "Blocked"))

        assert not tampered.verify_hash()

    def test_creation_time_is_part_of_hash(self):
        first = make_evidence("eval-1")
        later = make_evidence("eval-1", created_at=START + timedelta(seconds=1))

        assert first.data_hash != later.data_hash

    def test_snapshot_replays_response(self):
        evidence = make_evidence("eval-1")

        response = evidence.to_response()

        assert response.evaluation_id == "eval-1"
        assert response.status == ReadinessStatus.READY
        assert response.evaluated_at == START


# ============================================================
# IN-MEMORY STORE
# ============================================================

class TestInMemoryEvidenceStore:

    @pytest.mark.asyncio
    async def test_first_record_wins(self, memory_store):
        original = make_evidence("eval-1")
        await memory_store.store(original)
        await memory_store.store(make_evidence("eval-1", created_at=START + timedelta(hours=1)))

        stored = await memory_store.get_by_evaluation_id("eval-1")

        assert len(memory_store) == 1
        assert stored.data_hash == original.data_hash

    @pytest.mark.asyncio
    async def test_history_newest_first_with_limit(self, memory_store):
        for i in range(3):
            await memory_store.store(make_evidence(f"eval-{i}", created_at=START + timedelta(minutes=i)))
        await memory_store.store(make_evidence("other", user_id="user-2"))

        history = await memory_store.get_history("user-1", limit=2)
        latest = await memory_store.get_latest("user-1")

        assert [e.evaluation_id for e in history] == ["eval-2", "eval-1"]
        assert latest.evaluation_id == "eval-2"

    @pytest.mark.asyncio
    async def test_history_from_date(self, memory_store):
        for i in range(3):
            await memory_store.store(make_evidence(f"eval-{i}", created_at=START + timedelta(minutes=i)))

        history = await memory_store.get_history("user-1", from_date=START + timedelta(minutes=1))

        assert [e.evaluation_id for e in history] == ["eval-2", "eval-1"]

    @pytest.mark.asyncio
    async def test_by_token_deployment(self, memory_store):
        await memory_store.store(make_evidence("eval-1", token_deployment_id="dep-1"))
        await memory_store.store(make_evidence("eval-2", token_deployment_id="dep-2"))

        matches = await memory_store.get_by_token_deployment("dep-1")

        assert [e.evaluation_id for e in matches] == ["eval-1"]

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_latest(self, memory_store):
        assert await memory_store.get_latest("nobody") is None


# ============================================================
# SQL STORE
# ============================================================

class TestSqlEvidenceStore:

    @pytest.mark.asyncio
    async def test_round_trip(self, sql_store):
        original = make_evidence("eval-1", token_deployment_id="dep-1")
        await sql_store.store(original)

        stored = await sql_store.get_by_evaluation_id("eval-1")

        assert stored == original
        assert stored.verify_hash()

    @pytest.mark.asyncio
    async def test_missing_evaluation(self, sql_store):
        assert await sql_store.get_by_evaluation_id("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_evaluation_rejected(self, sql_store):
        await sql_store.store(make_evidence("eval-1"))

        with pytest.raises(EvidenceStoreError):
            await sql_store.store(make_evidence("eval-1"))

        history = await sql_store.get_history("user-1")
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_history_newest_first(self, sql_store):
        for i in range(3):
            await sql_store.store(make_evidence(f"eval-{i}", created_at=START + timedelta(minutes=i)))

        history = await sql_store.get_history("user-1", limit=2)
        recent = await sql_store.get_history("user-1", from_date=START + timedelta(minutes=2))
        latest = await sql_store.get_latest("user-1")

        assert [e.evaluation_id for e in history] == ["eval-2", "eval-1"]
        assert [e.evaluation_id for e in recent] == ["eval-2"]
        assert latest.evaluation_id == "eval-2"

    @pytest.mark.asyncio
    async def test_by_token_deployment(self, sql_store):
        await sql_store.store(make_evidence("eval-1", token_deployment_id="dep-1"))
        await sql_store.store(make_evidence("eval-2", token_deployment_id="dep-1"))
        await sql_store.store(make_evidence("eval-3"))

        matches = await sql_store.get_by_token_deployment("dep-1")

        assert [e.evaluation_id for e in matches] == ["eval-1", "eval-2"]
