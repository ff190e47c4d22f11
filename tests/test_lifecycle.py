"""
Tests for the v2 lifecycle readiness service.

============================================================
TEST SCENARIOS
============================================================
1. v2 report carries score, confidence, blocking conditions,
   evidence reference and caveats
2. Correlation id is generated when absent
3. Aggregator crash -> Blocked v2 fallback
4. Evidence retrieval: found, missing, store error
5. v2 metrics

============================================================
"""

import json
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from core import InMemoryMetricsCollector, MockClock, error_codes
from entitlement_engine import EntitlementEngine, InMemoryUsageSource
from readiness import (
    AccountReadinessState,
    DataFreshness,
    EvidenceType,
    InMemoryAccountReadinessProbe,
    InMemoryKycStatusProvider,
    KycStatus,
    LifecycleReadinessService,
    ReadinessAggregator,
    ReadinessConfig,
    ReadinessRequest,
    ReadinessStatus,
)
from readiness.aggregator import SYSTEM_ERROR_SUMMARY
from readiness.lifecycle import EVIDENCE_RETRIEVAL_ERROR


USER = "user-1"


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def account_probe():
    probe = InMemoryAccountReadinessProbe()
    probe.set_state(USER, AccountReadinessState.READY, account_address="ADDR-1")
    return probe


@pytest.fixture
def kyc():
    return InMemoryKycStatusProvider({USER: KycStatus.APPROVED})


@pytest.fixture
def aggregator(account_probe, kyc, clock):
    return ReadinessAggregator(
        entitlement_engine=EntitlementEngine(InMemoryUsageSource(), clock=clock),
        account_probe=account_probe,
        kyc_provider=kyc,
        config=ReadinessConfig(alert_on_blocked=False),
        clock=clock,
    )


@pytest.fixture
def metrics():
    return InMemoryMetricsCollector()


@pytest.fixture
def service(aggregator, metrics, clock):
    return LifecycleReadinessService(aggregator, metrics_sink=metrics, clock=clock)


# ============================================================
# V2 EVALUATION
# ============================================================

class TestEvaluateReadinessV2:

    @pytest.mark.asyncio
    async def test_ready_report(self, service):
        report = await service.evaluate_readiness_v2(
            ReadinessRequest(user_id=USER, token_type="ASA", correlation_id="corr-1")
        )

        assert report.status == ReadinessStatus.READY
        assert report.can_proceed
        assert report.api_version == "v2.0"
        assert report.correlation_id == "corr-1"
        assert report.readiness_score.overall_score == pytest.approx(0.75)
        assert report.readiness_score.scoring_version == "v2.0"
        assert report.confidence.data_completeness == 60.0
        assert report.blocking_conditions == ()
        assert "Evaluation based on 60% of expected factors" in report.caveats

        reference = report.evidence_references[0]
        assert reference.evidence_id == report.evaluation_id
        assert reference.type == EvidenceType.AUDIT_LOG
        assert reference.metadata["can_proceed"] == "true"
        assert reference.metadata["status"] == "Ready"

    @pytest.mark.asyncio
    async def test_blocked_report(self, service, account_probe):
        account_probe.set_state(USER, AccountReadinessState.NOT_INITIALIZED)

        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        assert report.status == ReadinessStatus.BLOCKED
        assert [c.type for c in report.blocking_conditions] == ["AccountNotReady"]
        assert report.blocking_conditions[0].error_code == error_codes.ACCOUNT_NOT_READY
        assert report.readiness_score.blocking_factors == ("account_readiness",)
        assert report.evidence_references[0].metadata["can_proceed"] == "false"

    @pytest.mark.asyncio
    async def test_correlation_id_generated(self, service):
        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        assert report.correlation_id
        evidence = await service.get_evidence(report.evaluation_id)
        assert evidence.evidence.metadata["correlation_id"] == report.correlation_id

    @pytest.mark.asyncio
    async def test_missing_user_has_no_evidence_reference(self, service):
        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=""))

        assert report.status == ReadinessStatus.BLOCKED
        assert report.evidence_references == ()
        assert report.confidence.freshness == DataFreshness.UNKNOWN

    @pytest.mark.asyncio
    async def test_aggregator_crash_falls_back(self, aggregator, clock):
        broken = MagicMock(wraps=aggregator)
        broken.config = aggregator.config
        broken.evaluate_readiness = AsyncMock(side_effect=RuntimeError("boom"))
        service = LifecycleReadinessService(broken, clock=clock)

        report = await service.evaluate_readiness_v2(
            ReadinessRequest(user_id=USER, correlation_id="corr-9")
        )

        assert report.status == ReadinessStatus.BLOCKED
        assert not report.can_proceed
        assert report.summary == SYSTEM_ERROR_SUMMARY
        assert report.confidence.overall_confidence == 0.0
        assert report.confidence.data_completeness == 0.0
        assert report.remediation_tasks[0].error_code == error_codes.INTERNAL_SERVER_ERROR
        assert report.correlation_id == "corr-9"

    @pytest.mark.asyncio
    async def test_metrics(self, service, metrics):
        await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        assert metrics.get_counter("lifecycle_readiness_v2_evaluation") == 1
        assert metrics.get_counter("lifecycle_readiness_v2_status_ready") == 1
        assert metrics.get_histogram("lifecycle_readiness_v2_score").max_value == pytest.approx(0.75)
        assert metrics.get_counter("lifecycle_readiness_v2_blocked") == 0

    @pytest.mark.asyncio
    async def test_report_serializes(self, service):
        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        data = json.loads(json.dumps(report.to_dict()))

        assert data["status"] == "Ready"
        assert data["readiness_score"]["meets_threshold"] is False
        assert len(data["readiness_score"]["factors"]) == 3


# ============================================================
# EVIDENCE RETRIEVAL
# ============================================================

class TestGetEvidence:

    @pytest.mark.asyncio
    async def test_found_with_content(self, service):
        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        result = await service.get_evidence(report.evaluation_id, include_content=True)

        assert result.success
        assert result.evidence.summary == f"Token launch readiness evaluation for user {USER}"
        assert result.evidence.data_hash
        assert json.loads(result.content_json)["evaluation_id"] == report.evaluation_id

    @pytest.mark.asyncio
    async def test_content_omitted_by_default(self, service):
        report = await service.evaluate_readiness_v2(ReadinessRequest(user_id=USER))

        result = await service.get_evidence(report.evaluation_id)

        assert result.success
        assert result.content_json is None

    @pytest.mark.asyncio
    async def test_not_found(self, service):
        result = await service.get_evidence("eval-missing")

        assert not result.success
        assert result.error_message == "Evidence not found: eval-missing"

    @pytest.mark.asyncio
    async def test_store_error(self, account_probe, kyc, clock):
        store = AsyncMock()
        store.get_by_evaluation_id.side_effect = RuntimeError("db down")
        aggregator = ReadinessAggregator(
            entitlement_engine=EntitlementEngine(InMemoryUsageSource(), clock=clock),
            account_probe=account_probe,
            kyc_provider=kyc,
            evidence_store=store,
            clock=clock,
        )
        service = LifecycleReadinessService(aggregator, clock=clock)

        result = await service.get_evidence("eval-1")

        assert not result.success
        assert result.error_message == EVIDENCE_RETRIEVAL_ERROR

    def test_health_check(self, service):
        health = service.health_check()

        assert health["healthy"] is True
        assert health["scoring_version"] == "v2.0"
        assert health["aggregator"]["healthy"] is True
