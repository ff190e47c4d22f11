"""
Tests for Entitlement Engine.

============================================================
TEST SCENARIOS
============================================================
1. Free tier with 3 deployments -> ENTITLEMENT_LIMIT_EXCEEDED,
   upgrade to Basic
2. Tier lattice: higher tiers never have lower ceilings or
   fewer features
3. Feature toggles deny with FEATURE_NOT_INCLUDED
4. Usage source failures deny with INTERNAL_SERVER_ERROR
5. Every decision is audited, in memory or in SQL
6. Tier lookups are cached for the configured TTL

============================================================
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from core import MockClock, error_codes
from core.exceptions import InvalidConfigError
from database.engine import Base, create_database_engine, get_session_factory
from entitlement_engine import (
    TIER_POLICIES,
    UNLIMITED,
    EntitlementCheckRequest,
    EntitlementConfig,
    EntitlementEngine,
    EntitlementOperation,
    InMemoryAuditSink,
    InMemoryUsageSource,
    SubscriptionTier,
    ceiling_at_least,
    is_operation_allowed,
)
from entitlement_engine import models as _models  # noqa: F401
from entitlement_engine.repository import SqlAuditSink


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2026, 3, 1, tzinfo=timezone.utc))


@pytest.fixture
def usage():
    return InMemoryUsageSource()


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def engine(usage, audit_sink, clock):
    return EntitlementEngine(usage, audit_sink=audit_sink, clock=clock)


def deploy_request(user_id: str = "user-1", **context) -> EntitlementCheckRequest:
    return EntitlementCheckRequest(
        user_id=user_id,
        operation=EntitlementOperation.TOKEN_DEPLOYMENT,
        operation_context=context,
        correlation_id="corr-1",
    )


# ============================================================
# TOKEN DEPLOYMENT
# ============================================================

class TestTokenDeployment:

    @pytest.mark.asyncio
    async def test_free_tier_under_limit(self, engine, usage):
        usage.record_deployment("user-1", 2)

        result = await engine.check(deploy_request())

        assert result.is_allowed
        assert result.subscription_tier == "Free"
        assert result.current_usage == {"currentDeployments": 2}
        assert result.max_allowed == {"maxDeployments": 3}

    @pytest.mark.asyncio
    async def test_free_tier_at_limit_is_denied(self, engine, usage, clock):
        usage.record_deployment("user-1", 3)

        result = await engine.check(deploy_request())

        assert not result.is_allowed
        assert result.denial_code == error_codes.ENTITLEMENT_LIMIT_EXCEEDED
        assert result.denial_reason == (
            "Token deployment limit reached for Free tier. "
            "You have deployed 3 of 3 allowed tokens this month."
        )
        assert result.upgrade_recommendation.recommended_tier == "Basic"
        assert result.policy_version == engine.config.policy_version
        assert result.correlation_id == "corr-1"
        assert result.timestamp == clock.now()

    @pytest.mark.asyncio
    async def test_enterprise_is_unlimited(self, engine, usage):
        usage.set_tier("user-1", SubscriptionTier.ENTERPRISE)
        usage.record_deployment("user-1", 10_000)

        result = await engine.check(deploy_request())

        assert result.is_allowed
        assert result.max_allowed == {"maxDeployments": UNLIMITED}

    @pytest.mark.asyncio
    async def test_missing_user_id(self, engine):
        result = await engine.check(deploy_request(user_id=""))

        assert not result.is_allowed
        assert result.denial_code == error_codes.MISSING_REQUIRED_FIELD
        assert result.denial_reason == "Missing required field: user_id"

    @pytest.mark.asyncio
    async def test_usage_source_failure_denies(self, audit_sink, clock):
        source = AsyncMock()
        source.get_user_tier.return_value = SubscriptionTier.PREMIUM
        source.get_token_deployment_count.side_effect = ConnectionError("usage db down")
        engine = EntitlementEngine(source, audit_sink=audit_sink, clock=clock)

        result = await engine.check(deploy_request())

        assert not result.is_allowed
        assert result.subscription_tier == "Unknown"
        assert result.denial_code == error_codes.INTERNAL_SERVER_ERROR

    @pytest.mark.asyncio
    async def test_same_input_same_decision(self, engine, usage, clock):
        usage.record_deployment("user-1", 3)

        first = await engine.check(deploy_request())
        clock.advance(seconds=5)
        second = await engine.check(deploy_request())

        assert first.decision_key() == second.decision_key()
        assert first.timestamp != second.timestamp


# ============================================================
# QUOTAS FROM CONTEXT
# ============================================================

class TestContextQuotas:

    @pytest.mark.asyncio
    async def test_whitelist_addition_over_limit(self, engine):
        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1",
            operation=EntitlementOperation.WHITELIST_ADDITION,
            operation_context={"currentCount": 9, "additionalCount": 2},
        ))

        assert not result.is_allowed
        assert result.denial_code == error_codes.ENTITLEMENT_LIMIT_EXCEEDED
        assert result.max_allowed == {"maxAddresses": 10}

    @pytest.mark.asyncio
    async def test_invalid_context_value(self, engine):
        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1",
            operation=EntitlementOperation.COMPLIANCE_REPORT,
            operation_context={"currentCount": "lots"},
        ))

        assert not result.is_allowed
        assert "currentCount" in result.denial_reason

    @pytest.mark.asyncio
    async def test_free_tier_has_no_audit_export(self, engine):
        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1",
            operation=EntitlementOperation.AUDIT_EXPORT,
        ))

        assert not result.is_allowed
        assert result.denial_code == error_codes.FEATURE_NOT_INCLUDED


# ============================================================
# FEATURE TOGGLES
# ============================================================

class TestFeatureToggles:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tier, allowed",
        [
            (SubscriptionTier.FREE, False),
            (SubscriptionTier.BASIC, True),
            (SubscriptionTier.ENTERPRISE, True),
        ],
    )
    async def test_api_access(self, engine, usage, tier, allowed):
        usage.set_tier("user-1", tier)

        assert await is_operation_allowed(engine, "user-1", EntitlementOperation.API_ACCESS) is allowed

    @pytest.mark.asyncio
    async def test_custom_branding_denied_below_enterprise(self, engine, usage):
        usage.set_tier("user-1", SubscriptionTier.PREMIUM)

        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1", operation=EntitlementOperation.CUSTOM_BRANDING
        ))

        assert not result.is_allowed
        assert result.denial_code == error_codes.FEATURE_NOT_INCLUDED
        assert result.upgrade_recommendation.recommended_tier == "Enterprise"

    @pytest.mark.asyncio
    async def test_unknown_operation(self, engine):
        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1", operation="TimeTravel"
        ))

        assert not result.is_allowed
        assert result.denial_code == error_codes.INVALID_REQUEST


# ============================================================
# TIER LATTICE
# ============================================================

class TestTierLattice:

    def test_ceilings_and_features_are_monotonic(self):
        tiers = sorted(TIER_POLICIES)
        for lower, higher in zip(tiers, tiers[1:]):
            low_policy, high_policy = TIER_POLICIES[lower], TIER_POLICIES[higher]
            for name, value in low_policy.ceilings().items():
                assert ceiling_at_least(high_policy.ceilings()[name], value), (higher, name)
            assert high_policy.features.is_superset_of(low_policy.features)

    def test_unlimited_dominates(self):
        assert ceiling_at_least(UNLIMITED, 1_000_000)
        assert not ceiling_at_least(50, UNLIMITED)

    def test_next_tier_stops_at_enterprise(self):
        assert SubscriptionTier.FREE.next_tier == SubscriptionTier.BASIC
        assert SubscriptionTier.ENTERPRISE.next_tier == SubscriptionTier.ENTERPRISE

    def test_from_label(self):
        assert SubscriptionTier.from_label(" premium ") == SubscriptionTier.PREMIUM
        with pytest.raises(ValueError):
            SubscriptionTier.from_label("Gold")

    def test_active_policy_version(self, engine):
        version = engine.get_active_policy_version()

        assert version.is_active
        assert set(version.tier_configurations) == {"Free", "Basic", "Premium", "Enterprise"}


# ============================================================
# CACHE AND CONFIG
# ============================================================

class TestTierCache:

    @pytest.mark.asyncio
    async def test_tier_lookup_is_cached(self, usage, audit_sink, clock):
        engine = EntitlementEngine(usage, audit_sink=audit_sink, clock=clock)

        await engine.check(deploy_request())
        usage.set_tier("user-1", SubscriptionTier.PREMIUM)
        cached = await engine.check(deploy_request())
        clock.advance(seconds=31)
        refreshed = await engine.check(deploy_request())

        assert cached.subscription_tier == "Free"
        assert refreshed.subscription_tier == "Premium"

    @pytest.mark.asyncio
    async def test_invalidate_user_tier(self, engine, usage):
        await engine.check(deploy_request())
        usage.set_tier("user-1", SubscriptionTier.BASIC)
        await engine.invalidate_user_tier("user-1")

        result = await engine.check(deploy_request())

        assert result.subscription_tier == "Basic"

    def test_negative_ttl_rejected(self):
        with pytest.raises(InvalidConfigError):
            EntitlementConfig(tier_cache_ttl_seconds=-1)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ENTITLEMENT_POLICY_VERSION", "2099.01.01.1")
        monkeypatch.setenv("ENTITLEMENT_AUDIT_ENABLED", "false")

        config = EntitlementConfig.from_env()

        assert config.policy_version == "2099.01.01.1"
        assert config.audit_enabled is False


# ============================================================
# AUDIT
# ============================================================

class TestAudit:

    @pytest.mark.asyncio
    async def test_every_decision_is_audited(self, engine, usage):
        usage.record_deployment("user-1", 3)

        await engine.check(deploy_request())
        await engine.check(EntitlementCheckRequest(
            user_id="user-2", operation=EntitlementOperation.API_ACCESS
        ))

        entries = await engine.get_audit_entries()
        assert [e.user_id for e in entries] == ["user-2", "user-1"]
        assert entries[1].denial_code == error_codes.ENTITLEMENT_LIMIT_EXCEEDED
        assert entries[1].operation == "TokenDeployment"
        assert entries[1].correlation_id == "corr-1"

    @pytest.mark.asyncio
    async def test_audit_disabled(self, usage, audit_sink, clock):
        engine = EntitlementEngine(
            usage, config=EntitlementConfig(audit_enabled=False), audit_sink=audit_sink, clock=clock
        )

        await engine.check(deploy_request())

        assert await engine.get_audit_entries() == []

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_fail_check(self, usage, clock):
        sink = AsyncMock()
        sink.record.side_effect = RuntimeError("audit db down")
        engine = EntitlementEngine(usage, audit_sink=sink, clock=clock)

        result = await engine.check(deploy_request())
        await engine.audit_recorder.drain()

        assert result.is_allowed
        assert engine.audit_recorder.failure_count == 1

    @pytest.mark.asyncio
    async def test_sql_audit_sink(self, usage, clock):
        db = create_database_engine("sqlite://")
        Base.metadata.create_all(db)
        sink = SqlAuditSink(get_session_factory(db))
        engine = EntitlementEngine(usage, audit_sink=sink, clock=clock)
        usage.record_deployment("user-1", 3)

        await engine.check(deploy_request())
        entries = await engine.get_audit_entries(limit=10)

        assert len(entries) == 1
        assert entries[0].is_allowed is False
        assert entries[0].subscription_tier == "Free"
        assert entries[0].timestamp == clock.now()
