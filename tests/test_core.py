"""
Tests for Core Infrastructure.

============================================================
TEST SCENARIOS
============================================================
1. MockClock advances wall and monotonic time together
2. TTL cache hits, expiry, invalidation, loader failures
3. In-memory metrics collector counters and histograms
4. Exception hierarchy error codes and serialization
5. Log input sanitization

============================================================
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from core import MockClock, ClockFactory, TTLCache, InMemoryMetricsCollector, sanitize_log_input
from core import error_codes
from core.clock import ensure_utc, from_iso8601, to_iso8601, within_window
from core.exceptions import (
    DecisionEngineException,
    ErrorClassification,
    InvalidConfigError,
    MissingRequiredFieldError,
    UsageSourceError,
    ValidationError,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache(clock):
    return TTLCache("test", ttl_seconds=30, clock=clock)


# ============================================================
# CLOCK
# ============================================================

class TestClock:
    """Tests for the clock abstraction."""

    def test_advance_moves_wall_and_monotonic(self, clock):
        start_wall = clock.now()
        start_mono = clock.monotonic()

        clock.advance(minutes=5)

        assert (clock.now() - start_wall).total_seconds() == 300
        assert clock.monotonic() - start_mono == 300

    def test_set_time_keeps_monotonic(self, clock):
        clock.set_time(datetime(2030, 1, 1))

        assert clock.now().tzinfo is not None
        assert clock.monotonic() == 0.0

    def test_use_mock_restores_previous_clock(self):
        before = ClockFactory.get_clock()
        with ClockFactory.use_mock() as mock:
            assert ClockFactory.get_clock() is mock
        assert ClockFactory.get_clock() is before

    def test_iso_round_trip_is_aware(self):
        parsed = from_iso8601("2026-03-01T12:00:00")
        assert parsed.tzinfo == timezone.utc
        assert to_iso8601(parsed) == "2026-03-01T12:00:00+00:00"
        assert ensure_utc(datetime(2026, 3, 1)).tzinfo == timezone.utc

    def test_effective_window_is_half_open(self, clock):
        now = clock.now()

        assert within_window(now)
        assert within_window(now, start=now)
        assert not within_window(now, end=now)
        assert not within_window(now, start=now + timedelta(seconds=1))
        assert within_window(now, start=datetime(2026, 1, 1), end=datetime(2026, 4, 1))


# ============================================================
# TTL CACHE
# ============================================================

class TestTTLCache:
    """Tests for TTLCache."""

    @pytest.mark.asyncio
    async def test_second_lookup_is_a_hit(self, cache):
        loader = AsyncMock(return_value="Premium")

        first = await cache.get_or_load(("user-1",), loader)
        second = await cache.get_or_load(("user-1",), loader)

        assert first == second == "Premium"
        assert loader.await_count == 1
        assert cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, cache, clock):
        loader = AsyncMock(side_effect=["Free", "Basic"])

        assert await cache.get_or_load(("user-1",), loader) == "Free"
        clock.advance(seconds=31)
        assert await cache.get_or_load(("user-1",), loader) == "Basic"

    @pytest.mark.asyncio
    async def test_keys_are_structured(self, cache):
        await cache.set(("a", "b"), 1)
        await cache.set(("a|b",), 2)

        assert await cache.get(("a", "b")) == (True, 1)
        assert await cache.get(("a|b",)) == (True, 2)

    @pytest.mark.asyncio
    async def test_loader_failure_is_not_cached(self, cache):
        loader = AsyncMock(side_effect=[RuntimeError("down"), "Free"])

        with pytest.raises(RuntimeError):
            await cache.get_or_load(("user-1",), loader)

        assert await cache.get_or_load(("user-1",), loader) == "Free"

    @pytest.mark.asyncio
    async def test_invalidate(self, cache):
        await cache.set(("user-1",), "Free")
        await cache.invalidate(("user-1",))

        assert await cache.get(("user-1",)) == (False, None)

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_caching(self, clock):
        cache = TTLCache("off", ttl_seconds=0, clock=clock)
        loader = AsyncMock(return_value=1)

        await cache.get_or_load(("k",), loader)
        await cache.get_or_load(("k",), loader)

        assert not cache.enabled
        assert loader.await_count == 2

    @pytest.mark.asyncio
    async def test_full_cache_evicts(self, clock):
        cache = TTLCache("small", ttl_seconds=60, clock=clock, max_entries=2)
        await cache.set(("a",), 1)
        clock.advance(seconds=1)
        await cache.set(("b",), 2)
        await cache.set(("c",), 3)

        assert cache.stats()["entries"] == 2
        assert await cache.get(("a",)) == (False, None)


# ============================================================
# METRICS
# ============================================================

class TestInMemoryMetricsCollector:
    """Tests for the in-memory metrics sink."""

    def test_counters_accumulate(self):
        metrics = InMemoryMetricsCollector()
        metrics.increment_counter("evaluations")
        metrics.increment_counter("evaluations", 2)

        assert metrics.get_counter("evaluations") == 3
        assert metrics.get_counter("never") == 0

    def test_histogram_stats(self):
        metrics = InMemoryMetricsCollector()
        for value in (10, 20, 30):
            metrics.record_histogram("duration_ms", value)

        stats = metrics.get_histogram("duration_ms")
        assert stats.count == 3
        assert stats.average == 20
        assert stats.min_value == 10
        assert stats.max_value == 30

    def test_snapshot_is_a_copy(self):
        metrics = InMemoryMetricsCollector()
        metrics.increment_counter("a")
        snapshot = metrics.snapshot()
        metrics.increment_counter("a")

        assert snapshot["counters"]["a"] == 1


# ============================================================
# EXCEPTIONS
# ============================================================

class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_missing_field_maps_to_bounded_code(self):
        error = MissingRequiredFieldError("user_id")

        assert isinstance(error, ValidationError)
        assert error.error_code == error_codes.MISSING_REQUIRED_FIELD
        assert error.context["field"] == "user_id"

    def test_dependency_errors_are_retryable(self):
        error = UsageSourceError("lookup failed", dependency="usage", cause=TimeoutError("slow"))

        assert error.is_retryable
        assert error.classification == ErrorClassification.TRANSIENT
        assert error.context["cause_type"] == "TimeoutError"

    def test_invalid_config_is_not_retryable(self):
        error = InvalidConfigError("weights", {"a": 2}, "too big")

        assert not error.is_retryable
        assert error.error_code == error_codes.CONFIGURATION_ERROR

    def test_to_dict(self):
        data = DecisionEngineException("boom").to_dict()

        assert data["type"] == "DecisionEngineException"
        assert data["error_code"] == error_codes.INTERNAL_SERVER_ERROR
        assert data["cause"] is None

    def test_published_codes_are_known(self):
        for code in (
            "ENTITLEMENT_LIMIT_EXCEEDED",
            "FEATURE_NOT_INCLUDED",
            "ACCOUNT_NOT_READY",
            "ACCOUNT_INITIALIZING",
            "ACCOUNT_DEGRADED",
            "ACCOUNT_INITIALIZATION_FAILED",
            "KYC_REQUIRED",
            "INTERNAL_SERVER_ERROR",
            "MISSING_REQUIRED_FIELD",
            "NOT_FOUND",
        ):
            assert error_codes.is_known_error_code(code)


# ============================================================
# LOG SANITIZATION
# ============================================================

class TestSanitizeLogInput:

    def test_none(self):
        assert sanitize_log_input(None) == "N/A"

    def test_strips_control_characters(self):
        assert sanitize_log_input("user\nFAKE LOG LINE") == "userFAKE LOG LINE"

    def test_truncates(self):
        result = sanitize_log_input("x" * 500)
        assert len(result) == 203
        assert result.endswith("...")
