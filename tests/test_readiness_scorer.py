"""
Tests for Readiness Scorer.

============================================================
TEST SCENARIOS
============================================================
1. 3 of 5 factors evaluated -> 60% completeness, two missing
   factors, quality warning, caveat
2. All factors passed -> score 1.0, confidence 1.0
3. KYC not verified -> partial credit, lower confidence,
   advisory caveat
4. Failed blocking factors -> blocking conditions from tasks
5. Weight configuration is validated

============================================================
"""

import math
import pytest
from datetime import datetime, timezone

from core import error_codes
from core.exceptions import InvalidConfigError
from readiness import (
    CANONICAL_FACTOR_IDS,
    CategoryEvaluationResult,
    DataFreshness,
    ReadinessConfig,
    ReadinessEvaluationDetails,
    ReadinessResponse,
    ReadinessScorer,
    ReadinessStatus,
    determine_status,
    generate_remediation_tasks,
    get_default_readiness_config,
)
from readiness.aggregator import can_proceed, system_error_task
from readiness.scorer import KYC_ADVISORY_CAVEAT


NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scorer():
    return ReadinessScorer()


def passed(message: str = "ok", **details) -> CategoryEvaluationResult:
    return CategoryEvaluationResult(passed=True, message=message, details=details, evaluated_at=NOW)


def failed(code: str, message: str = "failed", **details) -> CategoryEvaluationResult:
    return CategoryEvaluationResult(
        passed=False, message=message, reason_codes=(code,), details=details, evaluated_at=NOW
    )


def make_response(details: ReadinessEvaluationDetails) -> ReadinessResponse:
    status = determine_status(details)
    return ReadinessResponse(
        evaluation_id="eval-1",
        status=status,
        summary="",
        can_proceed=can_proceed(status),
        details=details,
        remediation_tasks=tuple(generate_remediation_tasks(details, status)),
        evaluated_at=NOW,
    )


# ============================================================
# COMPLETENESS
# ============================================================

class TestCompleteness:

    def test_three_of_five_factors(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=passed(),
            kyc_aml=passed(status="Approved"),
        ))

        result = scorer.score(response)

        assert result.confidence.data_completeness == 60.0
        assert set(result.confidence.missing_factors) == {"compliance", "integration"}
        assert result.confidence.factors_evaluated == 3
        assert result.confidence.quality_warnings
        assert "Evaluation based on 60% of expected factors" in result.caveats
        assert math.isclose(result.readiness_score.overall_score, 0.75)
        assert not result.readiness_score.meets_threshold

    def test_all_factors_passed(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=passed(),
            kyc_aml=passed(),
            compliance_decisions=passed(),
            integration=passed(),
        ))

        result = scorer.score(response)

        assert math.isclose(result.readiness_score.overall_score, 1.0)
        assert result.readiness_score.overall_confidence == 1.0
        assert result.readiness_score.meets_threshold
        assert result.confidence.data_completeness == 100.0
        assert result.confidence.missing_factors == ()
        assert result.confidence.quality_warnings == ()
        assert result.caveats == ()
        assert result.blocking_conditions == ()
        assert [f.factor_id for f in result.readiness_score.factors] == list(CANONICAL_FACTOR_IDS)

    def test_no_details(self, scorer):
        response = ReadinessResponse(
            evaluation_id="eval-2",
            status=ReadinessStatus.BLOCKED,
            summary="",
            can_proceed=False,
            details=None,
            remediation_tasks=(system_error_task("corr-1"),),
            evaluated_at=NOW,
        )

        result = scorer.score(response)

        assert result.readiness_score.overall_score == 0.0
        assert result.readiness_score.overall_confidence == 0.0
        assert result.confidence.freshness == DataFreshness.UNKNOWN
        assert len(result.confidence.missing_factors) == 5

    def test_unavailable_factor_does_not_reduce_completeness(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=failed(error_codes.INTERNAL_SERVER_ERROR),
            kyc_aml=passed(status="Unavailable"),
        ))

        result = scorer.score(response)

        assert result.confidence.data_completeness == 60.0
        assert result.confidence.unavailable_factors == ("account_readiness", "kyc_aml")


# ============================================================
# FACTOR SCORING
# ============================================================

class TestFactors:

    def test_weighted_score_is_bounded(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=passed(),
            kyc_aml=failed(error_codes.KYC_REQUIRED),
            compliance_decisions=passed(),
            integration=failed(error_codes.EXTERNAL_SERVICE_ERROR),
        ))

        result = scorer.score(response)

        for factor in result.readiness_score.factors:
            assert math.isclose(factor.weighted_score, factor.raw_score * factor.weight)
        assert 0.0 <= result.readiness_score.overall_score <= 1.0
        assert math.isclose(
            result.readiness_score.overall_score,
            sum(f.weighted_score for f in result.readiness_score.factors),
        )

    def test_unverified_kyc_gets_partial_credit(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=passed(),
            kyc_aml=failed(error_codes.KYC_REQUIRED),
        ))

        result = scorer.score(response)

        kyc = next(f for f in result.readiness_score.factors if f.factor_id == "kyc_aml")
        assert kyc.raw_score == 0.5
        assert kyc.confidence == 0.7
        assert not kyc.is_blocking
        assert result.confidence.high_confidence_factors == 2
        assert result.confidence.low_confidence_factors == 0
        assert KYC_ADVISORY_CAVEAT in result.caveats
        assert result.readiness_score.blocking_factors == ()

    def test_calculated_at_defaults_to_evaluation_time(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(), account_readiness=passed(), kyc_aml=passed()
        ))

        assert scorer.score(response).readiness_score.calculated_at == NOW


# ============================================================
# BLOCKING CONDITIONS
# ============================================================

class TestBlockingConditions:

    def test_conditions_come_from_remediation_tasks(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=failed(
                error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
                "Token deployment limit reached",
                upgrade_recommendation="Basic",
            ),
            account_readiness=failed(
                error_codes.ACCOUNT_INITIALIZING,
                "Account is initializing",
                remediation_steps=["Wait for initialization to finish"],
            ),
            kyc_aml=passed(),
        ))

        result = scorer.score(response)

        assert [c.type for c in result.blocking_conditions] == ["EntitlementLimit", "AccountNotReady"]
        entitlement, account = result.blocking_conditions
        assert entitlement.error_code == error_codes.ENTITLEMENT_LIMIT_EXCEEDED
        assert entitlement.category == "Entitlement"
        assert entitlement.estimated_resolution_hours == 1
        assert entitlement.evidence_reference == "eval-1"
        assert account.error_code == error_codes.ACCOUNT_INITIALIZING
        assert account.resolution_steps == ("Wait for initialization to finish",)
        assert account.is_mandatory
        assert set(result.readiness_score.blocking_factors) == {"entitlement", "account_readiness"}
        assert not result.readiness_score.meets_threshold

    def test_advisory_failures_are_not_blocking_conditions(self, scorer):
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(),
            account_readiness=passed(),
            kyc_aml=failed(error_codes.KYC_REQUIRED),
            integration=failed(error_codes.EXTERNAL_SERVICE_ERROR),
        ))

        assert scorer.score(response).blocking_conditions == ()


# ============================================================
# CONFIGURATION
# ============================================================

class TestConfiguration:

    def test_default_weights_sum_to_one(self):
        config = get_default_readiness_config()

        assert math.isclose(sum(config.factor_weights.values()), 1.0)
        assert set(config.factor_weights) == set(CANONICAL_FACTOR_IDS)

    def test_weights_not_summing_to_one_rejected(self):
        weights = dict(get_default_readiness_config().factor_weights)
        weights["integration"] = 0.5

        with pytest.raises(InvalidConfigError):
            ReadinessConfig(factor_weights=weights)

    def test_missing_factor_rejected(self):
        weights = dict(get_default_readiness_config().factor_weights)
        del weights["compliance"]

        with pytest.raises(InvalidConfigError):
            ReadinessConfig(factor_weights=weights)

    def test_threshold_out_of_range_rejected(self):
        with pytest.raises(InvalidConfigError):
            ReadinessConfig(readiness_threshold=1.5)

    def test_custom_weights_are_applied(self):
        weights = {
            "entitlement": 0.4,
            "account_readiness": 0.4,
            "kyc_aml": 0.1,
            "compliance": 0.05,
            "integration": 0.05,
        }
        scorer = ReadinessScorer(ReadinessConfig(factor_weights=weights))
        response = make_response(ReadinessEvaluationDetails(
            entitlement=passed(), account_readiness=passed(), kyc_aml=passed()
        ))

        result = scorer.score(response)

        assert math.isclose(result.readiness_score.overall_score, 0.9)
        assert result.readiness_score.meets_threshold
