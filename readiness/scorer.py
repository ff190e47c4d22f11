"""
Token Launch Readiness - Scorer.

============================================================
PURPOSE
============================================================
Turns aggregator category results into a weighted composite
score with per-factor breakdown, blocking conditions,
confidence metadata and caveats.

Pure transform: no I/O, no state. Safe to re-run or cache.

============================================================
SCORING
============================================================
- One factor per category present in the response.
  Absent categories are omitted, never zero-filled, so the
  overall score under-counts when data is incomplete.
- weighted_score = raw_score * weight
- overall_score = sum(weighted_score)
- overall_confidence = mean(confidence)
- data_completeness = evaluated / canonical * 100

============================================================
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from core import error_codes

from .config import (
    CANONICAL_FACTOR_IDS,
    FACTOR_DEFINITIONS,
    FactorDefinition,
    KYC_UNAVAILABLE_STATUS,
    ReadinessConfig,
    get_default_readiness_config,
)
from .types import (
    BlockerCategory,
    BlockingCondition,
    CategoryEvaluationResult,
    CategoryKind,
    ConfidenceMetadata,
    DataFreshness,
    ReadinessFactorBreakdown,
    ReadinessResponse,
    ReadinessScore,
    RemediationTask,
    ScoringResult,
)


logger = logging.getLogger(__name__)


HIGH_CONFIDENCE_THRESHOLD = 0.9
LOW_CONFIDENCE_THRESHOLD = 0.7

KYC_ADVISORY_CAVEAT = "KYC/AML verification is recommended but not required for launch"

# Blocking factor -> (condition type, blocker category, fallback resolution step)
BLOCKING_CONDITION_TYPES: Dict[CategoryKind, Tuple[str, BlockerCategory, str]] = {
    CategoryKind.ENTITLEMENT: (
        "EntitlementLimit",
        BlockerCategory.ENTITLEMENT,
        "Upgrade subscription tier",
    ),
    CategoryKind.ACCOUNT_READINESS: (
        "AccountNotReady",
        BlockerCategory.ACCOUNT_STATE,
        "Complete account initialization",
    ),
}

DEFAULT_BLOCKING_CODES: Dict[CategoryKind, str] = {
    CategoryKind.ENTITLEMENT: error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
    CategoryKind.ACCOUNT_READINESS: error_codes.ACCOUNT_NOT_READY,
}


class ReadinessScorer:
    """Weighted confidence scoring over a ReadinessResponse."""

    def __init__(self, config: Optional[ReadinessConfig] = None):
        self._config = config or get_default_readiness_config()

    @property
    def scoring_version(self) -> str:
        return self._config.scoring_version

    def score(
        self,
        response: ReadinessResponse,
        calculated_at: Optional[datetime] = None,
    ) -> ScoringResult:
        calculated_at = calculated_at or response.evaluated_at
        present = response.details.present() if response.details else {}

        factors = [
            self._build_factor(kind, result, response.evaluation_id)
            for kind, result in present.items()
        ]

        overall_score = sum(f.weighted_score for f in factors)
        overall_confidence = (
            sum(f.confidence for f in factors) / len(factors) if factors else 0.0
        )
        blocking_factors = tuple(f.factor_id for f in factors if not f.passed and f.is_blocking)

        readiness_score = ReadinessScore(
            overall_score=overall_score,
            overall_confidence=overall_confidence,
            factors=tuple(factors),
            blocking_factors=blocking_factors,
            scoring_version=self._config.scoring_version,
            readiness_threshold=self._config.readiness_threshold,
            calculated_at=calculated_at,
        )

        confidence = build_confidence_metadata(factors, present, overall_confidence)
        conditions = self._blocking_conditions(present, response)
        caveats = build_caveats(confidence, present)

        logger.debug(
            f"Scored evaluation {response.evaluation_id}: score {overall_score:.2f}, "
            f"confidence {overall_confidence:.2f}, blocking {list(blocking_factors)}"
        )

        return ScoringResult(
            readiness_score=readiness_score,
            blocking_conditions=tuple(conditions),
            confidence=confidence,
            caveats=tuple(caveats),
        )

    def _build_factor(
        self,
        kind: CategoryKind,
        result: CategoryEvaluationResult,
        evaluation_id: str,
    ) -> ReadinessFactorBreakdown:
        definition: FactorDefinition = FACTOR_DEFINITIONS[kind]
        weight = self._config.weight_for(kind)
        raw_score = 1.0 if result.passed else definition.failed_raw_score
        confidence = 1.0 if result.passed else definition.failed_confidence

        return ReadinessFactorBreakdown(
            factor_id=definition.factor_id,
            factor_name=definition.name,
            category=definition.category,
            weight=weight,
            raw_score=raw_score,
            weighted_score=raw_score * weight,
            passed=result.passed,
            is_blocking=definition.is_blocking,
            confidence=confidence,
            explanation=result.message,
            evidence_reference=evaluation_id,
            evaluated_at=result.evaluated_at,
        )

    def _blocking_conditions(
        self,
        present: Dict[CategoryKind, CategoryEvaluationResult],
        response: ReadinessResponse,
    ) -> List[BlockingCondition]:
        conditions: List[BlockingCondition] = []

        for kind, (condition_type, blocker, fallback_step) in BLOCKING_CONDITION_TYPES.items():
            result = present.get(kind)
            if result is None or result.passed:
                continue

            task = _find_task(response.remediation_tasks, blocker)
            steps = task.actions if task and task.actions else (fallback_step,)
            hours = (
                task.estimated_resolution_hours
                if task and task.estimated_resolution_hours is not None
                else 1
            )

            conditions.append(BlockingCondition(
                type=condition_type,
                description=result.message,
                error_code=result.primary_reason_code or DEFAULT_BLOCKING_CODES[kind],
                category=blocker.value,
                is_mandatory=True,
                resolution_steps=tuple(steps),
                evidence_reference=response.evaluation_id,
                estimated_resolution_hours=hours,
            ))

        return conditions


def _find_task(
    tasks: Tuple[RemediationTask, ...],
    category: BlockerCategory,
) -> Optional[RemediationTask]:
    return next((t for t in tasks if t.category == category), None)


def _is_unavailable(kind: CategoryKind, result: CategoryEvaluationResult) -> bool:
    if error_codes.INTERNAL_SERVER_ERROR in result.reason_codes:
        return True
    return kind == CategoryKind.KYC_AML and result.details.get("status") == KYC_UNAVAILABLE_STATUS


def build_confidence_metadata(
    factors: List[ReadinessFactorBreakdown],
    present: Dict[CategoryKind, CategoryEvaluationResult],
    overall_confidence: float,
) -> ConfidenceMetadata:
    """
    Confidence and completeness for a set of factors.

    missing_factors counts categories that were not evaluated at
    all. unavailable_factors lists categories that were evaluated
    but whose source failed. Only missing factors reduce
    data_completeness.
    """
    evaluated = {f.factor_id for f in factors}
    missing = tuple(fid for fid in CANONICAL_FACTOR_IDS if fid not in evaluated)
    unavailable = tuple(
        kind.value for kind, result in present.items() if _is_unavailable(kind, result)
    )
    high = sum(1 for f in factors if f.confidence >= HIGH_CONFIDENCE_THRESHOLD)
    low = sum(1 for f in factors if f.confidence < LOW_CONFIDENCE_THRESHOLD)

    warnings = []
    if low > 0:
        warnings.append(f"{low} factor(s) with low confidence")
    if missing:
        warnings.append(f"{len(missing)} factor(s) not evaluated")

    return ConfidenceMetadata(
        overall_confidence=overall_confidence,
        data_completeness=len(factors) / len(CANONICAL_FACTOR_IDS) * 100,
        freshness=DataFreshness.FRESH if factors else DataFreshness.UNKNOWN,
        factors_evaluated=len(factors),
        high_confidence_factors=high,
        low_confidence_factors=low,
        missing_factors=missing,
        unavailable_factors=unavailable,
        quality_warnings=tuple(warnings),
    )


def build_caveats(
    confidence: ConfidenceMetadata,
    present: Dict[CategoryKind, CategoryEvaluationResult],
) -> List[str]:
    caveats = []
    if confidence.data_completeness < 100:
        caveats.append(
            f"Evaluation based on {confidence.data_completeness:.0f}% of expected factors"
        )
    if confidence.low_confidence_factors > 0:
        caveats.append(
            f"{confidence.low_confidence_factors} factor(s) evaluated with lower confidence"
        )
    kyc = present.get(CategoryKind.KYC_AML)
    if kyc is not None and not kyc.passed:
        caveats.append(KYC_ADVISORY_CAVEAT)
    return caveats
