"""
Token Launch Readiness - Lifecycle Service (v2).

============================================================
PURPOSE
============================================================
Composes the aggregator and the scorer into the v2 readiness
report: the aggregated decision plus composite score, blocking
conditions, confidence metadata, evidence references and
caveats.

Also serves stored evidence for audit retrieval.

============================================================
"""

import logging
from dataclasses import replace
from typing import List, Optional
from uuid import uuid4

from core import sanitize_log_input
from core.clock import ClockFactory, ClockProtocol
from core.metrics import MetricsSink, NullMetricsSink

from .aggregator import SYSTEM_ERROR_SUMMARY, ReadinessAggregator, system_error_task
from .config import EVIDENCE_SOURCE
from .scorer import ReadinessScorer
from .types import (
    ConfidenceMetadata,
    DataFreshness,
    EvidenceReference,
    EvidenceRetrievalResponse,
    EvidenceType,
    ReadinessRequest,
    ReadinessResponse,
    ReadinessResponseV2,
    ReadinessStatus,
)


logger = logging.getLogger(__name__)


EVIDENCE_RETRIEVAL_ERROR = "An error occurred while retrieving evidence"


class LifecycleReadinessService:
    """
    v2 readiness evaluation.

    ============================================================
    USAGE
    ============================================================
        service = LifecycleReadinessService(aggregator)
        report = await service.evaluate_readiness_v2(request)

        report.readiness_score.overall_score
        report.confidence.missing_factors

    ============================================================
    """

    def __init__(
        self,
        aggregator: ReadinessAggregator,
        scorer: Optional[ReadinessScorer] = None,
        metrics_sink: Optional[MetricsSink] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._aggregator = aggregator
        self._scorer = scorer or ReadinessScorer(aggregator.config)
        self._metrics = metrics_sink or NullMetricsSink()
        self._clock = clock or ClockFactory.get_clock()

    async def evaluate_readiness_v2(self, request: ReadinessRequest) -> ReadinessResponseV2:
        """
        Evaluate readiness and score the result.

        This method NEVER throws.
        """
        start = self._clock.monotonic()
        correlation_id = request.correlation_id or str(uuid4())
        if request.correlation_id is None:
            request = replace(request, correlation_id=correlation_id)

        try:
            response = await self._aggregator.evaluate_readiness(request)
            scoring = self._scorer.score(response)

            report = ReadinessResponseV2(
                evaluation_id=response.evaluation_id,
                status=response.status,
                summary=response.summary,
                can_proceed=response.can_proceed,
                details=response.details,
                readiness_score=scoring.readiness_score,
                blocking_conditions=scoring.blocking_conditions,
                remediation_tasks=response.remediation_tasks,
                confidence=scoring.confidence,
                evidence_references=tuple(self._evidence_references(response)),
                caveats=scoring.caveats,
                policy_version=response.policy_version,
                evaluated_at=response.evaluated_at,
                correlation_id=correlation_id,
                evaluation_time_ms=(self._clock.monotonic() - start) * 1000,
            )

            self._record_metrics(report)

            logger.info(
                f"Readiness v2 evaluation {report.evaluation_id} for user "
                f"{sanitize_log_input(request.user_id)}: {report.status.value}, "
                f"score {scoring.readiness_score.overall_score:.2f}, "
                f"confidence {scoring.readiness_score.overall_confidence:.2f}"
            )
            return report

        except Exception as e:
            logger.error(
                f"Error in readiness v2 evaluation for user "
                f"{sanitize_log_input(request.user_id)}. "
                f"CorrelationId: {sanitize_log_input(correlation_id)}: {e}",
                exc_info=True,
            )
            return ReadinessResponseV2(
                evaluation_id=str(uuid4()),
                status=ReadinessStatus.BLOCKED,
                summary=SYSTEM_ERROR_SUMMARY,
                can_proceed=False,
                remediation_tasks=(system_error_task(correlation_id),),
                confidence=ConfidenceMetadata(
                    overall_confidence=0.0,
                    data_completeness=0.0,
                    freshness=DataFreshness.UNKNOWN,
                ),
                policy_version=self._aggregator.config.policy_version,
                evaluated_at=self._clock.now(),
                correlation_id=correlation_id,
                evaluation_time_ms=(self._clock.monotonic() - start) * 1000,
            )

    def _evidence_references(self, response: ReadinessResponse) -> List[EvidenceReference]:
        if response.details is None:
            return []
        return [
            EvidenceReference(
                evidence_id=response.evaluation_id,
                type=EvidenceType.AUDIT_LOG,
                source=EVIDENCE_SOURCE,
                summary="Complete readiness evaluation with all category results",
                metadata={
                    "evaluation_id": response.evaluation_id,
                    "status": response.status.value,
                    "can_proceed": str(response.can_proceed).lower(),
                },
                collected_at=response.evaluated_at,
                validated_at=response.evaluated_at,
            )
        ]

    def _record_metrics(self, report: ReadinessResponseV2) -> None:
        try:
            self._metrics.increment_counter("lifecycle_readiness_v2_evaluation")
            self._metrics.increment_counter(
                f"lifecycle_readiness_v2_status_{report.status.value.lower()}"
            )
            self._metrics.record_histogram(
                "lifecycle_readiness_v2_duration_ms", report.evaluation_time_ms
            )
            if report.readiness_score is not None:
                self._metrics.record_histogram(
                    "lifecycle_readiness_v2_score", report.readiness_score.overall_score
                )
            self._metrics.record_histogram(
                "lifecycle_readiness_v2_confidence", report.confidence.overall_confidence
            )
            if not report.can_proceed:
                self._metrics.increment_counter("lifecycle_readiness_v2_blocked")
                self._metrics.record_histogram(
                    "lifecycle_readiness_v2_blocking_conditions", len(report.blocking_conditions)
                )
        except Exception as e:
            logger.warning(f"Failed to emit readiness v2 metrics: {e}")

    # ============================================================
    # EVIDENCE RETRIEVAL
    # ============================================================

    async def get_evidence(
        self,
        evaluation_id: str,
        include_content: bool = False,
    ) -> EvidenceRetrievalResponse:
        """Look up the evidence stored for an evaluation."""
        try:
            evidence = await self._aggregator.get_evidence(evaluation_id)
            if evidence is None:
                return EvidenceRetrievalResponse(
                    success=False,
                    error_message=f"Evidence not found: {evaluation_id}",
                    evaluation_id=evaluation_id,
                )

            reference = EvidenceReference(
                evidence_id=evidence.evaluation_id,
                type=EvidenceType.AUDIT_LOG,
                source=EVIDENCE_SOURCE,
                summary=f"Token launch readiness evaluation for user {evidence.user_id}",
                metadata={
                    "evaluation_id": evidence.evaluation_id,
                    "user_id": evidence.user_id,
                    "correlation_id": evidence.correlation_id or "",
                },
                collected_at=evidence.created_at,
                validated_at=evidence.created_at,
                data_hash=evidence.data_hash,
            )
            return EvidenceRetrievalResponse(
                success=True,
                evidence=reference,
                content_json=evidence.response_snapshot if include_content else None,
                evaluation_id=evaluation_id,
            )

        except Exception as e:
            logger.error(f"Error retrieving evidence {evaluation_id}: {e}", exc_info=True)
            return EvidenceRetrievalResponse(
                success=False,
                error_message=EVIDENCE_RETRIEVAL_ERROR,
                evaluation_id=evaluation_id,
            )

    def health_check(self) -> dict:
        return {
            "healthy": True,
            "scoring_version": self._scorer.scoring_version,
            "aggregator": self._aggregator.health_check(),
        }
