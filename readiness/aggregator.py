"""
Token Launch Readiness - Aggregator.

============================================================
PURPOSE
============================================================
Answers "can this user launch a token now, and if not, what
must be fixed?"

============================================================
FLOW
============================================================

ReadinessRequest
    |
    v
+-----------------------------------------------+
| Category fan-out (concurrent)                 |
|   entitlement | account | kyc_aml             |
|   compliance? | integration?                  |
+-----------------------------------------------+
    |
    v
Status: Blocked > NeedsReview > Warning > Ready
    |
    v
Remediation tasks (severity desc, category order)
    |
    v
Metrics -> Evidence -> Alert (if Blocked)
    |
    v
ReadinessResponse

============================================================
BLOCKING POLICY
============================================================
- entitlement, account_readiness: blocking
- compliance: requires manual review
- kyc_aml, integration: advisory

A category that raises is converted into a failed result with
INTERNAL_SERVER_ERROR, except kyc_aml which stays passed.
The response is always a structured decision.

============================================================
ALERTS
============================================================
A Blocked alert runs as a background task so a slow sender
does not delay the response. drain_alerts() waits for the
pending ones on shutdown.

============================================================
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set
from uuid import uuid4

from core import error_codes, sanitize_log_input
from core.cache import TTLCache
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import ConfigurationError, MissingRequiredFieldError, ReadinessSourceError
from core.metrics import MetricsSink, NullMetricsSink
from entitlement_engine import EntitlementCheckRequest, EntitlementEngine, EntitlementOperation

from .alerting import ConsoleAlertSender, ReadinessAlerter
from .config import (
    KYC_UNAVAILABLE_STATUS,
    REMEDIATION_POLICIES,
    ReadinessConfig,
    get_default_readiness_config,
)
from .evidence import EvidenceStore, InMemoryEvidenceStore, ReadinessEvidence
from .sources import (
    AccountReadinessProbe,
    ComplianceDecisionProvider,
    IntegrationHealthProbe,
    KycStatusProvider,
)
from .types import (
    AccountReadinessState,
    BlockerCategory,
    CategoryEvaluationResult,
    CategoryKind,
    KycStatus,
    KycStatusResult,
    ReadinessEvaluationDetails,
    ReadinessRequest,
    ReadinessResponse,
    ReadinessStatus,
    RemediationSeverity,
    RemediationTask,
    task_list,
)


logger = logging.getLogger(__name__)


CategoryEvaluator = Callable[
    [ReadinessRequest, str], Awaitable[Optional[CategoryEvaluationResult]]
]

ACCOUNT_STATE_CODES = {
    AccountReadinessState.NOT_INITIALIZED: error_codes.ACCOUNT_NOT_READY,
    AccountReadinessState.INITIALIZING: error_codes.ACCOUNT_INITIALIZING,
    AccountReadinessState.DEGRADED: error_codes.ACCOUNT_DEGRADED,
    AccountReadinessState.FAILED: error_codes.ACCOUNT_INITIALIZATION_FAILED,
}

SYSTEM_ERROR_SUMMARY = "Readiness evaluation failed due to system error"


# ============================================================
# DECISION FUNCTIONS
# ============================================================

def determine_status(details: ReadinessEvaluationDetails) -> ReadinessStatus:
    """Blocking categories first, then compliance, then advisory categories."""
    if not details.entitlement.passed or not details.account_readiness.passed:
        return ReadinessStatus.BLOCKED
    if details.compliance_decisions is not None and not details.compliance_decisions.passed:
        return ReadinessStatus.NEEDS_REVIEW
    if not details.kyc_aml.passed or (
        details.integration is not None and not details.integration.passed
    ):
        return ReadinessStatus.WARNING
    return ReadinessStatus.READY


def can_proceed(status: ReadinessStatus) -> bool:
    return status in (ReadinessStatus.READY, ReadinessStatus.WARNING)


def generate_remediation_tasks(
    details: ReadinessEvaluationDetails,
    status: ReadinessStatus,
) -> List[RemediationTask]:
    """
    One task per failing category, sorted by severity descending.

    A Blocked response only lists blocking categories. Advisory
    categories produce tasks once nothing blocks the launch.
    """
    tasks: List[RemediationTask] = []

    for kind, result in details.present().items():
        if result.passed:
            continue
        if kind in (CategoryKind.KYC_AML, CategoryKind.INTEGRATION, CategoryKind.COMPLIANCE):
            if status == ReadinessStatus.BLOCKED:
                continue
        tasks.append(_task_for(kind, result))

    return list(task_list(tasks))


def _task_for(kind: CategoryKind, result: CategoryEvaluationResult) -> RemediationTask:
    policy = REMEDIATION_POLICIES[kind]
    actions = policy.default_actions
    metadata = None

    if kind == CategoryKind.ACCOUNT_READINESS:
        steps = tuple(result.details.get("remediation_steps") or ())
        actions = steps or actions
    elif kind == CategoryKind.ENTITLEMENT:
        recommended = result.details.get("upgrade_recommendation")
        if recommended:
            metadata = {"upgrade_recommendation": recommended}

    return RemediationTask(
        category=policy.blocker_category,
        error_code=result.primary_reason_code or policy.default_error_code,
        description=policy.description or result.message,
        severity=policy.severity,
        owner_hint=policy.owner_hint,
        actions=actions,
        estimated_resolution_hours=policy.estimated_resolution_hours,
        metadata=metadata,
    )


def build_summary(status: ReadinessStatus, tasks: List[RemediationTask]) -> str:
    if status == ReadinessStatus.READY:
        return "All requirements met. Token launch can proceed."
    if status == ReadinessStatus.BLOCKED:
        if tasks:
            return (
                f"Token launch blocked by {len(tasks)} critical issue(s). "
                f"Review remediation tasks."
            )
        return "Token launch blocked. Please contact support."
    if status == ReadinessStatus.WARNING:
        return "Token launch can proceed with advisory warnings. Review recommendations."
    return "Manual compliance review required before token launch."


def system_error_task(correlation_id: str) -> RemediationTask:
    return RemediationTask(
        category=BlockerCategory.INTEGRATION,
        error_code=error_codes.INTERNAL_SERVER_ERROR,
        description="System error during readiness evaluation",
        severity=RemediationSeverity.CRITICAL,
        owner_hint="Technical Support",
        actions=(
            f"Contact technical support with correlation ID: {correlation_id}",
            "Retry the operation after a few minutes",
        ),
    )


# ============================================================
# AGGREGATOR
# ============================================================

class ReadinessAggregator:
    """
    Token launch readiness aggregator.

    ============================================================
    USAGE
    ============================================================
        aggregator = ReadinessAggregator(
            entitlement_engine=engine,
            account_probe=probe,
            kyc_provider=kyc,
        )
        response = await aggregator.evaluate_readiness(
            ReadinessRequest(user_id="user-1", token_type="ASA")
        )
        if not response.can_proceed:
            show(response.top_task)

    ============================================================
    """

    def __init__(
        self,
        entitlement_engine: EntitlementEngine,
        account_probe: AccountReadinessProbe,
        kyc_provider: KycStatusProvider,
        evidence_store: Optional[EvidenceStore] = None,
        compliance_provider: Optional[ComplianceDecisionProvider] = None,
        integration_probe: Optional[IntegrationHealthProbe] = None,
        config: Optional[ReadinessConfig] = None,
        metrics_sink: Optional[MetricsSink] = None,
        alerter: Optional[ReadinessAlerter] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or get_default_readiness_config()
        self._clock = clock or ClockFactory.get_clock()
        self._entitlement = entitlement_engine
        self._account_probe = account_probe
        self._kyc_provider = kyc_provider
        self._compliance_provider = compliance_provider
        self._integration_probe = integration_probe
        self._evidence_store = evidence_store or InMemoryEvidenceStore()
        self._metrics = metrics_sink or NullMetricsSink()

        if alerter is None and self._config.alert_on_blocked:
            alerter = ReadinessAlerter(
                senders=[ConsoleAlertSender()],
                min_interval_seconds=self._config.alert_min_interval_seconds,
                clock=self._clock,
            )
        self._alerter = alerter
        self._pending_alerts: Set[asyncio.Task] = set()

        self._kyc_cache = TTLCache(
            "kyc_status", self._config.kyc_cache_ttl_seconds, clock=self._clock
        )

        self._evaluators: Dict[CategoryKind, CategoryEvaluator] = {
            CategoryKind.ENTITLEMENT: self._evaluate_entitlement,
            CategoryKind.ACCOUNT_READINESS: self._evaluate_account_readiness,
            CategoryKind.KYC_AML: self._evaluate_kyc_aml,
            CategoryKind.COMPLIANCE: self._evaluate_compliance,
            CategoryKind.INTEGRATION: self._evaluate_integration,
        }
        missing = [kind.value for kind in CategoryKind if kind not in self._evaluators]
        if missing:
            raise ConfigurationError(f"No evaluator registered for categories: {missing}")

        logger.info(
            f"ReadinessAggregator initialized: policy {self._config.policy_version}, "
            f"compliance={'on' if compliance_provider else 'off'}, "
            f"integration={'on' if integration_probe else 'off'}"
        )

    @property
    def config(self) -> ReadinessConfig:
        return self._config

    @property
    def evidence_store(self) -> EvidenceStore:
        return self._evidence_store

    # ============================================================
    # EVALUATION
    # ============================================================

    async def evaluate_readiness(self, request: ReadinessRequest) -> ReadinessResponse:
        """
        Evaluate token launch readiness.

        This method NEVER throws.
        """
        start = self._clock.monotonic()
        evaluation_id = str(uuid4())
        correlation_id = request.correlation_id or str(uuid4())
        user = sanitize_log_input(request.user_id)

        logger.info(
            f"Evaluating token launch readiness for user {user}. "
            f"CorrelationId: {sanitize_log_input(correlation_id)}"
        )

        try:
            if not request.user_id:
                response = self._missing_user_response(evaluation_id, correlation_id)
                response = self._finish(response, start)
                self._record_metrics(response)
                return response

            details = await self._evaluate_categories(request, correlation_id)
            status = determine_status(details)
            tasks = generate_remediation_tasks(details, status)

            response = ReadinessResponse(
                evaluation_id=evaluation_id,
                status=status,
                summary=build_summary(status, tasks),
                can_proceed=can_proceed(status),
                details=details,
                remediation_tasks=tuple(tasks),
                policy_version=self._config.policy_version,
                evaluated_at=self._clock.now(),
                correlation_id=correlation_id,
            )
            response = self._finish(response, start)

            self._record_metrics(response)
            await self._store_evidence(request, response)
            if response.status == ReadinessStatus.BLOCKED:
                self._schedule_alert(response, request.user_id)

            logger.info(
                f"Readiness evaluation {evaluation_id} for user {user}: "
                f"{response.status.value}, {len(response.remediation_tasks)} task(s), "
                f"{response.evaluation_time_ms:.1f}ms"
            )
            return response

        except Exception as e:
            logger.error(
                f"Error evaluating readiness for user {user}. "
                f"CorrelationId: {sanitize_log_input(correlation_id)}: {e}",
                exc_info=True,
            )
            response = ReadinessResponse(
                evaluation_id=evaluation_id,
                status=ReadinessStatus.BLOCKED,
                summary=SYSTEM_ERROR_SUMMARY,
                can_proceed=False,
                details=None,
                remediation_tasks=(system_error_task(correlation_id),),
                policy_version=self._config.policy_version,
                evaluated_at=self._clock.now(),
                correlation_id=correlation_id,
            )
            return self._finish(response, start)

    async def _evaluate_categories(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> ReadinessEvaluationDetails:
        kinds = list(CategoryKind)
        results = await asyncio.gather(
            *(self._run_category(kind, request, correlation_id) for kind in kinds)
        )
        by_kind = dict(zip(kinds, results))
        return ReadinessEvaluationDetails(
            entitlement=by_kind[CategoryKind.ENTITLEMENT],
            account_readiness=by_kind[CategoryKind.ACCOUNT_READINESS],
            kyc_aml=by_kind[CategoryKind.KYC_AML],
            compliance_decisions=by_kind[CategoryKind.COMPLIANCE],
            integration=by_kind[CategoryKind.INTEGRATION],
        )

    async def _run_category(
        self,
        kind: CategoryKind,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> Optional[CategoryEvaluationResult]:
        try:
            return await self._evaluators[kind](request, correlation_id)
        except Exception as e:
            logger.error(
                f"Error evaluating {kind.value} for user {sanitize_log_input(request.user_id)}. "
                f"CorrelationId: {sanitize_log_input(correlation_id)}: {e}",
                exc_info=True,
            )
            return self._unavailable_result(kind)

    def _unavailable_result(self, kind: CategoryKind) -> CategoryEvaluationResult:
        now = self._clock.now()
        if kind == CategoryKind.KYC_AML:
            logger.warning("KYC/AML status unavailable; continuing as advisory")
            return CategoryEvaluationResult(
                passed=True,
                message="KYC/AML evaluation unavailable (advisory only)",
                details={
                    "status": KYC_UNAVAILABLE_STATUS,
                    "note": "KYC/AML verification is recommended but not required",
                },
                evaluated_at=now,
            )
        messages = {
            CategoryKind.ENTITLEMENT: "Entitlement evaluation failed",
            CategoryKind.ACCOUNT_READINESS: "Account readiness evaluation failed",
            CategoryKind.COMPLIANCE: "Compliance decision evaluation failed",
            CategoryKind.INTEGRATION: "Integration health evaluation failed",
        }
        return CategoryEvaluationResult(
            passed=False,
            message=messages[kind],
            reason_codes=(error_codes.INTERNAL_SERVER_ERROR,),
            evaluated_at=now,
        )

    # ============================================================
    # CATEGORY EVALUATORS
    # ============================================================

    async def _evaluate_entitlement(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> CategoryEvaluationResult:
        result = await self._entitlement.check(
            EntitlementCheckRequest(
                user_id=request.user_id,
                operation=EntitlementOperation.TOKEN_DEPLOYMENT,
                operation_context={"tokenType": request.token_type, "network": request.network},
                correlation_id=correlation_id,
            )
        )
        recommendation = result.upgrade_recommendation
        return CategoryEvaluationResult(
            passed=result.is_allowed,
            message=(
                f"Subscription tier '{result.subscription_tier}' allows token deployment"
                if result.is_allowed
                else result.denial_reason or "Token deployment not allowed"
            ),
            reason_codes=(result.denial_code,) if result.denial_code else (),
            details={
                "subscription_tier": result.subscription_tier,
                "is_allowed": result.is_allowed,
                "upgrade_recommendation": recommendation.recommended_tier if recommendation else "",
                "current_usage": dict(result.current_usage or {}),
                "max_allowed": dict(result.max_allowed or {}),
            },
            evaluated_at=self._clock.now(),
        )

    async def _evaluate_account_readiness(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> CategoryEvaluationResult:
        try:
            result = await self._account_probe.check(request.user_id, correlation_id)
        except Exception as e:
            raise ReadinessSourceError(
                "Account readiness probe failed", dependency="account_probe", cause=e
            ) from e

        code = ACCOUNT_STATE_CODES.get(result.state, error_codes.ACCOUNT_NOT_READY)
        return CategoryEvaluationResult(
            passed=result.is_ready,
            message=(
                "ARC76 account is ready for token operations"
                if result.is_ready
                else result.not_ready_reason or "Account not ready"
            ),
            reason_codes=() if result.is_ready else (code,),
            details={
                "state": result.state.value,
                "account_address": result.account_address or "",
                "remediation_steps": list(result.remediation_steps),
            },
            evaluated_at=self._clock.now(),
        )

    async def _evaluate_kyc_aml(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> CategoryEvaluationResult:
        status = await self.get_kyc_status(request.user_id)
        approved = status.status == KycStatus.APPROVED
        return CategoryEvaluationResult(
            passed=approved,
            message=(
                "KYC/AML verification complete"
                if approved
                else "KYC/AML verification required or pending"
            ),
            reason_codes=() if approved else (error_codes.KYC_REQUIRED,),
            details={
                "status": status.status.value,
                "updated_at": status.updated_at.isoformat() if status.updated_at else "",
            },
            evaluated_at=self._clock.now(),
        )

    async def _evaluate_compliance(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> Optional[CategoryEvaluationResult]:
        if self._compliance_provider is None or not request.full_evaluation:
            return None

        try:
            status = await self._compliance_provider.get_status(request.user_id)
        except Exception as e:
            raise ReadinessSourceError(
                "Compliance decision lookup failed", dependency="compliance_provider", cause=e
            ) from e

        return CategoryEvaluationResult(
            passed=status.is_compliant,
            message=(
                "No outstanding compliance decisions"
                if status.is_compliant
                else status.reason or "Compliance review required"
            ),
            reason_codes=() if status.is_compliant else (error_codes.COMPLIANCE_REVIEW_REQUIRED,),
            details={
                "pending_decisions": status.pending_decisions,
                "rejected_decisions": status.rejected_decisions,
            },
            evaluated_at=self._clock.now(),
        )

    async def _evaluate_integration(
        self,
        request: ReadinessRequest,
        correlation_id: str,
    ) -> Optional[CategoryEvaluationResult]:
        if self._integration_probe is None or not request.full_evaluation:
            return None

        try:
            health = await self._integration_probe.check(correlation_id)
        except Exception as e:
            raise ReadinessSourceError(
                "Integration health probe failed", dependency="integration_probe", cause=e
            ) from e

        if health.is_healthy:
            message = "All integrations healthy"
        else:
            message = health.message or (
                "Integration services degraded: " + ", ".join(health.unhealthy_services)
            )
        return CategoryEvaluationResult(
            passed=health.is_healthy,
            message=message,
            reason_codes=() if health.is_healthy else (error_codes.EXTERNAL_SERVICE_ERROR,),
            details={"unhealthy_services": list(health.unhealthy_services)},
            evaluated_at=self._clock.now(),
        )

    async def get_kyc_status(self, user_id: str) -> KycStatusResult:
        async def load() -> KycStatusResult:
            try:
                return await self._kyc_provider.get_status(user_id)
            except Exception as e:
                raise ReadinessSourceError(
                    "KYC status lookup failed", dependency="kyc_provider", cause=e
                ) from e

        return await self._kyc_cache.get_or_load((user_id,), load)

    # ============================================================
    # SIDE CHANNELS
    # ============================================================

    def _finish(self, response: ReadinessResponse, start: float) -> ReadinessResponse:
        elapsed_ms = (self._clock.monotonic() - start) * 1000
        return replace(response, evaluation_time_ms=elapsed_ms)

    def _missing_user_response(self, evaluation_id: str, correlation_id: str) -> ReadinessResponse:
        missing = MissingRequiredFieldError("user_id")
        task = RemediationTask(
            category=BlockerCategory.ACCOUNT_STATE,
            error_code=missing.error_code,
            description=missing.message,
            severity=RemediationSeverity.CRITICAL,
            owner_hint="Technical Support",
            actions=("Provide the id of the user launching the token",),
        )
        return ReadinessResponse(
            evaluation_id=evaluation_id,
            status=ReadinessStatus.BLOCKED,
            summary=build_summary(ReadinessStatus.BLOCKED, [task]),
            can_proceed=False,
            details=None,
            remediation_tasks=(task,),
            policy_version=self._config.policy_version,
            evaluated_at=self._clock.now(),
            correlation_id=correlation_id,
        )

    def _record_metrics(self, response: ReadinessResponse) -> None:
        try:
            self._metrics.increment_counter("token_launch_readiness_evaluation")
            self._metrics.increment_counter(
                f"token_launch_readiness_status_{response.status.value.lower()}"
            )
            self._metrics.record_histogram(
                "token_launch_readiness_duration_ms", response.evaluation_time_ms
            )
            if not response.can_proceed:
                self._metrics.increment_counter("token_launch_blocked")
                self._metrics.record_histogram(
                    "token_launch_remediation_task_count", len(response.remediation_tasks)
                )
        except Exception as e:
            logger.warning(f"Failed to emit readiness metrics: {e}")

    async def _store_evidence(self, request: ReadinessRequest, response: ReadinessResponse) -> None:
        try:
            evidence = ReadinessEvidence.from_evaluation(
                request,
                response,
                created_at=self._clock.now(),
                token_deployment_id=request.deployment_context.get("tokenDeploymentId"),
            )
            await self._evidence_store.store(evidence)
            logger.debug(f"Stored readiness evidence for evaluation {response.evaluation_id}")
        except Exception as e:
            logger.error(
                f"Failed to store readiness evidence for evaluation {response.evaluation_id}: {e}",
                exc_info=True,
            )

    def _schedule_alert(self, response: ReadinessResponse, user_id: str) -> None:
        if self._alerter is None:
            return
        task = asyncio.create_task(self._send_alert(response, user_id))
        self._pending_alerts.add(task)
        task.add_done_callback(self._pending_alerts.discard)

    async def _send_alert(self, response: ReadinessResponse, user_id: str) -> None:
        try:
            await self._alerter.alert_on_blocked(response, user_id)
        except Exception as e:
            logger.warning(f"Failed to send blocked readiness alert: {e}")

    async def drain_alerts(self) -> None:
        """Wait for every pending blocked alert."""
        if self._pending_alerts:
            await asyncio.gather(*list(self._pending_alerts))

    # ============================================================
    # EVIDENCE QUERIES
    # ============================================================

    async def get_evaluation(self, evaluation_id: str) -> Optional[ReadinessResponse]:
        """Rebuild a past response from stored evidence. None if missing or unreadable."""
        try:
            evidence = await self._evidence_store.get_by_evaluation_id(evaluation_id)
            return evidence.to_response() if evidence else None
        except Exception as e:
            logger.error(f"Error retrieving evaluation {evaluation_id}: {e}", exc_info=True)
            return None

    async def get_evaluation_history(
        self,
        user_id: str,
        limit: Optional[int] = None,
        from_date: Optional[datetime] = None,
    ) -> List[ReadinessResponse]:
        """Past responses for a user, newest first."""
        try:
            history = await self._evidence_store.get_history(
                user_id,
                limit or self._config.evidence_history_default_limit,
                from_date,
            )
            return [evidence.to_response() for evidence in history]
        except Exception as e:
            logger.error(
                f"Error retrieving evaluation history for user {sanitize_log_input(user_id)}: {e}",
                exc_info=True,
            )
            return []

    async def get_evidence(self, evaluation_id: str) -> Optional[ReadinessEvidence]:
        """Raw evidence record. Store errors propagate."""
        return await self._evidence_store.get_by_evaluation_id(evaluation_id)

    def health_check(self) -> dict:
        return {
            "healthy": True,
            "policy_version": self._config.policy_version,
            "categories": [kind.value for kind in self._evaluators],
            "optional_sources": {
                "compliance": self._compliance_provider is not None,
                "integration": self._integration_probe is not None,
            },
            "alerting": self._alerter is not None,
            "kyc_cache": self._kyc_cache.stats(),
        }


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_readiness_aggregator(
    entitlement_engine: EntitlementEngine,
    account_probe: AccountReadinessProbe,
    kyc_provider: KycStatusProvider,
    evidence_store: Optional[EvidenceStore] = None,
    config: Optional[ReadinessConfig] = None,
    metrics_sink: Optional[MetricsSink] = None,
) -> ReadinessAggregator:
    return ReadinessAggregator(
        entitlement_engine=entitlement_engine,
        account_probe=account_probe,
        kyc_provider=kyc_provider,
        evidence_store=evidence_store,
        config=config,
        metrics_sink=metrics_sink,
    )
