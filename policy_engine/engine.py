"""
Policy Rule Engine - Engine.

============================================================
PURPOSE
============================================================
Evaluates the rules of one onboarding step against supplied
evidence and produces a bounded decision.

============================================================
DECISION TABLE (first match wins)
============================================================
failed_required non-empty            -> REJECTED
warnings non-empty                   -> CONDITIONAL_APPROVAL
                                        (REQUIRES_MANUAL_REVIEW when
                                        conditional approvals are off)
otherwise                            -> APPROVED

failed_required = failed rules with is_required and severity >= ERROR
warnings        = failed rules with severity <= WARNING

============================================================
FAIL-SAFE
============================================================
- No active rules for a step     -> REQUIRES_MANUAL_REVIEW
- A rule raises                  -> that rule fails with ERROR
- Anything else raises           -> REQUIRES_MANUAL_REVIEW

evaluate() NEVER throws.

============================================================
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple, Union

from core import error_codes, sanitize_log_input
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import MissingRequiredFieldError
from core.metrics import MetricsSink, NullMetricsSink

from .config import PolicyConfiguration, get_default_policy_configuration
from .metrics import PolicyMetrics, PolicyMetricsSnapshot
from .predicates import RulePredicateRegistry
from .types import (
    DecisionOutcome,
    Evidence,
    OnboardingStep,
    PolicyEvaluationContext,
    PolicyEvaluationResult,
    PolicyRule,
    RuleEvaluation,
    RuleSeverity,
)


logger = logging.getLogger(__name__)


NO_RULES_ACTION = "Contact compliance team for manual review"
SYSTEM_ERROR_REASON = "Policy evaluation failed due to system error. Manual review required."
RULE_SYSTEM_ERROR_MESSAGE = "Rule evaluation failed due to system error"
NO_ESTIMATE = "Contact compliance team for estimate"


def format_resolution_time(max_hours: int) -> str:
    """
    Bucket a remediation estimate.

    0 -> ask compliance, < 24 -> hours, < 168 -> whole days,
    otherwise whole weeks.
    """
    if max_hours <= 0:
        return NO_ESTIMATE
    if max_hours < 24:
        return f"{max_hours} hours"
    if max_hours < 168:
        return f"{max_hours // 24} days"
    return f"{max_hours // 168} weeks"


class PolicyRuleEngine:
    """
    Deterministic policy evaluator for onboarding steps.

    ============================================================
    USAGE
    ============================================================
        engine = PolicyRuleEngine()
        result = await engine.evaluate(PolicyEvaluationContext(
            step=OnboardingStep.TERMS_ACCEPTANCE,
            evidence=(Evidence("TERMS_ACCEPTANCE", "doc-1", EvidenceVerificationStatus.VERIFIED),),
            organization_id="org-1",
        ))
        result.outcome   # APPROVED

    ============================================================
    """

    def __init__(
        self,
        config: Optional[PolicyConfiguration] = None,
        predicates: Optional[RulePredicateRegistry] = None,
        metrics_sink: Optional[MetricsSink] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Policy table (defaults to the standard catalog)
            predicates: Rule predicate registry
            metrics_sink: External metrics destination
            clock: Decision clock
        """
        self._config = config or get_default_policy_configuration()
        self._predicates = predicates or RulePredicateRegistry()
        self._metrics_sink = metrics_sink or NullMetricsSink()
        self._clock = clock or ClockFactory.get_clock()
        self._metrics = PolicyMetrics(policy_version=self._config.version)

        logger.info(
            f"PolicyRuleEngine initialized: version={self._config.version}, "
            f"rules={self._config.rule_count}"
        )

    @property
    def config(self) -> PolicyConfiguration:
        return self._config

    @property
    def predicates(self) -> RulePredicateRegistry:
        return self._predicates

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def get_rules_for_step(self, step: OnboardingStep) -> List[PolicyRule]:
        """Rules for a step that are active right now."""
        now = self._clock.now()
        return [rule for rule in self._config.rules_for(step) if rule.is_active_at(now)]

    def get_policy_configuration(self) -> PolicyConfiguration:
        return self._config

    def get_metrics(self) -> PolicyMetricsSnapshot:
        return self._metrics.snapshot()

    # --------------------------------------------------------
    # EVALUATION
    # --------------------------------------------------------

    async def evaluate(self, context: PolicyEvaluationContext) -> PolicyEvaluationResult:
        """
        Evaluate a step's rules against the context's evidence.

        This method NEVER throws. Any unexpected error results in
        REQUIRES_MANUAL_REVIEW with INTERNAL_SERVER_ERROR.
        """
        start = self._clock.monotonic()
        org = sanitize_log_input(context.organization_id)
        step_label = (
            context.step.value
            if isinstance(context.step, OnboardingStep)
            else sanitize_log_input(context.step)
        )

        logger.info(f"Starting policy evaluation: organization={org}, step={step_label}")

        try:
            result = await self._evaluate_internal(context)
        except Exception as e:
            logger.error(
                f"Error during policy evaluation: organization={org}, step={step_label}: {e}",
                exc_info=True,
            )
            result = self._manual_review(
                context,
                reason=SYSTEM_ERROR_REASON,
                error_code=error_codes.INTERNAL_SERVER_ERROR,
            )

        elapsed_ms = (self._clock.monotonic() - start) * 1000
        self._record_metrics(result, elapsed_ms)

        logger.info(
            f"Policy evaluation completed: organization={org}, step={step_label}, "
            f"outcome={result.outcome.value}"
        )
        return result

    async def _evaluate_internal(self, context: PolicyEvaluationContext) -> PolicyEvaluationResult:
        # ------ Step 0: validate ------
        step = self._coerce_step(context.step)
        if step is None:
            missing = MissingRequiredFieldError("step")
            return self._manual_review(
                context,
                reason=missing.message,
                error_code=missing.error_code,
            )
        if not isinstance(step, OnboardingStep):
            return self._manual_review(
                context,
                reason=f"Unknown onboarding step: {sanitize_log_input(step)}",
                error_code=error_codes.INVALID_REQUEST,
            )

        if len(context.evidence) > self._config.max_evidence_per_decision:
            return self._manual_review(
                context,
                reason=(
                    f"Evidence count {len(context.evidence)} exceeds maximum of "
                    f"{self._config.max_evidence_per_decision} per decision"
                ),
                step=step,
            )

        # ------ Step 1: active rules ------
        rules = self.get_rules_for_step(step)
        if not rules:
            logger.warning(f"No policy rules found for step: {step.value}")
            return self._manual_review(
                context,
                reason=f"No policy rules configured for step: {step.value}",
                required_actions=(NO_RULES_ACTION,),
                step=step,
            )

        # ------ Step 2: evaluate each rule ------
        evaluations: List[RuleEvaluation] = []
        failed_required: List[Tuple[PolicyRule, RuleEvaluation]] = []
        warnings: List[Tuple[PolicyRule, RuleEvaluation]] = []

        for rule in rules:
            evaluation = await self._evaluate_rule(rule, context)
            evaluations.append(evaluation)

            # ------ Step 3: partition failures ------
            if evaluation.passed:
                continue
            if rule.is_required and rule.severity >= RuleSeverity.ERROR:
                failed_required.append((rule, evaluation))
            elif rule.severity <= RuleSeverity.WARNING:
                warnings.append((rule, evaluation))

        # ------ Step 4: decision table ------
        return self._decide(context, step, tuple(evaluations), failed_required, warnings)

    async def _evaluate_rule(self, rule: PolicyRule, context: PolicyEvaluationContext) -> RuleEvaluation:
        """Evaluate one rule. A failure here fails only this rule."""
        try:
            evidence_ids = self._matching_evidence_ids(rule, context.evidence)
            verified = context.verified_evidence_types()
            missing = sorted(
                t for t in rule.required_evidence_types if t.casefold() not in verified
            )

            if missing:
                return RuleEvaluation(
                    rule_id=rule.rule_id,
                    rule_name=rule.rule_name,
                    passed=False,
                    severity=rule.severity,
                    message=f"{rule.fail_message}. Missing required evidence: {', '.join(missing)}",
                    evidence_ids=evidence_ids,
                )

            passed = await self._predicates.apply(rule, context)
            logger.debug(f"Rule {rule.rule_id} passed={passed}")

            return RuleEvaluation(
                rule_id=rule.rule_id,
                rule_name=rule.rule_name,
                passed=passed,
                severity=None if passed else rule.severity,
                message=rule.pass_message if passed else rule.fail_message,
                evidence_ids=evidence_ids,
            )

        except Exception as e:
            logger.error(f"Error evaluating rule {rule.rule_id}: {e}", exc_info=True)
            return RuleEvaluation(
                rule_id=rule.rule_id,
                rule_name=rule.rule_name,
                passed=False,
                severity=RuleSeverity.ERROR,
                message=RULE_SYSTEM_ERROR_MESSAGE,
            )

    def _decide(
        self,
        context: PolicyEvaluationContext,
        step: OnboardingStep,
        evaluations: Tuple[RuleEvaluation, ...],
        failed_required: List[Tuple[PolicyRule, RuleEvaluation]],
        warnings: List[Tuple[PolicyRule, RuleEvaluation]],
    ) -> PolicyEvaluationResult:
        now = self._clock.now()

        if failed_required:
            names = ", ".join(evaluation.rule_name for _, evaluation in failed_required)
            return PolicyEvaluationResult(
                outcome=DecisionOutcome.REJECTED,
                reason=f"Failed required compliance checks: {names}",
                required_actions=self._collect_actions(rule for rule, _ in failed_required),
                rule_evaluations=evaluations,
                estimated_resolution_time=self._estimate(rule for rule, _ in failed_required),
                policy_version=self._config.version,
                step=step,
                organization_id=context.organization_id,
                evaluated_at=now,
            )

        if warnings:
            names = ", ".join(evaluation.rule_name for _, evaluation in warnings)
            conditional = self._config.allow_conditional_approvals
            return PolicyEvaluationResult(
                outcome=(
                    DecisionOutcome.CONDITIONAL_APPROVAL
                    if conditional
                    else DecisionOutcome.REQUIRES_MANUAL_REVIEW
                ),
                reason=(
                    f"Approved with conditions. Address warnings: {names}"
                    if conditional
                    else f"Manual review required. Address warnings: {names}"
                ),
                required_actions=self._collect_actions(rule for rule, _ in warnings),
                rule_evaluations=evaluations,
                estimated_resolution_time=self._estimate(rule for rule, _ in warnings),
                policy_version=self._config.version,
                step=step,
                organization_id=context.organization_id,
                evaluated_at=now,
                expires_at=self._expiry(now) if conditional else None,
            )

        return PolicyEvaluationResult(
            outcome=DecisionOutcome.APPROVED,
            reason=f"All compliance requirements met for {step.value}",
            rule_evaluations=evaluations,
            policy_version=self._config.version,
            step=step,
            organization_id=context.organization_id,
            evaluated_at=now,
            expires_at=self._expiry(now),
        )

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    @staticmethod
    def _coerce_step(step: Union[OnboardingStep, str, None]):
        if step is None or step == "":
            return None
        if isinstance(step, OnboardingStep):
            return step
        try:
            return OnboardingStep(step)
        except ValueError:
            return step

    @staticmethod
    def _matching_evidence_ids(rule: PolicyRule, evidence: Iterable[Evidence]) -> Tuple[str, ...]:
        return tuple(
            e.reference_id
            for e in evidence
            if any(e.matches_type(t) for t in rule.required_evidence_types)
        )

    @staticmethod
    def _collect_actions(rules: Iterable[PolicyRule]) -> Tuple[str, ...]:
        """De-duplicated union of remediation actions, first occurrence order."""
        actions = {}
        for rule in rules:
            for action in rule.remediation_actions:
                actions.setdefault(action, None)
        return tuple(actions)

    @staticmethod
    def _estimate(rules: Iterable[PolicyRule]) -> str:
        max_hours = max(
            (rule.estimated_remediation_hours or 0 for rule in rules),
            default=0,
        )
        return format_resolution_time(max_hours)

    def _expiry(self, now):
        return now + timedelta(days=self._config.default_expiration_days)

    def _manual_review(
        self,
        context: PolicyEvaluationContext,
        reason: str,
        required_actions: Tuple[str, ...] = (),
        error_code: Optional[str] = None,
        step: Optional[OnboardingStep] = None,
    ) -> PolicyEvaluationResult:
        return PolicyEvaluationResult(
            outcome=DecisionOutcome.REQUIRES_MANUAL_REVIEW,
            reason=reason,
            required_actions=required_actions,
            policy_version=self._config.version,
            step=step if step is not None else (
                context.step if isinstance(context.step, OnboardingStep) else None
            ),
            organization_id=context.organization_id,
            error_code=error_code,
            evaluated_at=self._clock.now(),
        )

    def _record_metrics(self, result: PolicyEvaluationResult, elapsed_ms: float) -> None:
        self._metrics.record(result, elapsed_ms, self._clock.now())
        try:
            self._metrics_sink.increment_counter("policy_evaluation")
            self._metrics_sink.increment_counter(
                f"policy_evaluation_outcome_{result.outcome.value.lower()}"
            )
            self._metrics_sink.record_histogram("policy_evaluation_duration_ms", elapsed_ms)
        except Exception as e:
            logger.warning(f"Failed to emit policy metrics: {e}")

    def health_check(self) -> dict:
        """Report engine configuration and counters."""
        snapshot = self._metrics.snapshot()
        return {
            "status": "OK",
            "timestamp": self._clock.now().isoformat(),
            "policy_version": self._config.version,
            "rule_count": self._config.rule_count,
            "steps_with_rules": sorted(step.value for step in self._config.rules_by_step),
            "predicates": self._predicates.names(),
            "total_evaluations": snapshot.total_evaluations,
        }


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_policy_engine(
    config: Optional[PolicyConfiguration] = None,
    metrics_sink: Optional[MetricsSink] = None,
) -> PolicyRuleEngine:
    """Create a policy engine over the given (or standard) catalog."""
    return PolicyRuleEngine(config=config, metrics_sink=metrics_sink)


async def evaluate_step(
    step: OnboardingStep,
    evidence: Iterable[Evidence],
    organization_id: str,
    engine: Optional[PolicyRuleEngine] = None,
) -> PolicyEvaluationResult:
    """One-shot evaluation of a step against the standard catalog."""
    engine = engine or PolicyRuleEngine()
    return await engine.evaluate(
        PolicyEvaluationContext(
            step=step,
            evidence=tuple(evidence),
            organization_id=organization_id,
        )
    )
