"""
Policy Rule Engine.

============================================================
PURPOSE
============================================================
Decides whether an organization may pass an onboarding step,
given the evidence it has supplied.

============================================================
DECISION FLOW
============================================================

evidence + step → active rules → per-rule evaluation → decision table

Outcomes:
- APPROVED: every active rule passed
- CONDITIONAL_APPROVAL: only warning-level rules failed
- REJECTED: a required rule at ERROR or above failed
- REQUIRES_MANUAL_REVIEW: no rules, bad input, or system error

An absent policy never approves silently.

============================================================
USAGE
============================================================

```python
from policy_engine import PolicyRuleEngine, PolicyEvaluationContext
from policy_engine import Evidence, EvidenceVerificationStatus, OnboardingStep

engine = PolicyRuleEngine()
result = await engine.evaluate(PolicyEvaluationContext(
    step=OnboardingStep.TERMS_ACCEPTANCE,
    evidence=(
        Evidence("TERMS_ACCEPTANCE", "doc-7", EvidenceVerificationStatus.VERIFIED),
    ),
    organization_id="org-42",
))

if result.outcome.is_approval:
    advance_onboarding()
else:
    show(result.reason, result.required_actions)
```

============================================================
"""

from .types import (
    OnboardingStep,
    DecisionOutcome,
    RuleSeverity,
    EvidenceVerificationStatus,
    Evidence,
    PolicyRule,
    PolicyEvaluationContext,
    RuleEvaluation,
    PolicyEvaluationResult,
)
from .config import (
    StandardPolicyRuleIds,
    PolicyConfiguration,
    build_rules_by_step,
    get_standard_rules,
    get_default_policy_configuration,
)
from .predicates import RulePredicateRegistry, DEFAULT_PREDICATE, ALLOWLIST_PREDICATE
from .metrics import PolicyMetrics, PolicyMetricsSnapshot
from .engine import PolicyRuleEngine, create_policy_engine, evaluate_step, format_resolution_time


__all__ = [
    # Types
    "OnboardingStep",
    "DecisionOutcome",
    "RuleSeverity",
    "EvidenceVerificationStatus",
    "Evidence",
    "PolicyRule",
    "PolicyEvaluationContext",
    "RuleEvaluation",
    "PolicyEvaluationResult",
    # Config
    "StandardPolicyRuleIds",
    "PolicyConfiguration",
    "build_rules_by_step",
    "get_standard_rules",
    "get_default_policy_configuration",
    # Predicates
    "RulePredicateRegistry",
    "DEFAULT_PREDICATE",
    "ALLOWLIST_PREDICATE",
    # Metrics
    "PolicyMetrics",
    "PolicyMetricsSnapshot",
    # Engine
    "PolicyRuleEngine",
    "create_policy_engine",
    "evaluate_step",
    "format_resolution_time",
]

__version__ = "1.0.0"
