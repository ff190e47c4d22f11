"""
Policy Rule Engine - Metrics.

Running counters for policy evaluations. One lock guards the
whole struct; counters only grow until process restart.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .types import DecisionOutcome, PolicyEvaluationResult


@dataclass(frozen=True)
class PolicyMetricsSnapshot:
    """Point-in-time copy of PolicyMetrics."""

    total_evaluations: int
    average_evaluation_time_ms: float
    automatic_approvals: int
    automatic_rejections: int
    manual_review_required: int
    rule_failure_counts: Dict[str, int] = field(default_factory=dict)
    last_updated: Optional[datetime] = None
    policy_version: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_evaluations": self.total_evaluations,
            "average_evaluation_time_ms": self.average_evaluation_time_ms,
            "automatic_approvals": self.automatic_approvals,
            "automatic_rejections": self.automatic_rejections,
            "manual_review_required": self.manual_review_required,
            "rule_failure_counts": dict(self.rule_failure_counts),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "policy_version": self.policy_version,
        }


class PolicyMetrics:
    """Thread-safe policy evaluation counters."""

    def __init__(self, policy_version: str):
        self._lock = threading.Lock()
        self._policy_version = policy_version
        self._total = 0
        self._average_ms = 0.0
        self._approvals = 0
        self._rejections = 0
        self._manual_review = 0
        self._rule_failures: Dict[str, int] = {}
        self._last_updated: Optional[datetime] = None

    def record(self, result: PolicyEvaluationResult, elapsed_ms: float, now: datetime) -> None:
        """Fold one evaluation into the counters."""
        with self._lock:
            self._total += 1
            # Rolling mean
            self._average_ms += (elapsed_ms - self._average_ms) / self._total

            if result.outcome == DecisionOutcome.APPROVED:
                self._approvals += 1
            elif result.outcome == DecisionOutcome.REJECTED:
                self._rejections += 1
            elif result.outcome in (
                DecisionOutcome.REQUIRES_MANUAL_REVIEW,
                DecisionOutcome.CONDITIONAL_APPROVAL,
            ):
                self._manual_review += 1

            for evaluation in result.rule_evaluations:
                if not evaluation.passed:
                    self._rule_failures[evaluation.rule_id] = (
                        self._rule_failures.get(evaluation.rule_id, 0) + 1
                    )

            self._last_updated = now

    def snapshot(self) -> PolicyMetricsSnapshot:
        with self._lock:
            return PolicyMetricsSnapshot(
                total_evaluations=self._total,
                average_evaluation_time_ms=self._average_ms,
                automatic_approvals=self._approvals,
                automatic_rejections=self._rejections,
                manual_review_required=self._manual_review,
                rule_failure_counts=dict(self._rule_failures),
                last_updated=self._last_updated,
                policy_version=self._policy_version,
            )
