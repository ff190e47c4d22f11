"""
Token Launch Readiness - Configuration.

============================================================
PURPOSE
============================================================
Versions, factor weights and per-category remediation policy.

============================================================
FACTOR TABLE (scoring v2.0)
============================================================
| Factor            | Weight | Blocking |
|-------------------|--------|----------|
| entitlement       | 0.30   | yes      |
| account_readiness | 0.30   | yes      |
| kyc_aml           | 0.15   | no       |
| compliance        | 0.15   | no       |
| integration       | 0.10   | no       |

Weights sum to 1.0. Changing any row requires a new
scoring version.

============================================================
"""

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from core import error_codes
from core.exceptions import InvalidConfigError

from .types import BlockerCategory, CategoryKind, RemediationSeverity


POLICY_VERSION = "2026.02.16.1"
SCORING_VERSION = "v2.0"
READINESS_THRESHOLD = 0.8

EVIDENCE_SOURCE = "TokenLaunchReadinessService"

KYC_UNAVAILABLE_STATUS = "Unavailable"
"""KYC details status when the provider could not be reached."""


# ============================================================
# FACTORS
# ============================================================

@dataclass(frozen=True)
class FactorDefinition:
    """Static description of one scoring factor."""

    kind: CategoryKind
    name: str
    category: str
    weight: float
    is_blocking: bool
    failed_raw_score: float = 0.0
    """Raw score awarded when the category fails."""
    failed_confidence: float = 1.0
    """Confidence reported when the category fails."""

    @property
    def factor_id(self) -> str:
        return self.kind.value


FACTOR_DEFINITIONS: Mapping[CategoryKind, FactorDefinition] = {
    CategoryKind.ENTITLEMENT: FactorDefinition(
        kind=CategoryKind.ENTITLEMENT,
        name="Subscription Entitlement",
        category="Entitlement",
        weight=0.30,
        is_blocking=True,
    ),
    CategoryKind.ACCOUNT_READINESS: FactorDefinition(
        kind=CategoryKind.ACCOUNT_READINESS,
        name="ARC76 Account Readiness",
        category="AccountState",
        weight=0.30,
        is_blocking=True,
    ),
    CategoryKind.KYC_AML: FactorDefinition(
        kind=CategoryKind.KYC_AML,
        name="KYC/AML Verification",
        category="KycAml",
        weight=0.15,
        is_blocking=False,
        # Advisory: partial credit and lower confidence when not verified
        failed_raw_score=0.5,
        failed_confidence=0.7,
    ),
    CategoryKind.COMPLIANCE: FactorDefinition(
        kind=CategoryKind.COMPLIANCE,
        name="Compliance Decisions",
        category="ComplianceDecision",
        weight=0.15,
        is_blocking=False,
    ),
    CategoryKind.INTEGRATION: FactorDefinition(
        kind=CategoryKind.INTEGRATION,
        name="Integration Health",
        category="Integration",
        weight=0.10,
        is_blocking=False,
    ),
}

CANONICAL_FACTOR_IDS: Tuple[str, ...] = tuple(kind.value for kind in CategoryKind)


def default_factor_weights() -> Dict[str, float]:
    return {d.factor_id: d.weight for d in FACTOR_DEFINITIONS.values()}


# ============================================================
# REMEDIATION POLICY
# ============================================================

@dataclass(frozen=True)
class CategoryRemediationPolicy:
    """How a failing category becomes a remediation task."""

    blocker_category: BlockerCategory
    severity: RemediationSeverity
    owner_hint: str
    default_error_code: str
    estimated_resolution_hours: int
    default_actions: Tuple[str, ...]
    description: Optional[str] = None
    """Fixed description. None uses the category message."""


REMEDIATION_POLICIES: Mapping[CategoryKind, CategoryRemediationPolicy] = {
    CategoryKind.ENTITLEMENT: CategoryRemediationPolicy(
        blocker_category=BlockerCategory.ENTITLEMENT,
        severity=RemediationSeverity.CRITICAL,
        owner_hint="Account Owner",
        default_error_code=error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
        estimated_resolution_hours=1,
        default_actions=(
            "Review your current subscription tier and deployment limits",
            "Upgrade to a higher tier to increase deployment capacity",
            "Contact sales for enterprise pricing options",
        ),
    ),
    CategoryKind.ACCOUNT_READINESS: CategoryRemediationPolicy(
        blocker_category=BlockerCategory.ACCOUNT_STATE,
        severity=RemediationSeverity.HIGH,
        owner_hint="User",
        default_error_code=error_codes.ACCOUNT_NOT_READY,
        estimated_resolution_hours=1,
        default_actions=(
            "Complete account initialization through the authentication flow",
            "Contact support if the issue persists",
        ),
    ),
    CategoryKind.KYC_AML: CategoryRemediationPolicy(
        blocker_category=BlockerCategory.KYC_AML,
        severity=RemediationSeverity.MEDIUM,
        owner_hint="Compliance Team",
        default_error_code=error_codes.KYC_REQUIRED,
        estimated_resolution_hours=24,
        default_actions=(
            "Complete KYC verification process for enhanced compliance",
            "Provide required identity documentation",
            "Review jurisdiction-specific requirements",
        ),
        description="KYC/AML verification recommended for regulatory compliance",
    ),
    CategoryKind.COMPLIANCE: CategoryRemediationPolicy(
        blocker_category=BlockerCategory.COMPLIANCE_DECISION,
        severity=RemediationSeverity.HIGH,
        owner_hint="Compliance Team",
        default_error_code=error_codes.COMPLIANCE_REVIEW_REQUIRED,
        estimated_resolution_hours=48,
        default_actions=(
            "Review pending and rejected compliance decisions",
            "Supply the evidence requested by the compliance team",
        ),
    ),
    CategoryKind.INTEGRATION: CategoryRemediationPolicy(
        blocker_category=BlockerCategory.INTEGRATION,
        severity=RemediationSeverity.LOW,
        owner_hint="Technical Support",
        default_error_code=error_codes.EXTERNAL_SERVICE_ERROR,
        estimated_resolution_hours=4,
        default_actions=(
            "Check the status of connected services",
            "Retry the operation after a few minutes",
        ),
    ),
}


# ============================================================
# SERVICE SETTINGS
# ============================================================

@dataclass(frozen=True)
class ReadinessConfig:
    """Aggregator and scorer settings. Env prefix READINESS_."""

    policy_version: str = POLICY_VERSION
    """Stamped on every readiness response."""

    scoring_version: str = SCORING_VERSION

    readiness_threshold: float = READINESS_THRESHOLD
    """Minimum overall score for meets_threshold."""

    factor_weights: Mapping[str, float] = field(default_factory=default_factor_weights)
    """Weight per canonical factor id. Must sum to 1.0."""

    kyc_cache_ttl_seconds: float = 60.0
    """
    Lifetime of a cached KYC status lookup.
    0 disables caching.
    """

    evidence_history_default_limit: int = 50

    alert_on_blocked: bool = True
    """Send a notification when an evaluation is Blocked."""

    alert_min_interval_seconds: float = 300.0
    """Minimum seconds between blocked alerts for the same user."""

    def __post_init__(self):
        missing = set(CANONICAL_FACTOR_IDS) - set(self.factor_weights)
        if missing:
            raise InvalidConfigError(
                "factor_weights", dict(self.factor_weights), f"missing factors {sorted(missing)}"
            )
        for factor_id, weight in self.factor_weights.items():
            if not 0.0 <= weight <= 1.0:
                raise InvalidConfigError(
                    "factor_weights", dict(self.factor_weights), f"{factor_id} outside [0, 1]"
                )
        if not math.isclose(sum(self.factor_weights.values()), 1.0, abs_tol=1e-9):
            raise InvalidConfigError(
                "factor_weights", dict(self.factor_weights), "weights must sum to 1.0"
            )
        if not 0.0 <= self.readiness_threshold <= 1.0:
            raise InvalidConfigError(
                "readiness_threshold", self.readiness_threshold, "must be within [0, 1]"
            )
        if self.kyc_cache_ttl_seconds < 0:
            raise InvalidConfigError(
                "kyc_cache_ttl_seconds", self.kyc_cache_ttl_seconds, "must not be negative"
            )
        if self.evidence_history_default_limit <= 0:
            raise InvalidConfigError(
                "evidence_history_default_limit",
                self.evidence_history_default_limit,
                "must be positive",
            )

    def weight_for(self, kind: CategoryKind) -> float:
        return self.factor_weights[kind.value]

    @classmethod
    def from_env(cls) -> "ReadinessConfig":
        """Load configuration from environment variables."""
        load_dotenv()
        return cls(
            policy_version=os.getenv("READINESS_POLICY_VERSION", POLICY_VERSION),
            scoring_version=os.getenv("READINESS_SCORING_VERSION", SCORING_VERSION),
            readiness_threshold=float(
                os.getenv("READINESS_THRESHOLD", str(READINESS_THRESHOLD))
            ),
            kyc_cache_ttl_seconds=float(os.getenv("READINESS_KYC_CACHE_TTL_SECONDS", "60")),
            evidence_history_default_limit=int(
                os.getenv("READINESS_EVIDENCE_HISTORY_LIMIT", "50")
            ),
            alert_on_blocked=os.getenv("READINESS_ALERT_ON_BLOCKED", "true").lower() == "true",
            alert_min_interval_seconds=float(
                os.getenv("READINESS_ALERT_MIN_INTERVAL_SECONDS", "300")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_version": self.policy_version,
            "scoring_version": self.scoring_version,
            "readiness_threshold": self.readiness_threshold,
            "factor_weights": dict(self.factor_weights),
            "kyc_cache_ttl_seconds": self.kyc_cache_ttl_seconds,
            "evidence_history_default_limit": self.evidence_history_default_limit,
            "alert_on_blocked": self.alert_on_blocked,
            "alert_min_interval_seconds": self.alert_min_interval_seconds,
        }


def get_default_readiness_config() -> ReadinessConfig:
    return ReadinessConfig()
