"""
Token Launch Readiness - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the readiness aggregator and scorer.

============================================================
DESIGN PRINCIPLES
============================================================
1. Every category returns the same CategoryEvaluationResult
   shape so aggregation and scoring are polymorphic
2. Category kinds are a closed set (CategoryKind)
3. Responses round-trip through to_dict()/from_dict() so
   stored evidence can be rebuilt into a response
4. Bounded status and severity vocabularies

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from core.clock import from_iso8601


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return from_iso8601(value) if value else None


# ============================================================
# ENUMS
# ============================================================

class ReadinessStatus(str, Enum):
    """Overall readiness outcome."""

    READY = "Ready"
    """All requirements met."""

    BLOCKED = "Blocked"
    """A blocking category failed. Cannot proceed."""

    WARNING = "Warning"
    """Advisory categories failed. May proceed."""

    NEEDS_REVIEW = "NeedsReview"
    """Manual compliance review required. Cannot proceed."""


class BlockerCategory(str, Enum):
    """Category of a remediation task. Declaration order breaks severity ties."""

    ENTITLEMENT = "Entitlement"
    FEATURE_ACCESS = "FeatureAccess"
    ACCOUNT_STATE = "AccountState"
    COMPLIANCE_DECISION = "ComplianceDecision"
    KYC_AML = "KycAml"
    JURISDICTION = "Jurisdiction"
    WHITELIST = "Whitelist"
    TOKEN_CONFIGURATION = "TokenConfiguration"
    INTEGRATION = "Integration"

    @property
    def order(self) -> int:
        return list(BlockerCategory).index(self)


class RemediationSeverity(IntEnum):
    """Remediation task severity. Higher sorts first."""

    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class CategoryKind(str, Enum):
    """
    The closed set of readiness categories.

    Values double as the canonical scoring factor ids.
    """

    ENTITLEMENT = "entitlement"
    ACCOUNT_READINESS = "account_readiness"
    KYC_AML = "kyc_aml"
    COMPLIANCE = "compliance"
    INTEGRATION = "integration"


class AccountReadinessState(str, Enum):
    """State of the user's derived signing account."""

    READY = "Ready"
    NOT_INITIALIZED = "NotInitialized"
    INITIALIZING = "Initializing"
    DEGRADED = "Degraded"
    FAILED = "Failed"


class KycStatus(str, Enum):
    """KYC verification status reported by the KYC provider."""

    APPROVED = "Approved"
    PENDING = "Pending"
    REJECTED = "Rejected"
    NOT_STARTED = "NotStarted"


class DataFreshness(str, Enum):
    FRESH = "Fresh"
    DELAYED = "Delayed"
    STALE = "Stale"
    UNKNOWN = "Unknown"


class EvidenceType(str, Enum):
    ENTITLEMENT_CHECK = "EntitlementCheck"
    ACCOUNT_READINESS = "AccountReadiness"
    KYC_VERIFICATION = "KycVerification"
    COMPLIANCE_DECISION = "ComplianceDecision"
    BLOCKCHAIN_PROOF = "BlockchainProof"
    INTEGRATION_HEALTH = "IntegrationHealth"
    USER_ACTION = "UserAction"
    AUDIT_LOG = "AuditLog"
    THIRD_PARTY_VERIFICATION = "ThirdPartyVerification"
    RISK_ASSESSMENT = "RiskAssessment"


# ============================================================
# COLLABORATOR RESULTS
# ============================================================

@dataclass(frozen=True)
class AccountReadinessResult:
    """Answer from the account readiness probe."""

    is_ready: bool
    state: AccountReadinessState
    account_address: Optional[str] = None
    remediation_steps: Tuple[str, ...] = ()
    not_ready_reason: Optional[str] = None


@dataclass(frozen=True)
class KycStatusResult:
    """Answer from the KYC status provider."""

    status: KycStatus
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ComplianceStatus:
    """Answer from the compliance decision provider."""

    is_compliant: bool
    pending_decisions: int = 0
    rejected_decisions: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class IntegrationHealth:
    """Answer from the integration health probe."""

    is_healthy: bool
    unhealthy_services: Tuple[str, ...] = ()
    message: Optional[str] = None


# ============================================================
# REQUEST
# ============================================================

@dataclass(frozen=True)
class ReadinessRequest:
    """A token launch readiness question."""

    user_id: str
    token_type: str = ""
    network: Optional[str] = None
    deployment_context: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None
    full_evaluation: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "token_type": self.token_type,
            "network": self.network,
            "deployment_context": dict(self.deployment_context),
            "correlation_id": self.correlation_id,
            "full_evaluation": self.full_evaluation,
        }


# ============================================================
# CATEGORY RESULTS
# ============================================================

@dataclass(frozen=True)
class CategoryEvaluationResult:
    """Uniform result of one readiness category."""

    passed: bool
    message: str
    reason_codes: Tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)
    evaluated_at: Optional[datetime] = None

    @property
    def primary_reason_code(self) -> Optional[str]:
        return self.reason_codes[0] if self.reason_codes else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "message": self.message,
            "reason_codes": list(self.reason_codes),
            "details": dict(self.details),
            "evaluated_at": _iso(self.evaluated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CategoryEvaluationResult":
        return cls(
            passed=bool(data["passed"]),
            message=data.get("message", ""),
            reason_codes=tuple(data.get("reason_codes") or ()),
            details=dict(data.get("details") or {}),
            evaluated_at=_parse(data.get("evaluated_at")),
        )


@dataclass(frozen=True)
class ReadinessEvaluationDetails:
    """Per-category results. Optional categories are None when not evaluated."""

    entitlement: CategoryEvaluationResult
    account_readiness: CategoryEvaluationResult
    kyc_aml: CategoryEvaluationResult
    compliance_decisions: Optional[CategoryEvaluationResult] = None
    integration: Optional[CategoryEvaluationResult] = None

    def get(self, kind: CategoryKind) -> Optional[CategoryEvaluationResult]:
        return {
            CategoryKind.ENTITLEMENT: self.entitlement,
            CategoryKind.ACCOUNT_READINESS: self.account_readiness,
            CategoryKind.KYC_AML: self.kyc_aml,
            CategoryKind.COMPLIANCE: self.compliance_decisions,
            CategoryKind.INTEGRATION: self.integration,
        }[kind]

    def present(self) -> Dict[CategoryKind, CategoryEvaluationResult]:
        """Evaluated categories in canonical order."""
        return {
            kind: result
            for kind in CategoryKind
            if (result := self.get(kind)) is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entitlement": self.entitlement.to_dict(),
            "account_readiness": self.account_readiness.to_dict(),
            "kyc_aml": self.kyc_aml.to_dict(),
            "compliance_decisions": (
                self.compliance_decisions.to_dict() if self.compliance_decisions else None
            ),
            "integration": self.integration.to_dict() if self.integration else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReadinessEvaluationDetails":
        def optional(key: str) -> Optional[CategoryEvaluationResult]:
            value = data.get(key)
            return CategoryEvaluationResult.from_dict(value) if value else None

        return cls(
            entitlement=CategoryEvaluationResult.from_dict(data["entitlement"]),
            account_readiness=CategoryEvaluationResult.from_dict(data["account_readiness"]),
            kyc_aml=CategoryEvaluationResult.from_dict(data["kyc_aml"]),
            compliance_decisions=optional("compliance_decisions"),
            integration=optional("integration"),
        )


# ============================================================
# REMEDIATION
# ============================================================

@dataclass(frozen=True)
class RemediationTask:
    """One actionable fix for one failing category."""

    category: BlockerCategory
    error_code: str
    description: str
    severity: RemediationSeverity
    owner_hint: str
    actions: Tuple[str, ...] = ()
    estimated_resolution_hours: Optional[int] = None
    depends_on: Tuple[str, ...] = ()
    metadata: Optional[Mapping[str, Any]] = None
    task_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "category": self.category.value,
            "error_code": self.error_code,
            "description": self.description,
            "severity": self.severity.label,
            "owner_hint": self.owner_hint,
            "actions": list(self.actions),
            "estimated_resolution_hours": self.estimated_resolution_hours,
            "depends_on": list(self.depends_on),
            "metadata": dict(self.metadata) if self.metadata is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemediationTask":
        return cls(
            task_id=data["task_id"],
            category=BlockerCategory(data["category"]),
            error_code=data["error_code"],
            description=data.get("description", ""),
            severity=RemediationSeverity[data["severity"].upper()],
            owner_hint=data.get("owner_hint", ""),
            actions=tuple(data.get("actions") or ()),
            estimated_resolution_hours=data.get("estimated_resolution_hours"),
            depends_on=tuple(data.get("depends_on") or ()),
            metadata=data.get("metadata"),
        )


# ============================================================
# RESPONSE
# ============================================================

@dataclass(frozen=True)
class ReadinessResponse:
    """Aggregated readiness decision."""

    evaluation_id: str
    status: ReadinessStatus
    summary: str
    can_proceed: bool
    details: Optional[ReadinessEvaluationDetails]
    remediation_tasks: Tuple[RemediationTask, ...] = ()
    policy_version: str = ""
    evaluated_at: Optional[datetime] = None
    correlation_id: Optional[str] = None
    evaluation_time_ms: float = 0.0

    @property
    def top_task(self) -> Optional[RemediationTask]:
        return self.remediation_tasks[0] if self.remediation_tasks else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluation_id": self.evaluation_id,
            "status": self.status.value,
            "summary": self.summary,
            "can_proceed": self.can_proceed,
            "remediation_tasks": [t.to_dict() for t in self.remediation_tasks],
            "details": self.details.to_dict() if self.details else None,
            "policy_version": self.policy_version,
            "evaluated_at": _iso(self.evaluated_at),
            "correlation_id": self.correlation_id,
            "evaluation_time_ms": self.evaluation_time_ms,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReadinessResponse":
        details = data.get("details")
        return cls(
            evaluation_id=data["evaluation_id"],
            status=ReadinessStatus(data["status"]),
            summary=data.get("summary", ""),
            can_proceed=bool(data["can_proceed"]),
            details=ReadinessEvaluationDetails.from_dict(details) if details else None,
            remediation_tasks=tuple(
                RemediationTask.from_dict(t) for t in data.get("remediation_tasks") or ()
            ),
            policy_version=data.get("policy_version", ""),
            evaluated_at=_parse(data.get("evaluated_at")),
            correlation_id=data.get("correlation_id"),
            evaluation_time_ms=float(data.get("evaluation_time_ms") or 0.0),
        )


# ============================================================
# SCORING
# ============================================================

@dataclass(frozen=True)
class ReadinessFactorBreakdown:
    """Contribution of one category to the composite score."""

    factor_id: str
    factor_name: str
    category: str
    weight: float
    raw_score: float
    weighted_score: float
    passed: bool
    is_blocking: bool
    confidence: float = 1.0
    explanation: str = ""
    evidence_reference: Optional[str] = None
    evaluated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor_id": self.factor_id,
            "factor_name": self.factor_name,
            "category": self.category,
            "weight": self.weight,
            "raw_score": self.raw_score,
            "weighted_score": self.weighted_score,
            "passed": self.passed,
            "is_blocking": self.is_blocking,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "evidence_reference": self.evidence_reference,
            "evaluated_at": _iso(self.evaluated_at),
        }


@dataclass(frozen=True)
class ReadinessScore:
    overall_score: float
    overall_confidence: float
    factors: Tuple[ReadinessFactorBreakdown, ...]
    blocking_factors: Tuple[str, ...]
    scoring_version: str
    readiness_threshold: float
    calculated_at: Optional[datetime] = None

    @property
    def meets_threshold(self) -> bool:
        return self.overall_score >= self.readiness_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "overall_confidence": self.overall_confidence,
            "factors": [f.to_dict() for f in self.factors],
            "blocking_factors": list(self.blocking_factors),
            "scoring_version": self.scoring_version,
            "readiness_threshold": self.readiness_threshold,
            "meets_threshold": self.meets_threshold,
            "calculated_at": _iso(self.calculated_at),
        }


@dataclass(frozen=True)
class BlockingCondition:
    """A failed blocking factor and how to clear it."""

    type: str
    description: str
    error_code: str
    category: str
    is_mandatory: bool = True
    resolution_steps: Tuple[str, ...] = ()
    evidence_reference: Optional[str] = None
    estimated_resolution_hours: Optional[int] = None
    condition_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition_id": self.condition_id,
            "type": self.type,
            "description": self.description,
            "error_code": self.error_code,
            "category": self.category,
            "is_mandatory": self.is_mandatory,
            "resolution_steps": list(self.resolution_steps),
            "evidence_reference": self.evidence_reference,
            "estimated_resolution_hours": self.estimated_resolution_hours,
        }


@dataclass(frozen=True)
class ConfidenceMetadata:
    """
    How much to trust a score.

    missing_factors: canonical factors that were not evaluated
    unavailable_factors: factors evaluated but whose source failed
    """

    overall_confidence: float = 1.0
    data_completeness: float = 100.0
    freshness: DataFreshness = DataFreshness.FRESH
    factors_evaluated: int = 0
    high_confidence_factors: int = 0
    low_confidence_factors: int = 0
    missing_factors: Tuple[str, ...] = ()
    unavailable_factors: Tuple[str, ...] = ()
    quality_warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_confidence": self.overall_confidence,
            "data_completeness": self.data_completeness,
            "freshness": self.freshness.value,
            "factors_evaluated": self.factors_evaluated,
            "high_confidence_factors": self.high_confidence_factors,
            "low_confidence_factors": self.low_confidence_factors,
            "missing_factors": list(self.missing_factors),
            "unavailable_factors": list(self.unavailable_factors),
            "quality_warnings": list(self.quality_warnings),
        }


@dataclass(frozen=True)
class ScoringResult:
    """Output of ReadinessScorer.score()."""

    readiness_score: ReadinessScore
    blocking_conditions: Tuple[BlockingCondition, ...]
    confidence: ConfidenceMetadata
    caveats: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "readiness_score": self.readiness_score.to_dict(),
            "blocking_conditions": [c.to_dict() for c in self.blocking_conditions],
            "confidence": self.confidence.to_dict(),
            "caveats": list(self.caveats),
        }


# ============================================================
# EVIDENCE REFERENCES / V2 RESPONSE
# ============================================================

@dataclass(frozen=True)
class EvidenceReference:
    """Pointer to stored evidence backing a decision."""

    evidence_id: str
    type: EvidenceType
    source: str
    summary: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)
    collected_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    data_hash: Optional[str] = None
    resource_uri: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_valid_at(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at > now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evidence_id": self.evidence_id,
            "type": self.type.value,
            "source": self.source,
            "summary": self.summary,
            "metadata": dict(self.metadata),
            "collected_at": _iso(self.collected_at),
            "validated_at": _iso(self.validated_at),
            "data_hash": self.data_hash,
            "resource_uri": self.resource_uri,
            "expires_at": _iso(self.expires_at),
        }


@dataclass(frozen=True)
class EvidenceRetrievalResponse:
    success: bool
    evidence: Optional[EvidenceReference] = None
    content_json: Optional[str] = None
    error_message: Optional[str] = None
    evaluation_id: Optional[str] = None


@dataclass(frozen=True)
class ReadinessResponseV2:
    """Aggregated decision enriched with score, confidence and evidence."""

    evaluation_id: str
    status: ReadinessStatus
    summary: str
    can_proceed: bool
    details: Optional[ReadinessEvaluationDetails] = None
    readiness_score: Optional[ReadinessScore] = None
    blocking_conditions: Tuple[BlockingCondition, ...] = ()
    remediation_tasks: Tuple[RemediationTask, ...] = ()
    confidence: ConfidenceMetadata = field(default_factory=ConfidenceMetadata)
    evidence_references: Tuple[EvidenceReference, ...] = ()
    caveats: Tuple[str, ...] = ()
    policy_version: str = ""
    evaluated_at: Optional[datetime] = None
    correlation_id: Optional[str] = None
    evaluation_time_ms: float = 0.0
    api_version: str = "v2.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_version": self.api_version,
            "evaluation_id": self.evaluation_id,
            "status": self.status.value,
            "summary": self.summary,
            "can_proceed": self.can_proceed,
            "readiness_score": self.readiness_score.to_dict() if self.readiness_score else None,
            "blocking_conditions": [c.to_dict() for c in self.blocking_conditions],
            "remediation_tasks": [t.to_dict() for t in self.remediation_tasks],
            "details": self.details.to_dict() if self.details else None,
            "confidence": self.confidence.to_dict(),
            "evidence_references": [r.to_dict() for r in self.evidence_references],
            "caveats": list(self.caveats),
            "policy_version": self.policy_version,
            "evaluated_at": _iso(self.evaluated_at),
            "correlation_id": self.correlation_id,
            "evaluation_time_ms": self.evaluation_time_ms,
        }


def task_list(tasks: List[RemediationTask]) -> Tuple[RemediationTask, ...]:
    """Sort tasks by severity descending, then category declaration order."""
    return tuple(sorted(tasks, key=lambda t: (-int(t.severity), t.category.order)))
