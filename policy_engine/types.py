"""
Policy Rule Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for onboarding-step policy evaluation.

============================================================
DESIGN PRINCIPLES
============================================================
- Rules and evidence are immutable for one evaluation
- Outcome is a pure function of (passed, severity, is_required)
  over the rule evaluations
- Bounded outcome vocabulary

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from core.clock import within_window


# ============================================================
# ENUMS
# ============================================================


class OnboardingStep(str, Enum):
    """Stages of the organization onboarding process. Rules are keyed by step."""

    ORGANIZATION_IDENTITY_VERIFICATION = "OrganizationIdentityVerification"
    BUSINESS_REGISTRATION_VERIFICATION = "BusinessRegistrationVerification"
    BENEFICIAL_OWNERSHIP_VERIFICATION = "BeneficialOwnershipVerification"
    KYC_KYB_VERIFICATION = "KycKybVerification"
    AML_SCREENING = "AmlScreening"
    JURISDICTIONAL_COMPLIANCE = "JurisdictionalCompliance"
    TOKEN_ISSUANCE_AUTHORIZATION = "TokenIssuanceAuthorization"
    WALLET_CUSTODY_VERIFICATION = "WalletCustodyVerification"
    TERMS_ACCEPTANCE = "TermsAcceptance"
    FINAL_APPROVAL = "FinalApproval"


class DecisionOutcome(str, Enum):
    """Outcome of a policy evaluation."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REQUIRES_MANUAL_REVIEW = "RequiresManualReview"
    CONDITIONAL_APPROVAL = "ConditionalApproval"
    EXPIRED = "Expired"

    @property
    def is_approval(self) -> bool:
        return self in (DecisionOutcome.APPROVED, DecisionOutcome.CONDITIONAL_APPROVAL)


class RuleSeverity(IntEnum):
    """Rule severity. Ordered: INFO < WARNING < ERROR < CRITICAL."""

    INFO = 0
    WARNING = 1
    ERROR = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class EvidenceVerificationStatus(str, Enum):
    """Verification state of one piece of evidence."""

    VERIFIED = "Verified"
    PENDING = "Pending"
    REJECTED = "Rejected"
    UNKNOWN = "Unknown"


# ============================================================
# INPUT TYPES
# ============================================================


@dataclass(frozen=True)
class Evidence:
    """A typed, verifiable artifact supplied by the caller."""

    evidence_type: str
    reference_id: str
    verification_status: EvidenceVerificationStatus = EvidenceVerificationStatus.UNKNOWN

    @property
    def is_verified(self) -> bool:
        return self.verification_status == EvidenceVerificationStatus.VERIFIED

    def matches_type(self, evidence_type: str) -> bool:
        """Case-insensitive type comparison."""
        return self.evidence_type.casefold() == evidence_type.casefold()


@dataclass(frozen=True)
class PolicyRule:
    """
    Declarative policy rule.

    ============================================================
    ACTIVITY
    ============================================================
    A rule is active iff is_active and
    effective_from <= now and (effective_to is None or effective_to > now)

    ============================================================
    """

    rule_id: str
    rule_name: str
    step: OnboardingStep
    category: str
    severity: RuleSeverity = RuleSeverity.ERROR
    is_required: bool = True
    required_evidence_types: FrozenSet[str] = frozenset()
    pass_message: str = ""
    fail_message: str = ""
    remediation_actions: Tuple[str, ...] = ()
    estimated_remediation_hours: Optional[int] = None
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    is_active: bool = True
    description: str = ""
    version: str = "1.0.0"
    regulatory_frameworks: Tuple[str, ...] = ()
    predicate: Optional[str] = None
    configuration: Mapping[str, Any] = field(default_factory=dict)

    def is_active_at(self, now: datetime) -> bool:
        """Check the rule's activity window at `now`."""
        return self.is_active and within_window(now, self.effective_from, self.effective_to)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "step": self.step.value,
            "category": self.category,
            "severity": self.severity.label,
            "is_required": self.is_required,
            "required_evidence_types": sorted(self.required_evidence_types),
            "remediation_actions": list(self.remediation_actions),
            "estimated_remediation_hours": self.estimated_remediation_hours,
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
            "effective_to": self.effective_to.isoformat() if self.effective_to else None,
            "is_active": self.is_active,
            "regulatory_frameworks": list(self.regulatory_frameworks),
            "predicate": self.predicate,
        }


@dataclass(frozen=True)
class PolicyEvaluationContext:
    """Everything one evaluation sees."""

    step: Optional[OnboardingStep]
    evidence: Tuple[Evidence, ...] = ()
    organization_id: str = ""
    onboarding_session_id: Optional[str] = None
    jurisdiction: Optional[str] = None
    token_type: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)

    def verified_evidence_types(self) -> FrozenSet[str]:
        """Case-folded types of all verified evidence."""
        return frozenset(
            e.evidence_type.casefold() for e in self.evidence if e.is_verified
        )


# ============================================================
# OUTPUT TYPES
# ============================================================


@dataclass(frozen=True)
class RuleEvaluation:
    """Result of one rule against one evidence set."""

    rule_id: str
    rule_name: str
    passed: bool
    severity: Optional[RuleSeverity]
    message: str
    evidence_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "passed": self.passed,
            "severity": self.severity.label if self.severity is not None else None,
            "message": self.message,
            "evidence_ids": list(self.evidence_ids),
        }


@dataclass(frozen=True)
class PolicyEvaluationResult:
    """
    Decision for one onboarding step.

    evaluated_at and expires_at are stamps, not decision inputs.
    Two evaluations of the same (rules, evidence) agree on every
    other field.
    """

    outcome: DecisionOutcome
    reason: str
    required_actions: Tuple[str, ...] = ()
    rule_evaluations: Tuple[RuleEvaluation, ...] = ()
    estimated_resolution_time: Optional[str] = None
    policy_version: str = ""
    step: Optional[OnboardingStep] = None
    organization_id: str = ""
    error_code: Optional[str] = None
    evaluated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def failed_rule_ids(self) -> List[str]:
        return [e.rule_id for e in self.rule_evaluations if not e.passed]

    def decision_key(self) -> Tuple[Any, ...]:
        """Every decision-bearing field, without timestamps."""
        return (
            self.outcome,
            self.reason,
            self.required_actions,
            self.rule_evaluations,
            self.estimated_resolution_time,
            self.policy_version,
            self.error_code,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "required_actions": list(self.required_actions),
            "rule_evaluations": [e.to_dict() for e in self.rule_evaluations],
            "estimated_resolution_time": self.estimated_resolution_time,
            "policy_version": self.policy_version,
            "step": self.step.value if self.step else None,
            "organization_id": self.organization_id,
            "error_code": self.error_code,
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
