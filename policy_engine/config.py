"""
Policy Rule Engine - Configuration.

============================================================
PURPOSE
============================================================
The compiled policy table: policy-wide settings plus the
standard onboarding rule catalog.

The table is built once at engine start and never mutated.
Reads need no lock.

============================================================
STANDARD CATALOG
============================================================
| Step                             | Rule            | Severity |
|----------------------------------|-----------------|----------|
| OrganizationIdentityVerification | ORG_ID_DOC_001  | Error    |
| BusinessRegistrationVerification | BUS_REG_LIC_001 | Error    |
| KycKybVerification               | KYC_DOC_001     | Error    |
| AmlScreening                     | AML_SCREEN_001  | Critical |
| TokenIssuanceAuthorization       | TOKEN_TYPE_001  | Error    |
| TermsAcceptance                  | TERMS_ACCEPT_001| Error    |
| FinalApproval                    | FINAL_STEPS_001 | Error    |

Steps without rules (beneficial ownership, jurisdiction, wallet
custody) evaluate to RequiresManualReview.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Tuple

from core.exceptions import InvalidConfigError

from .types import OnboardingStep, PolicyRule, RuleSeverity


# ============================================================
# RULE IDENTIFIERS
# ============================================================


class StandardPolicyRuleIds:
    """Stable identifiers of the standard rules."""

    # Organization identity
    ORG_IDENTITY_DOCUMENT_REQUIRED = "ORG_ID_DOC_001"
    ORG_IDENTITY_VERIFICATION_COMPLETE = "ORG_ID_VERIFY_001"

    # Business registration
    BUSINESS_LICENSE_REQUIRED = "BUS_REG_LIC_001"
    BUSINESS_REGISTRATION_NUMBER_VALID = "BUS_REG_NUM_001"

    # Beneficial ownership
    BENEFICIAL_OWNER_DISCLOSURE = "BEN_OWN_DISC_001"
    BENEFICIAL_OWNER_VERIFICATION = "BEN_OWN_VERIFY_001"

    # KYC / KYB
    KYC_DOCUMENTATION_COMPLETE = "KYC_DOC_001"
    KYB_BUSINESS_VERIFICATION_COMPLETE = "KYB_BUS_001"

    # AML
    AML_SCREENING_PASSED = "AML_SCREEN_001"
    SANCTIONS_CHECK_PASSED = "AML_SANCTION_001"
    PEP_CHECK_PASSED = "AML_PEP_001"

    # Jurisdiction
    JURISDICTION_ALLOWED = "JUR_ALLOW_001"
    JURISDICTION_COMPLIANT = "JUR_COMPLY_001"

    # Token issuance
    TOKEN_TYPE_ALLOWED = "TOKEN_TYPE_001"
    TOKEN_PARAMETERS_VALID = "TOKEN_PARAM_001"
    TOKEN_COMPLIANCE_VALID = "TOKEN_COMPLY_001"

    # Terms and final approval
    TERMS_ACCEPTED = "TERMS_ACCEPT_001"
    ALL_STEPS_COMPLETED = "FINAL_STEPS_001"


# Rules in the standard catalog are effective from this instant.
STANDARD_RULES_EFFECTIVE_FROM = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ============================================================
# POLICY CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PolicyConfiguration:
    """
    Policy-wide settings and the rule table.

    ============================================================
    FIELDS
    ============================================================
    - version: opaque; changes only when the rule table changes
    - default_expiration_days: lifetime of an approval
    - default_review_interval_days: periodic review cadence
    - allow_conditional_approvals: when False, warning-only
      failures become RequiresManualReview
    - max_evidence_per_decision: larger evidence sets go to
      manual review
    - rules_by_step: step -> rules

    ============================================================
    """

    version: str = "1.0.0"
    default_expiration_days: int = 365
    default_review_interval_days: int = 180
    allow_conditional_approvals: bool = True
    max_evidence_per_decision: int = 50
    rules_by_step: Mapping[OnboardingStep, Tuple[PolicyRule, ...]] = field(default_factory=dict)

    def __post_init__(self):
        if self.max_evidence_per_decision <= 0:
            raise InvalidConfigError(
                "max_evidence_per_decision",
                self.max_evidence_per_decision,
                "must be positive",
            )
        seen = set()
        for step, rules in self.rules_by_step.items():
            for rule in rules:
                if rule.step != step:
                    raise InvalidConfigError(
                        "rules_by_step",
                        rule.rule_id,
                        f"rule is for step {rule.step.value}, filed under {step.value}",
                    )
                if rule.rule_id in seen:
                    raise InvalidConfigError("rules_by_step", rule.rule_id, "duplicate rule id")
                seen.add(rule.rule_id)

    def rules_for(self, step: OnboardingStep) -> Tuple[PolicyRule, ...]:
        """All rules filed under a step, active or not."""
        return tuple(self.rules_by_step.get(step, ()))

    def find_rule(self, rule_id: str):
        """Look a rule up by id across all steps."""
        for rules in self.rules_by_step.values():
            for rule in rules:
                if rule.rule_id == rule_id:
                    return rule
        return None

    @property
    def rule_count(self) -> int:
        return sum(len(rules) for rules in self.rules_by_step.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "default_expiration_days": self.default_expiration_days,
            "default_review_interval_days": self.default_review_interval_days,
            "allow_conditional_approvals": self.allow_conditional_approvals,
            "max_evidence_per_decision": self.max_evidence_per_decision,
            "rules_by_step": {
                step.value: [rule.to_dict() for rule in rules]
                for step, rules in self.rules_by_step.items()
            },
        }


def build_rules_by_step(rules: Iterable[PolicyRule]) -> Dict[OnboardingStep, Tuple[PolicyRule, ...]]:
    """Group a flat rule list by step, preserving order."""
    grouped: Dict[OnboardingStep, list] = {}
    for rule in rules:
        grouped.setdefault(rule.step, []).append(rule)
    return {step: tuple(items) for step, items in grouped.items()}


# ============================================================
# STANDARD CATALOG
# ============================================================


def get_standard_rules() -> Tuple[PolicyRule, ...]:
    """The standard onboarding rule catalog."""
    return (
        PolicyRule(
            rule_id=StandardPolicyRuleIds.ORG_IDENTITY_DOCUMENT_REQUIRED,
            rule_name="Organization Identity Document",
            description="Organization must provide valid identity documentation",
            step=OnboardingStep.ORGANIZATION_IDENTITY_VERIFICATION,
            category="IDENTITY",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"ORG_REGISTRATION_CERT", "TAX_ID_DOCUMENT"}),
            pass_message="Organization identity documentation verified",
            fail_message="Missing or invalid organization identity documentation",
            remediation_actions=(
                "Upload organization registration certificate",
                "Upload tax identification document",
            ),
            estimated_remediation_hours=2,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA", "AML5"),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.BUSINESS_LICENSE_REQUIRED,
            rule_name="Business License Verification",
            description="Valid business license must be provided",
            step=OnboardingStep.BUSINESS_REGISTRATION_VERIFICATION,
            category="BUSINESS",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"BUSINESS_LICENSE"}),
            pass_message="Business license verified",
            fail_message="Missing or invalid business license",
            remediation_actions=("Upload valid business license",),
            estimated_remediation_hours=24,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA",),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.KYC_DOCUMENTATION_COMPLETE,
            rule_name="KYC Documentation Complete",
            description="Know Your Customer documentation must be complete",
            step=OnboardingStep.KYC_KYB_VERIFICATION,
            category="KYC",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"KYC_REPORT"}),
            pass_message="KYC documentation complete and verified",
            fail_message="Incomplete or invalid KYC documentation",
            remediation_actions=("Complete KYC verification process",),
            estimated_remediation_hours=48,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA", "AML5", "FATF"),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.AML_SCREENING_PASSED,
            rule_name="AML Screening Passed",
            description="Anti-Money Laundering screening must pass",
            step=OnboardingStep.AML_SCREENING,
            category="AML",
            severity=RuleSeverity.CRITICAL,
            required_evidence_types=frozenset({"AML_REPORT"}),
            pass_message="AML screening passed successfully",
            fail_message="AML screening failed or flagged concerns",
            remediation_actions=("Contact compliance team for AML review",),
            estimated_remediation_hours=72,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA", "AML5", "FATF"),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.TOKEN_TYPE_ALLOWED,
            rule_name="Token Type Allowed",
            description="Token type must be allowed for this organization",
            step=OnboardingStep.TOKEN_ISSUANCE_AUTHORIZATION,
            category="TOKEN",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"TOKEN_SPECIFICATION"}),
            pass_message="Token type is approved for issuance",
            fail_message="Token type is not allowed or requires additional approval",
            remediation_actions=("Submit token specification for review",),
            estimated_remediation_hours=24,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA",),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.TERMS_ACCEPTED,
            rule_name="Terms and Conditions Accepted",
            description="Terms and conditions must be accepted",
            step=OnboardingStep.TERMS_ACCEPTANCE,
            category="LEGAL",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"TERMS_ACCEPTANCE"}),
            pass_message="Terms and conditions accepted",
            fail_message="Terms and conditions not accepted",
            remediation_actions=("Review and accept terms and conditions",),
            estimated_remediation_hours=1,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("GDPR", "MICA"),
        ),
        PolicyRule(
            rule_id=StandardPolicyRuleIds.ALL_STEPS_COMPLETED,
            rule_name="All Steps Completed",
            description="All onboarding steps must be completed",
            step=OnboardingStep.FINAL_APPROVAL,
            category="ONBOARDING",
            severity=RuleSeverity.ERROR,
            required_evidence_types=frozenset({"ONBOARDING_COMPLETION"}),
            pass_message="All onboarding steps completed successfully",
            fail_message="Not all onboarding steps are complete",
            remediation_actions=("Complete all pending onboarding steps",),
            estimated_remediation_hours=0,
            effective_from=STANDARD_RULES_EFFECTIVE_FROM,
            regulatory_frameworks=("MICA",),
        ),
    )


def get_default_policy_configuration() -> PolicyConfiguration:
    """Standard catalog with default policy settings."""
    return PolicyConfiguration(rules_by_step=build_rules_by_step(get_standard_rules()))
