"""
Entitlement Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for subscription-tier entitlement checks.

============================================================
DESIGN PRINCIPLES
============================================================
1. Tiers form a strict lattice: Free < Basic < Premium < Enterprise
2. A higher tier never has a lower ceiling or fewer features
3. -1 means unlimited
4. Every decision carries the policy version that produced it

============================================================
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


UNLIMITED = -1


# ============================================================
# ENUMS
# ============================================================

class SubscriptionTier(IntEnum):
    """
    Subscription tier.

    Ordered: comparisons follow the tier lattice.
    """

    FREE = 0
    BASIC = 1
    PREMIUM = 2
    ENTERPRISE = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def next_tier(self) -> "SubscriptionTier":
        """The tier above, or this tier at the top of the lattice."""
        if self == SubscriptionTier.ENTERPRISE:
            return self
        return SubscriptionTier(self + 1)

    @classmethod
    def from_label(cls, label: str) -> "SubscriptionTier":
        """Parse "Free" / "basic" / "PREMIUM". Raises ValueError."""
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown subscription tier: {label}") from None


class EntitlementOperation(str, Enum):
    """Operations gated by subscription tier."""

    # Quota operations
    TOKEN_DEPLOYMENT = "TokenDeployment"
    WHITELIST_ADDITION = "WhitelistAddition"
    COMPLIANCE_REPORT = "ComplianceReport"
    AUDIT_EXPORT = "AuditExport"

    # Feature toggles
    ADVANCED_COMPLIANCE = "AdvancedCompliance"
    MULTI_JURISDICTION = "MultiJurisdiction"
    CUSTOM_BRANDING = "CustomBranding"
    API_ACCESS = "ApiAccess"
    WEBHOOK_ACCESS = "WebhookAccess"
    BULK_OPERATION = "BulkOperation"


# ============================================================
# TIER POLICY
# ============================================================

@dataclass(frozen=True)
class TierFeatureToggles:
    """Boolean features unlocked by a tier."""

    advanced_compliance_enabled: bool = False
    multi_jurisdiction_enabled: bool = False
    custom_branding_enabled: bool = False
    api_access_enabled: bool = False
    webhooks_enabled: bool = False
    priority_support_enabled: bool = False
    sla_enabled: bool = False
    bulk_operations_enabled: bool = False
    audit_log_enabled: bool = False

    def enabled_features(self) -> FrozenSet[str]:
        return frozenset(f.name for f in fields(self) if getattr(self, f.name))

    def is_superset_of(self, other: "TierFeatureToggles") -> bool:
        return self.enabled_features() >= other.enabled_features()

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class TierPolicyConfiguration:
    """
    Ceilings and features for one tier.

    All ceilings are monthly except concurrent drafts and the
    per-asset whitelist size. UNLIMITED (-1) always passes.
    """

    tier_name: str
    monthly_token_deployments: int
    concurrent_drafts: int
    monthly_compliance_reports: int
    monthly_audit_exports: int
    whitelisted_addresses_per_asset: int
    features: TierFeatureToggles = field(default_factory=TierFeatureToggles)

    def ceilings(self) -> Dict[str, int]:
        return {
            "monthly_token_deployments": self.monthly_token_deployments,
            "concurrent_drafts": self.concurrent_drafts,
            "monthly_compliance_reports": self.monthly_compliance_reports,
            "monthly_audit_exports": self.monthly_audit_exports,
            "whitelisted_addresses_per_asset": self.whitelisted_addresses_per_asset,
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"tier_name": self.tier_name}
        data.update(self.ceilings())
        data["features"] = self.features.to_dict()
        return data


def ceiling_at_least(higher: int, lower: int) -> bool:
    """Ceiling comparison where UNLIMITED dominates every finite value."""
    if higher == UNLIMITED:
        return True
    if lower == UNLIMITED:
        return False
    return higher >= lower


@dataclass(frozen=True)
class UpgradeRecommendation:
    """Suggested next tier after a denial."""

    current_tier: str
    recommended_tier: str
    message: str
    unlocked_features: Tuple[str, ...] = ()
    limit_increases: Mapping[str, str] = field(default_factory=dict)
    upgrade_url: Optional[str] = None
    cost_increase: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_tier": self.current_tier,
            "recommended_tier": self.recommended_tier,
            "message": self.message,
            "unlocked_features": list(self.unlocked_features),
            "limit_increases": dict(self.limit_increases),
            "upgrade_url": self.upgrade_url,
            "cost_increase": self.cost_increase,
        }


@dataclass(frozen=True)
class EntitlementPolicyVersion:
    """The active tier table and its version stamp."""

    version: str
    effective_date: datetime
    change_description: str
    is_active: bool
    tier_configurations: Mapping[str, TierPolicyConfiguration]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "effective_date": self.effective_date.isoformat(),
            "change_description": self.change_description,
            "is_active": self.is_active,
            "tier_configurations": {
                name: config.to_dict() for name, config in self.tier_configurations.items()
            },
        }


# ============================================================
# REQUEST / RESULT
# ============================================================

@dataclass(frozen=True)
class EntitlementCheckRequest:
    """
    One entitlement question.

    operation_context keys used by quota operations:
    - currentCount: usage so far (whitelist, reports, exports)
    - additionalCount: units requested (whitelist, default 1)
    """

    user_id: str
    operation: EntitlementOperation
    operation_context: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None


@dataclass(frozen=True)
class EntitlementCheckResult:
    """
    Entitlement decision.

    timestamp is a stamp, not a decision input; decision_key()
    covers everything else.
    """

    is_allowed: bool
    subscription_tier: str
    policy_version: str = ""
    denial_reason: Optional[str] = None
    denial_code: Optional[str] = None
    upgrade_recommendation: Optional[UpgradeRecommendation] = None
    current_usage: Optional[Mapping[str, Any]] = None
    max_allowed: Optional[Mapping[str, Any]] = None
    timestamp: Optional[datetime] = None
    correlation_id: Optional[str] = None

    def decision_key(self) -> Tuple[Any, ...]:
        return (
            self.is_allowed,
            self.subscription_tier,
            self.policy_version,
            self.denial_reason,
            self.denial_code,
            self.upgrade_recommendation,
            tuple(sorted((self.current_usage or {}).items())),
            tuple(sorted((self.max_allowed or {}).items())),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_allowed": self.is_allowed,
            "subscription_tier": self.subscription_tier,
            "policy_version": self.policy_version,
            "denial_reason": self.denial_reason,
            "denial_code": self.denial_code,
            "upgrade_recommendation": (
                self.upgrade_recommendation.to_dict() if self.upgrade_recommendation else None
            ),
            "current_usage": dict(self.current_usage) if self.current_usage is not None else None,
            "max_allowed": dict(self.max_allowed) if self.max_allowed is not None else None,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "correlation_id": self.correlation_id,
        }


@dataclass(frozen=True)
class EntitlementAuditEntry:
    """Audit record of one entitlement decision."""

    timestamp: datetime
    subscription_tier: str
    is_allowed: bool
    denial_code: Optional[str]
    policy_version: str
    correlation_id: str
    user_id: Optional[str] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "subscription_tier": self.subscription_tier,
            "is_allowed": self.is_allowed,
            "denial_code": self.denial_code,
            "policy_version": self.policy_version,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "operation": self.operation,
        }
