"""
Entitlement Engine - Configuration.

============================================================
PURPOSE
============================================================
The tier table, upgrade recommendations and engine settings.

============================================================
TIER TABLE (policy 2026.02.15.1)
============================================================
| Tier       | Deploys | Drafts | Reports | Exports | Whitelist |
|------------|---------|--------|---------|---------|-----------|
| Free       | 3       | 2      | 5       | 0       | 10        |
| Basic      | 10      | 5      | 20      | 5       | 100       |
| Premium    | 50      | 20     | 100     | 20      | 1000      |
| Enterprise | -1      | -1     | -1      | -1      | -1        |

Loaded once and never mutated.

============================================================
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from dotenv import load_dotenv

from core.exceptions import InvalidConfigError

from .types import (
    SubscriptionTier,
    TierFeatureToggles,
    TierPolicyConfiguration,
    UpgradeRecommendation,
    UNLIMITED,
)


# ============================================================
# ENGINE SETTINGS
# ============================================================

CURRENT_POLICY_VERSION = "2026.02.15.1"
POLICY_EFFECTIVE_DATE = datetime(2026, 2, 15, tzinfo=timezone.utc)
POLICY_CHANGE_DESCRIPTION = "Initial entitlement policy with Free/Basic/Premium/Enterprise tiers"


@dataclass(frozen=True)
class EntitlementConfig:
    """Engine settings. Env prefix ENTITLEMENT_."""

    policy_version: str = CURRENT_POLICY_VERSION
    """Stamped on every decision and audit entry."""

    policy_effective_date: datetime = POLICY_EFFECTIVE_DATE

    tier_cache_ttl_seconds: float = 30.0
    """
    Lifetime of a cached user-tier lookup.
    0 disables caching.
    """

    audit_enabled: bool = True
    """Record every decision through the audit sink."""

    def __post_init__(self):
        if self.tier_cache_ttl_seconds < 0:
            raise InvalidConfigError(
                "tier_cache_ttl_seconds", self.tier_cache_ttl_seconds, "must not be negative"
            )

    @classmethod
    def from_env(cls) -> "EntitlementConfig":
        """Load configuration from environment variables."""
        load_dotenv()
        effective = os.getenv("ENTITLEMENT_POLICY_EFFECTIVE_DATE")
        return cls(
            policy_version=os.getenv("ENTITLEMENT_POLICY_VERSION", CURRENT_POLICY_VERSION),
            policy_effective_date=(
                datetime.fromisoformat(effective) if effective else POLICY_EFFECTIVE_DATE
            ),
            tier_cache_ttl_seconds=float(os.getenv("ENTITLEMENT_TIER_CACHE_TTL_SECONDS", "30")),
            audit_enabled=os.getenv("ENTITLEMENT_AUDIT_ENABLED", "true").lower() == "true",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_version": self.policy_version,
            "policy_effective_date": self.policy_effective_date.isoformat(),
            "tier_cache_ttl_seconds": self.tier_cache_ttl_seconds,
            "audit_enabled": self.audit_enabled,
        }


def get_default_entitlement_config() -> EntitlementConfig:
    return EntitlementConfig()


# ============================================================
# TIER TABLE
# ============================================================

TIER_POLICIES: Mapping[SubscriptionTier, TierPolicyConfiguration] = {
    SubscriptionTier.FREE: TierPolicyConfiguration(
        tier_name="Free",
        monthly_token_deployments=3,
        concurrent_drafts=2,
        monthly_compliance_reports=5,
        monthly_audit_exports=0,
        whitelisted_addresses_per_asset=10,
        features=TierFeatureToggles(),
    ),
    SubscriptionTier.BASIC: TierPolicyConfiguration(
        tier_name="Basic",
        monthly_token_deployments=10,
        concurrent_drafts=5,
        monthly_compliance_reports=20,
        monthly_audit_exports=5,
        whitelisted_addresses_per_asset=100,
        features=TierFeatureToggles(
            api_access_enabled=True,
            audit_log_enabled=True,
        ),
    ),
    SubscriptionTier.PREMIUM: TierPolicyConfiguration(
        tier_name="Premium",
        monthly_token_deployments=50,
        concurrent_drafts=20,
        monthly_compliance_reports=100,
        monthly_audit_exports=20,
        whitelisted_addresses_per_asset=1000,
        features=TierFeatureToggles(
            advanced_compliance_enabled=True,
            multi_jurisdiction_enabled=True,
            api_access_enabled=True,
            webhooks_enabled=True,
            priority_support_enabled=True,
            bulk_operations_enabled=True,
            audit_log_enabled=True,
        ),
    ),
    SubscriptionTier.ENTERPRISE: TierPolicyConfiguration(
        tier_name="Enterprise",
        monthly_token_deployments=UNLIMITED,
        concurrent_drafts=UNLIMITED,
        monthly_compliance_reports=UNLIMITED,
        monthly_audit_exports=UNLIMITED,
        whitelisted_addresses_per_asset=UNLIMITED,
        features=TierFeatureToggles(
            advanced_compliance_enabled=True,
            multi_jurisdiction_enabled=True,
            custom_branding_enabled=True,
            api_access_enabled=True,
            webhooks_enabled=True,
            priority_support_enabled=True,
            sla_enabled=True,
            bulk_operations_enabled=True,
            audit_log_enabled=True,
        ),
    ),
}


def get_tier_configuration(tier: SubscriptionTier) -> TierPolicyConfiguration:
    """Policy for a tier. Unrecognised tiers get the Free policy."""
    return TIER_POLICIES.get(tier, TIER_POLICIES[SubscriptionTier.FREE])


# ============================================================
# UPGRADE RECOMMENDATIONS
# ============================================================

UPGRADE_RECOMMENDATIONS: Mapping[SubscriptionTier, UpgradeRecommendation] = {
    SubscriptionTier.FREE: UpgradeRecommendation(
        current_tier="Free",
        recommended_tier="Basic",
        message="Upgrade to Basic tier to unlock more token deployments, API access, and audit logs",
        unlocked_features=(
            "10 token deployments per month (vs 3)",
            "100 whitelisted addresses per asset (vs 10)",
            "API access",
            "Audit log exports",
            "20 compliance reports per month (vs 5)",
        ),
        limit_increases={
            "Token Deployments": "3 → 10 per month",
            "Whitelisted Addresses": "10 → 100 per asset",
            "Compliance Reports": "5 → 20 per month",
        },
        upgrade_url="/billing/upgrade?target=basic",
        cost_increase="$29/month",
    ),
    SubscriptionTier.BASIC: UpgradeRecommendation(
        current_tier="Basic",
        recommended_tier="Premium",
        message=(
            "Upgrade to Premium tier to unlock advanced compliance, multi-jurisdiction "
            "support, webhooks, and bulk operations"
        ),
        unlocked_features=(
            "50 token deployments per month (vs 10)",
            "1,000 whitelisted addresses per asset (vs 100)",
            "Advanced compliance features",
            "Multi-jurisdiction support",
            "Webhook integration",
            "Bulk operations",
            "Priority support",
        ),
        limit_increases={
            "Token Deployments": "10 → 50 per month",
            "Whitelisted Addresses": "100 → 1,000 per asset",
            "Compliance Reports": "20 → 100 per month",
            "Audit Exports": "5 → 20 per month",
        },
        upgrade_url="/billing/upgrade?target=premium",
        cost_increase="$70/month (total $99/month)",
    ),
    SubscriptionTier.PREMIUM: UpgradeRecommendation(
        current_tier="Premium",
        recommended_tier="Enterprise",
        message=(
            "Upgrade to Enterprise tier for unlimited deployments, custom branding, "
            "and SLA guarantees"
        ),
        unlocked_features=(
            "Unlimited token deployments",
            "Unlimited whitelisted addresses",
            "Unlimited compliance reports and audit exports",
            "Custom branding",
            "SLA guarantees with 99.9% uptime",
            "Dedicated support team",
            "Custom integration options",
        ),
        limit_increases={
            "Token Deployments": "50 → Unlimited",
            "Whitelisted Addresses": "1,000 → Unlimited",
            "Compliance Reports": "100 → Unlimited",
            "Audit Exports": "20 → Unlimited",
        },
        upgrade_url="/billing/upgrade?target=enterprise",
        cost_increase="$200/month (total $299/month)",
    ),
    SubscriptionTier.ENTERPRISE: UpgradeRecommendation(
        current_tier="Enterprise",
        recommended_tier="Enterprise",
        message="You are already on the highest tier",
    ),
}


FEATURE_DISPLAY_NAMES: Mapping[str, str] = {
    "advanced_compliance_enabled": "Advanced Compliance",
    "multi_jurisdiction_enabled": "Multi-Jurisdiction Support",
    "custom_branding_enabled": "Custom Branding",
    "api_access_enabled": "API Access",
    "webhooks_enabled": "Webhook Support",
    "bulk_operations_enabled": "Bulk Operations",
    "audit_log_enabled": "Audit Log",
}
