"""
Entitlement Engine.

============================================================
PURPOSE
============================================================
Maps a subscription tier to usage ceilings and feature
toggles, and decides whether a requested operation fits.

============================================================
TIER LATTICE
============================================================

Free < Basic < Premium < Enterprise

A higher tier never has a lower ceiling or fewer features.
Enterprise ceilings are unlimited (-1).

============================================================
USAGE
============================================================

```python
from entitlement_engine import EntitlementEngine, InMemoryUsageSource
from entitlement_engine import EntitlementCheckRequest, EntitlementOperation

engine = EntitlementEngine(InMemoryUsageSource())
result = await engine.check(EntitlementCheckRequest(
    user_id="user-1",
    operation=EntitlementOperation.TOKEN_DEPLOYMENT,
    correlation_id="req-9",
))

if not result.is_allowed:
    print(result.denial_code, result.upgrade_recommendation.recommended_tier)
```

============================================================
"""

from .types import (
    UNLIMITED,
    SubscriptionTier,
    EntitlementOperation,
    TierFeatureToggles,
    TierPolicyConfiguration,
    UpgradeRecommendation,
    EntitlementPolicyVersion,
    EntitlementCheckRequest,
    EntitlementCheckResult,
    EntitlementAuditEntry,
    ceiling_at_least,
)
from .config import (
    EntitlementConfig,
    CURRENT_POLICY_VERSION,
    TIER_POLICIES,
    UPGRADE_RECOMMENDATIONS,
    get_default_entitlement_config,
    get_tier_configuration,
)
from .sources import UsageSource, InMemoryUsageSource
from .audit import AuditSink, InMemoryAuditSink, AuditRecorder
from .engine import EntitlementEngine, create_entitlement_engine, is_operation_allowed


__all__ = [
    # Types
    "UNLIMITED",
    "SubscriptionTier",
    "EntitlementOperation",
    "TierFeatureToggles",
    "TierPolicyConfiguration",
    "UpgradeRecommendation",
    "EntitlementPolicyVersion",
    "EntitlementCheckRequest",
    "EntitlementCheckResult",
    "EntitlementAuditEntry",
    "ceiling_at_least",
    # Config
    "EntitlementConfig",
    "CURRENT_POLICY_VERSION",
    "TIER_POLICIES",
    "UPGRADE_RECOMMENDATIONS",
    "get_default_entitlement_config",
    "get_tier_configuration",
    # Sources
    "UsageSource",
    "InMemoryUsageSource",
    # Audit
    "AuditSink",
    "InMemoryAuditSink",
    "AuditRecorder",
    # Engine
    "EntitlementEngine",
    "create_entitlement_engine",
    "is_operation_allowed",
]

__version__ = "1.0.0"
