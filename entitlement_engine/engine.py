"""
Entitlement Engine - Engine.

============================================================
PURPOSE
============================================================
Evaluates a requested operation against the user's
subscription tier.

============================================================
OPERATION KINDS
============================================================
Quota operations      current (+ requested) vs tier ceiling
                      -1 ceiling always passes
                      denial: ENTITLEMENT_LIMIT_EXCEEDED
Feature toggles       direct lookup
                      denial: FEATURE_NOT_INCLUDED

Every denial carries an upgrade recommendation for the next
tier up.

============================================================
FAIL-SAFE
============================================================
- Missing user id        -> denied, MISSING_REQUIRED_FIELD
- Unknown operation      -> denied, INVALID_REQUEST
- Any unexpected error   -> denied, tier "Unknown",
                            INTERNAL_SERVER_ERROR

check() NEVER throws. Audit writes never delay or change
the decision.

============================================================
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from core import error_codes, sanitize_log_input
from core.cache import TTLCache
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import MissingRequiredFieldError, UsageSourceError, ValidationError

from .audit import AuditRecorder, AuditSink, InMemoryAuditSink
from .config import (
    EntitlementConfig,
    FEATURE_DISPLAY_NAMES,
    POLICY_CHANGE_DESCRIPTION,
    TIER_POLICIES,
    UPGRADE_RECOMMENDATIONS,
    get_default_entitlement_config,
    get_tier_configuration,
)
from .sources import UsageSource
from .types import (
    EntitlementAuditEntry,
    EntitlementCheckRequest,
    EntitlementCheckResult,
    EntitlementOperation,
    EntitlementPolicyVersion,
    SubscriptionTier,
    TierPolicyConfiguration,
    UpgradeRecommendation,
    UNLIMITED,
)


logger = logging.getLogger(__name__)


UNKNOWN_TIER = "Unknown"
SYSTEM_ERROR_REASON = "Error evaluating entitlement"

OperationHandler = Callable[
    [EntitlementCheckRequest, SubscriptionTier, TierPolicyConfiguration],
    Awaitable[EntitlementCheckResult],
]


# Feature-toggle operations -> (toggle field, display name)
FEATURE_OPERATIONS: Mapping[EntitlementOperation, Tuple[str, str]] = {
    EntitlementOperation.ADVANCED_COMPLIANCE: (
        "advanced_compliance_enabled", FEATURE_DISPLAY_NAMES["advanced_compliance_enabled"]
    ),
    EntitlementOperation.MULTI_JURISDICTION: (
        "multi_jurisdiction_enabled", FEATURE_DISPLAY_NAMES["multi_jurisdiction_enabled"]
    ),
    EntitlementOperation.CUSTOM_BRANDING: (
        "custom_branding_enabled", FEATURE_DISPLAY_NAMES["custom_branding_enabled"]
    ),
    EntitlementOperation.API_ACCESS: (
        "api_access_enabled", FEATURE_DISPLAY_NAMES["api_access_enabled"]
    ),
    EntitlementOperation.WEBHOOK_ACCESS: (
        "webhooks_enabled", FEATURE_DISPLAY_NAMES["webhooks_enabled"]
    ),
    EntitlementOperation.BULK_OPERATION: (
        "bulk_operations_enabled", FEATURE_DISPLAY_NAMES["bulk_operations_enabled"]
    ),
}


def _context_int(context: Mapping[str, Any], key: str, default: int) -> int:
    value = context.get(key, default)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {key}: must be an integer") from None
    if number < 0:
        raise ValidationError(f"Invalid value for {key}: must not be negative")
    return number


class EntitlementEngine:
    """
    Tier-based entitlement gate.

    ============================================================
    USAGE
    ============================================================
        engine = EntitlementEngine(usage_source)
        result = await engine.check(EntitlementCheckRequest(
            user_id="user-1",
            operation=EntitlementOperation.TOKEN_DEPLOYMENT,
        ))
        if not result.is_allowed:
            show(result.denial_reason, result.upgrade_recommendation)

    ============================================================
    """

    def __init__(
        self,
        usage_source: UsageSource,
        config: Optional[EntitlementConfig] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize the engine.

        Args:
            usage_source: Tier and deployment-count collaborator
            config: Engine settings
            audit_sink: Audit destination (in-memory by default)
            clock: Decision clock
        """
        self._usage_source = usage_source
        self._config = config or get_default_entitlement_config()
        self._clock = clock or ClockFactory.get_clock()
        self._audit = AuditRecorder(audit_sink or InMemoryAuditSink())
        self._tier_cache = TTLCache(
            "user_tier",
            ttl_seconds=self._config.tier_cache_ttl_seconds,
            clock=self._clock,
        )

        self._handlers: Dict[EntitlementOperation, OperationHandler] = {
            EntitlementOperation.TOKEN_DEPLOYMENT: self._evaluate_token_deployment,
            EntitlementOperation.WHITELIST_ADDITION: self._evaluate_whitelist_addition,
            EntitlementOperation.COMPLIANCE_REPORT: self._evaluate_compliance_report,
            EntitlementOperation.AUDIT_EXPORT: self._evaluate_audit_export,
        }

        logger.info(
            f"EntitlementEngine initialized: policy_version={self._config.policy_version}, "
            f"tier_cache_ttl={self._config.tier_cache_ttl_seconds}s"
        )

    @property
    def config(self) -> EntitlementConfig:
        return self._config

    @property
    def audit_recorder(self) -> AuditRecorder:
        return self._audit

    # --------------------------------------------------------
    # CHECK
    # --------------------------------------------------------

    async def check(self, request: EntitlementCheckRequest) -> EntitlementCheckResult:
        """
        Evaluate one entitlement request.

        This method NEVER throws.
        """
        user = sanitize_log_input(request.user_id)
        operation_label = getattr(request.operation, "value", request.operation)
        correlation = sanitize_log_input(request.correlation_id)

        logger.debug(
            f"Checking entitlement for user {user}, operation {operation_label}. "
            f"CorrelationId: {correlation}"
        )

        try:
            result = await self._check_internal(request)
        except ValidationError as e:
            result = EntitlementCheckResult(
                is_allowed=False,
                subscription_tier=UNKNOWN_TIER,
                denial_reason=e.message,
                denial_code=e.error_code,
            )
        except Exception as e:
            logger.error(
                f"Error checking entitlement for user {user}, operation {operation_label}. "
                f"CorrelationId: {correlation}: {e}",
                exc_info=True,
            )
            result = EntitlementCheckResult(
                is_allowed=False,
                subscription_tier=UNKNOWN_TIER,
                denial_reason=SYSTEM_ERROR_REASON,
                denial_code=error_codes.INTERNAL_SERVER_ERROR,
            )

        result = replace(
            result,
            policy_version=self._config.policy_version,
            correlation_id=request.correlation_id,
            timestamp=self._clock.now(),
        )

        logger.info(
            f"Entitlement check result for user {user}, operation {operation_label}: "
            f"{result.is_allowed}. Tier: {result.subscription_tier}, "
            f"PolicyVersion: {result.policy_version}, CorrelationId: {correlation}"
        )

        self.record_decision(result, request)
        return result

    async def _check_internal(self, request: EntitlementCheckRequest) -> EntitlementCheckResult:
        if not request.user_id:
            missing = MissingRequiredFieldError("user_id")
            return EntitlementCheckResult(
                is_allowed=False,
                subscription_tier=UNKNOWN_TIER,
                denial_reason=missing.message,
                denial_code=missing.error_code,
            )

        tier = await self.get_user_tier(request.user_id)
        tier_config = get_tier_configuration(tier)

        try:
            operation = EntitlementOperation(request.operation)
        except ValueError:
            return EntitlementCheckResult(
                is_allowed=False,
                subscription_tier=tier.label,
                denial_reason=f"Unknown operation: {sanitize_log_input(request.operation)}",
                denial_code=error_codes.INVALID_REQUEST,
            )

        handler = self._handlers.get(operation)
        if handler is not None:
            return await handler(request, tier, tier_config)

        field_name, display_name = FEATURE_OPERATIONS[operation]
        return self._evaluate_feature_toggle(
            tier, tier_config, getattr(tier_config.features, field_name), display_name
        )

    # --------------------------------------------------------
    # QUOTA OPERATIONS
    # --------------------------------------------------------

    async def _evaluate_token_deployment(
        self,
        request: EntitlementCheckRequest,
        tier: SubscriptionTier,
        tier_config: TierPolicyConfiguration,
    ) -> EntitlementCheckResult:
        try:
            current = await self._usage_source.get_token_deployment_count(request.user_id)
        except Exception as e:
            raise UsageSourceError(
                "Token deployment count lookup failed", dependency="usage_source", cause=e
            ) from e

        maximum = tier_config.monthly_token_deployments
        result = EntitlementCheckResult(
            is_allowed=True,
            subscription_tier=tier.label,
            current_usage={"currentDeployments": current},
            max_allowed={"maxDeployments": maximum},
        )

        if maximum == UNLIMITED or current < maximum:
            return result

        return replace(
            result,
            is_allowed=False,
            denial_reason=(
                f"Token deployment limit reached for {tier_config.tier_name} tier. "
                f"You have deployed {current} of {maximum} allowed tokens this month."
            ),
            denial_code=error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
            upgrade_recommendation=self.get_upgrade_recommendation(
                tier, EntitlementOperation.TOKEN_DEPLOYMENT
            ),
        )

    async def _evaluate_whitelist_addition(
        self,
        request: EntitlementCheckRequest,
        tier: SubscriptionTier,
        tier_config: TierPolicyConfiguration,
    ) -> EntitlementCheckResult:
        current = _context_int(request.operation_context, "currentCount", 0)
        additional = _context_int(request.operation_context, "additionalCount", 1)
        maximum = tier_config.whitelisted_addresses_per_asset

        result = EntitlementCheckResult(
            is_allowed=True,
            subscription_tier=tier.label,
            current_usage={"currentAddresses": current, "requestedAdditions": additional},
            max_allowed={"maxAddresses": maximum},
        )

        if maximum == UNLIMITED or current + additional <= maximum:
            return result

        return replace(
            result,
            is_allowed=False,
            denial_reason=(
                f"Whitelist limit exceeded for {tier_config.tier_name} tier. "
                f"Current: {current}, Attempting to add: {additional}, Max allowed: {maximum}."
            ),
            denial_code=error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
            upgrade_recommendation=self.get_upgrade_recommendation(
                tier, EntitlementOperation.WHITELIST_ADDITION
            ),
        )

    async def _evaluate_compliance_report(
        self,
        request: EntitlementCheckRequest,
        tier: SubscriptionTier,
        tier_config: TierPolicyConfiguration,
    ) -> EntitlementCheckResult:
        current = _context_int(request.operation_context, "currentCount", 0)
        maximum = tier_config.monthly_compliance_reports

        result = EntitlementCheckResult(
            is_allowed=True,
            subscription_tier=tier.label,
            current_usage={"monthlyReports": current},
            max_allowed={"maxMonthlyReports": maximum},
        )

        if maximum == UNLIMITED or current + 1 <= maximum:
            return result

        return replace(
            result,
            is_allowed=False,
            denial_reason=(
                f"Compliance report limit reached for {tier_config.tier_name} tier. "
                f"You have generated {current} of {maximum} allowed reports this month."
            ),
            denial_code=error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
            upgrade_recommendation=self.get_upgrade_recommendation(
                tier, EntitlementOperation.COMPLIANCE_REPORT
            ),
        )

    async def _evaluate_audit_export(
        self,
        request: EntitlementCheckRequest,
        tier: SubscriptionTier,
        tier_config: TierPolicyConfiguration,
    ) -> EntitlementCheckResult:
        if not tier_config.features.audit_log_enabled:
            return EntitlementCheckResult(
                is_allowed=False,
                subscription_tier=tier.label,
                denial_reason=f"Audit exports are not available in the {tier_config.tier_name} tier",
                denial_code=error_codes.FEATURE_NOT_INCLUDED,
                upgrade_recommendation=self.get_upgrade_recommendation(
                    tier, EntitlementOperation.AUDIT_EXPORT
                ),
            )

        current = _context_int(request.operation_context, "currentCount", 0)
        maximum = tier_config.monthly_audit_exports

        result = EntitlementCheckResult(
            is_allowed=True,
            subscription_tier=tier.label,
            current_usage={"monthlyExports": current},
            max_allowed={"maxMonthlyExports": maximum},
        )

        if maximum == UNLIMITED or current + 1 <= maximum:
            return result

        return replace(
            result,
            is_allowed=False,
            denial_reason=(
                f"Audit export limit reached for {tier_config.tier_name} tier. "
                f"You have exported {current} of {maximum} allowed audit logs this month."
            ),
            denial_code=error_codes.ENTITLEMENT_LIMIT_EXCEEDED,
            upgrade_recommendation=self.get_upgrade_recommendation(
                tier, EntitlementOperation.AUDIT_EXPORT
            ),
        )

    # --------------------------------------------------------
    # FEATURE TOGGLES
    # --------------------------------------------------------

    def _evaluate_feature_toggle(
        self,
        tier: SubscriptionTier,
        tier_config: TierPolicyConfiguration,
        is_enabled: bool,
        feature_name: str,
    ) -> EntitlementCheckResult:
        if is_enabled:
            return EntitlementCheckResult(is_allowed=True, subscription_tier=tier.label)

        return EntitlementCheckResult(
            is_allowed=False,
            subscription_tier=tier.label,
            denial_reason=f"{feature_name} is not available in the {tier_config.tier_name} tier",
            denial_code=error_codes.FEATURE_NOT_INCLUDED,
            upgrade_recommendation=self.get_upgrade_recommendation(tier),
        )

    # --------------------------------------------------------
    # LOOKUPS
    # --------------------------------------------------------

    async def get_user_tier(self, user_id: str) -> SubscriptionTier:
        """Tier lookup through the TTL cache."""

        async def load() -> SubscriptionTier:
            try:
                tier = await self._usage_source.get_user_tier(user_id)
            except Exception as e:
                raise UsageSourceError(
                    "Subscription tier lookup failed", dependency="usage_source", cause=e
                ) from e
            return SubscriptionTier(tier)

        return await self._tier_cache.get_or_load((user_id,), load)

    async def invalidate_user_tier(self, user_id: str) -> None:
        """Drop a cached tier, e.g. after a subscription change."""
        await self._tier_cache.invalidate((user_id,))

    def get_upgrade_recommendation(
        self,
        current_tier: SubscriptionTier,
        operation: Optional[EntitlementOperation] = None,
    ) -> UpgradeRecommendation:
        """
        Recommendation for the next tier up.

        Recommendations depend only on the current tier; the
        operation is accepted for callers that want to log it.
        """
        logger.debug(
            f"Generating upgrade recommendation for tier {current_tier.label}, "
            f"operation {getattr(operation, 'value', operation)}"
        )
        return UPGRADE_RECOMMENDATIONS.get(
            current_tier, UPGRADE_RECOMMENDATIONS[SubscriptionTier.FREE]
        )

    def get_active_policy_version(self) -> EntitlementPolicyVersion:
        """The active tier table, keyed by tier label."""
        return EntitlementPolicyVersion(
            version=self._config.policy_version,
            effective_date=self._config.policy_effective_date,
            change_description=POLICY_CHANGE_DESCRIPTION,
            is_active=True,
            tier_configurations={tier.label: TIER_POLICIES[tier] for tier in SubscriptionTier},
        )

    # --------------------------------------------------------
    # AUDIT
    # --------------------------------------------------------

    def record_decision(
        self,
        result: EntitlementCheckResult,
        request: Optional[EntitlementCheckRequest] = None,
    ) -> None:
        """Queue an audit entry. Never blocks, never raises."""
        if not self._config.audit_enabled:
            return

        try:
            operation = getattr(request.operation, "value", request.operation) if request else None
            entry = EntitlementAuditEntry(
                timestamp=result.timestamp or self._clock.now(),
                subscription_tier=result.subscription_tier,
                is_allowed=result.is_allowed,
                denial_code=result.denial_code,
                policy_version=result.policy_version,
                correlation_id=result.correlation_id or str(uuid.uuid4()),
                user_id=request.user_id if request else None,
                operation=str(operation) if operation is not None else None,
            )
            self._audit.submit(entry)
        except Exception as e:
            logger.warning(f"Failed to queue entitlement audit entry: {e}")

    async def get_audit_entries(self, limit: Optional[int] = None) -> List[EntitlementAuditEntry]:
        """Audit entries, newest first. Waits for pending writes."""
        await self._audit.drain()
        return await self._audit.sink.get_entries(limit)

    def health_check(self) -> dict:
        return {
            "status": "OK",
            "timestamp": self._clock.now().isoformat(),
            "config": self._config.to_dict(),
            "tier_cache": self._tier_cache.stats(),
            "pending_audit_writes": self._audit.pending_count,
            "audit_failures": self._audit.failure_count,
        }


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_entitlement_engine(
    usage_source: UsageSource,
    config: Optional[EntitlementConfig] = None,
    audit_sink: Optional[AuditSink] = None,
) -> EntitlementEngine:
    return EntitlementEngine(usage_source, config=config, audit_sink=audit_sink)


async def is_operation_allowed(
    engine: EntitlementEngine,
    user_id: str,
    operation: EntitlementOperation,
    correlation_id: Optional[str] = None,
) -> bool:
    """Quick boolean check."""
    result = await engine.check(
        EntitlementCheckRequest(
            user_id=user_id,
            operation=operation,
            correlation_id=correlation_id,
        )
    )
    return result.is_allowed
