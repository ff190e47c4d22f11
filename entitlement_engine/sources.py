"""
Entitlement Engine - Usage Sources.

The engine never owns usage accounting. It asks a UsageSource
for the user's tier and month-to-date deployment count.
"""

import logging
from typing import Dict, Optional, Protocol

from .types import SubscriptionTier


logger = logging.getLogger(__name__)


class UsageSource(Protocol):
    """Usage-accounting collaborator."""

    async def get_user_tier(self, user_id: str) -> SubscriptionTier:
        """Current subscription tier of a user."""
        ...

    async def get_token_deployment_count(self, user_id: str) -> int:
        """Token deployments by the user in the current month."""
        ...


class InMemoryUsageSource:
    """
    Dictionary-backed usage source.

    Unknown users are on the Free tier with no deployments.
    """

    def __init__(
        self,
        tiers: Optional[Dict[str, SubscriptionTier]] = None,
        deployments: Optional[Dict[str, int]] = None,
        default_tier: SubscriptionTier = SubscriptionTier.FREE,
    ):
        self._tiers: Dict[str, SubscriptionTier] = dict(tiers or {})
        self._deployments: Dict[str, int] = dict(deployments or {})
        self._default_tier = default_tier

    def set_tier(self, user_id: str, tier: SubscriptionTier) -> None:
        self._tiers[user_id] = tier

    def record_deployment(self, user_id: str, count: int = 1) -> int:
        self._deployments[user_id] = self._deployments.get(user_id, 0) + count
        logger.debug(f"Recorded {count} deployment(s) for {user_id}")
        return self._deployments[user_id]

    def reset_month(self) -> None:
        self._deployments.clear()

    async def get_user_tier(self, user_id: str) -> SubscriptionTier:
        return self._tiers.get(user_id, self._default_tier)

    async def get_token_deployment_count(self, user_id: str) -> int:
        return self._deployments.get(user_id, 0)
