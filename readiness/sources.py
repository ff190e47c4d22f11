"""
Token Launch Readiness - Collaborator Sources.

Protocols for the external readiness sources plus in-memory
implementations used by tests and local runs.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from .types import (
    AccountReadinessResult,
    AccountReadinessState,
    ComplianceStatus,
    IntegrationHealth,
    KycStatus,
    KycStatusResult,
)


# ============================================================
# PROTOCOLS
# ============================================================

@runtime_checkable
class AccountReadinessProbe(Protocol):
    """Reports whether the user's derived signing account can operate."""

    async def check(self, user_id: str, correlation_id: str) -> AccountReadinessResult:
        ...


@runtime_checkable
class KycStatusProvider(Protocol):
    async def get_status(self, user_id: str) -> KycStatusResult:
        ...


@runtime_checkable
class ComplianceDecisionProvider(Protocol):
    """Optional source of outstanding compliance decisions."""

    async def get_status(self, user_id: str) -> ComplianceStatus:
        ...


@runtime_checkable
class IntegrationHealthProbe(Protocol):
    """Optional source of downstream integration health."""

    async def check(self, correlation_id: str) -> IntegrationHealth:
        ...


# ============================================================
# IN-MEMORY IMPLEMENTATIONS
# ============================================================

class InMemoryAccountReadinessProbe:
    """Account states keyed by user id. Unknown users are NotInitialized."""

    def __init__(self, states: Optional[Dict[str, AccountReadinessResult]] = None):
        self._states: Dict[str, AccountReadinessResult] = dict(states or {})
        self.calls = 0

    def set_state(
        self,
        user_id: str,
        state: AccountReadinessState,
        account_address: Optional[str] = None,
        remediation_steps: Iterable[str] = (),
        not_ready_reason: Optional[str] = None,
    ) -> None:
        self._states[user_id] = AccountReadinessResult(
            is_ready=state == AccountReadinessState.READY,
            state=state,
            account_address=account_address,
            remediation_steps=tuple(remediation_steps),
            not_ready_reason=not_ready_reason,
        )

    async def check(self, user_id: str, correlation_id: str) -> AccountReadinessResult:
        self.calls += 1
        return self._states.get(
            user_id,
            AccountReadinessResult(
                is_ready=False,
                state=AccountReadinessState.NOT_INITIALIZED,
                not_ready_reason="Account has not been initialized",
            ),
        )


class InMemoryKycStatusProvider:
    """KYC statuses keyed by user id. Unknown users are NotStarted."""

    def __init__(self, statuses: Optional[Dict[str, KycStatus]] = None):
        self._statuses: Dict[str, KycStatusResult] = {
            user_id: KycStatusResult(status=status) for user_id, status in (statuses or {}).items()
        }
        self.calls = 0

    def set_status(
        self,
        user_id: str,
        status: KycStatus,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self._statuses[user_id] = KycStatusResult(status=status, updated_at=updated_at)

    async def get_status(self, user_id: str) -> KycStatusResult:
        self.calls += 1
        return self._statuses.get(user_id, KycStatusResult(status=KycStatus.NOT_STARTED))


class InMemoryComplianceDecisionProvider:
    def __init__(self, statuses: Optional[Dict[str, ComplianceStatus]] = None):
        self._statuses: Dict[str, ComplianceStatus] = dict(statuses or {})

    def set_status(self, user_id: str, status: ComplianceStatus) -> None:
        self._statuses[user_id] = status

    async def get_status(self, user_id: str) -> ComplianceStatus:
        return self._statuses.get(user_id, ComplianceStatus(is_compliant=True))


class StaticIntegrationHealthProbe:
    """Reports a fixed health answer."""

    def __init__(self, health: Optional[IntegrationHealth] = None):
        self.health = health or IntegrationHealth(is_healthy=True)

    async def check(self, correlation_id: str) -> IntegrationHealth:
        return self.health
