"""
Risk Classifier - Type Definitions.

============================================================
PURPOSE
============================================================
Bounded vocabulary for operational risk signals.

Every error code in the system, including codes added later
without a table update, maps onto these enums. Consumers can
branch exhaustively on them.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict
from uuid import uuid4


# ============================================================
# ENUMS
# ============================================================


class OperationalRiskCategory(str, Enum):
    """Category of operational risk a signal belongs to."""

    NONE = "None"
    AUTHORIZATION_RISK = "AuthorizationRisk"
    NETWORK_RISK = "NetworkRisk"
    CONTRACT_RISK = "ContractRisk"
    COMPLIANCE_RISK = "ComplianceRisk"
    DATA_INTEGRITY_RISK = "DataIntegrityRisk"
    INFRASTRUCTURE_RISK = "InfrastructureRisk"
    SECURITY_RISK = "SecurityRisk"
    POLICY_RISK = "PolicyRisk"


class OperationSeverity(IntEnum):
    """Severity of a risk signal. Ordered: INFO < WARNING < ERROR < CRITICAL."""

    INFO = 0
    WARNING = 1
    ERROR = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class ConfidenceLevel(IntEnum):
    """How certain the classification is."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    DEFINITIVE = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


# ============================================================
# TABLE ENTRY
# ============================================================


@dataclass(frozen=True)
class RiskClassificationEntry:
    """One row of the ordered prefix table."""

    prefix: str
    category: OperationalRiskCategory
    severity: OperationSeverity
    remediation_hint: str

    def matches(self, error_code: str) -> bool:
        """Case-insensitive prefix match."""
        return error_code.upper().startswith(self.prefix.upper())


# ============================================================
# OUTPUT
# ============================================================


@dataclass(frozen=True)
class RiskSignal:
    """
    Bounded classification of a single error code.

    ============================================================
    FIELDS
    ============================================================
    - category / severity / confidence: bounded enums
    - signal_code: the upper-cased input code, or NO_ERROR
    - remediation_hint: one actionable sentence
    - correlation_id: echoed from the caller

    ============================================================
    """

    category: OperationalRiskCategory
    severity: OperationSeverity
    confidence: ConfidenceLevel
    signal_code: str
    description: str
    remediation_hint: str
    correlation_id: str = ""
    signal_id: str = field(default_factory=lambda: str(uuid4()))
    assessed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_error(self) -> bool:
        return self.severity >= OperationSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "signal_id": self.signal_id,
            "category": self.category.value,
            "severity": self.severity.label,
            "confidence": self.confidence.label,
            "signal_code": self.signal_code,
            "description": self.description,
            "remediation_hint": self.remediation_hint,
            "correlation_id": self.correlation_id,
            "assessed_at": self.assessed_at.isoformat(),
        }
