"""
Risk Classifier - Package.

============================================================
PURPOSE
============================================================
Maps error codes to bounded operational risk signals.

============================================================
WHAT IT IS
============================================================
- A pure function over an ordered table of code prefixes
- First match wins; unknown codes get a conservative fallback
- No dependencies beyond the shared clock

============================================================
USAGE
============================================================
    from risk_classifier import RiskClassifier

    classifier = RiskClassifier()
    signal = classifier.classify("TIMEOUT_UPSTREAM", correlation_id="req-1")

    print(signal.category.value)   # InfrastructureRisk
    print(signal.remediation_hint)

============================================================
"""

from .types import (
    OperationalRiskCategory,
    OperationSeverity,
    ConfidenceLevel,
    RiskClassificationEntry,
    RiskSignal,
)
from .config import RISK_CLASSIFICATION_TABLE
from .engine import RiskClassifier, classify_error_code


__all__ = [
    "OperationalRiskCategory",
    "OperationSeverity",
    "ConfidenceLevel",
    "RiskClassificationEntry",
    "RiskSignal",
    "RISK_CLASSIFICATION_TABLE",
    "RiskClassifier",
    "classify_error_code",
]

__version__ = "1.0.0"
