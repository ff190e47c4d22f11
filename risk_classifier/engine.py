"""
Risk Classifier - Engine.

============================================================
PURPOSE
============================================================
Turns an opaque error code into a bounded, actionable signal.

============================================================
ALGORITHM
============================================================
1. Empty code -> NONE / INFO / DEFINITIVE ("NO_ERROR")
2. First table entry whose prefix matches (case-insensitive)
   -> its category / severity / hint, DEFINITIVE confidence
3. Nothing matches -> INFRASTRUCTURE_RISK / WARNING / LOW

The fallback guarantees every code gets a safe, non-silent
classification. The classifier is pure and stateless.

============================================================
"""

import logging
from typing import Iterable, List, Optional, Tuple

from core.clock import ClockFactory, ClockProtocol

from .config import (
    FALLBACK_CATEGORY,
    FALLBACK_CONFIDENCE,
    FALLBACK_DESCRIPTION,
    FALLBACK_HINT,
    FALLBACK_SEVERITY,
    NO_ERROR_DESCRIPTION,
    NO_ERROR_SIGNAL_CODE,
    RISK_CLASSIFICATION_TABLE,
    validate_table_order,
)
from .types import (
    ConfidenceLevel,
    OperationalRiskCategory,
    OperationSeverity,
    RiskClassificationEntry,
    RiskSignal,
)


logger = logging.getLogger(__name__)


class RiskClassifier:
    """
    Ordered prefix-table classifier.

    ============================================================
    USAGE
    ============================================================
        classifier = RiskClassifier()
        signal = classifier.classify("UNAUTHORIZED_TOKEN_X", correlation_id="abc")
        signal.category   # AUTHORIZATION_RISK
        signal.severity   # ERROR

    ============================================================
    """

    def __init__(
        self,
        table: Optional[Tuple[RiskClassificationEntry, ...]] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize the classifier.

        Args:
            table: Ordered prefix table (defaults to the built-in table)
            clock: Clock used to stamp signals
        """
        self._table = tuple(table) if table is not None else RISK_CLASSIFICATION_TABLE
        validate_table_order(self._table)
        self._clock = clock or ClockFactory.get_clock()

    @property
    def table(self) -> Tuple[RiskClassificationEntry, ...]:
        return self._table

    def classify(self, error_code: Optional[str], correlation_id: Optional[str] = None) -> RiskSignal:
        """
        Classify a single error code.

        Args:
            error_code: Code to classify (None or blank means no error)
            correlation_id: Echoed on the signal

        Returns:
            RiskSignal (never None, never raises for any string input)
        """
        correlation_id = correlation_id or ""
        assessed_at = self._clock.now()
        code = (error_code or "").strip()

        if not code:
            return RiskSignal(
                category=OperationalRiskCategory.NONE,
                severity=OperationSeverity.INFO,
                confidence=ConfidenceLevel.DEFINITIVE,
                signal_code=NO_ERROR_SIGNAL_CODE,
                description=NO_ERROR_DESCRIPTION,
                remediation_hint="",
                correlation_id=correlation_id,
                assessed_at=assessed_at,
            )

        signal_code = code.upper()

        for entry in self._table:
            if entry.matches(signal_code):
                return RiskSignal(
                    category=entry.category,
                    severity=entry.severity,
                    confidence=ConfidenceLevel.DEFINITIVE,
                    signal_code=signal_code,
                    description=f"Operational risk detected: {entry.category.value}.",
                    remediation_hint=entry.remediation_hint,
                    correlation_id=correlation_id,
                    assessed_at=assessed_at,
                )

        logger.debug(f"Unclassified error code {signal_code}, using fallback")
        return RiskSignal(
            category=FALLBACK_CATEGORY,
            severity=FALLBACK_SEVERITY,
            confidence=FALLBACK_CONFIDENCE,
            signal_code=signal_code,
            description=FALLBACK_DESCRIPTION,
            remediation_hint=FALLBACK_HINT,
            correlation_id=correlation_id,
            assessed_at=assessed_at,
        )

    def classify_many(
        self,
        error_codes: Iterable[Optional[str]],
        correlation_id: Optional[str] = None,
    ) -> List[RiskSignal]:
        """Classify several codes, preserving input order."""
        return [self.classify(code, correlation_id) for code in error_codes]


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

_default_classifier: Optional[RiskClassifier] = None


def classify_error_code(error_code: Optional[str], correlation_id: Optional[str] = None) -> RiskSignal:
    """Classify with a lazily created process-wide classifier."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = RiskClassifier()
    return _default_classifier.classify(error_code, correlation_id)
