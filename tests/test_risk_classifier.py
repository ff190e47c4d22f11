"""
Tests for Risk Classifier.

============================================================
TEST SCENARIOS
============================================================
1. Empty code -> NONE / INFO / DEFINITIVE
2. Prefix match is case-insensitive and first match wins
3. Unknown codes fall back to INFRASTRUCTURE_RISK / WARNING / LOW
4. Table ordering is validated at construction
5. Every published error code classifies to a table entry

============================================================
"""

import pytest
from datetime import datetime, timezone

from core import MockClock
from core.exceptions import InvalidConfigError
from risk_classifier import (
    RISK_CLASSIFICATION_TABLE,
    ConfidenceLevel,
    OperationalRiskCategory,
    OperationSeverity,
    RiskClassificationEntry,
    RiskClassifier,
    classify_error_code,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(datetime(2026, 3, 1, tzinfo=timezone.utc))


@pytest.fixture
def classifier(clock):
    return RiskClassifier(clock=clock)


# ============================================================
# TESTS
# ============================================================

class TestEmptyCode:

    @pytest.mark.parametrize("code", ["", None, "   "])
    def test_no_error_signal(self, classifier, code):
        signal = classifier.classify(code, correlation_id="c-1")

        assert signal.category == OperationalRiskCategory.NONE
        assert signal.severity == OperationSeverity.INFO
        assert signal.confidence == ConfidenceLevel.DEFINITIVE
        assert signal.signal_code == "NO_ERROR"
        assert signal.correlation_id == "c-1"


class TestPrefixMatching:

    def test_unauthorized_prefix(self, classifier):
        signal = classifier.classify("UNAUTHORIZED_TOKEN_X", correlation_id="c-2")

        assert signal.category == OperationalRiskCategory.AUTHORIZATION_RISK
        assert signal.severity == OperationSeverity.ERROR
        assert signal.confidence == ConfidenceLevel.DEFINITIVE
        assert signal.signal_code == "UNAUTHORIZED_TOKEN_X"

    def test_case_insensitive(self, classifier):
        signal = classifier.classify("blockchain_connection_error_timeout")

        assert signal.category == OperationalRiskCategory.NETWORK_RISK
        assert signal.severity == OperationSeverity.WARNING
        assert signal.signal_code == "BLOCKCHAIN_CONNECTION_ERROR_TIMEOUT"

    @pytest.mark.parametrize(
        "code, category, severity",
        [
            ("FORBIDDEN", OperationalRiskCategory.AUTHORIZATION_RISK, OperationSeverity.ERROR),
            ("TIMEOUT", OperationalRiskCategory.INFRASTRUCTURE_RISK, OperationSeverity.WARNING),
            ("MISSING_REQUIRED_FIELD", OperationalRiskCategory.DATA_INTEGRITY_RISK, OperationSeverity.ERROR),
            ("INVALID_NETWORK", OperationalRiskCategory.NETWORK_RISK, OperationSeverity.ERROR),
            ("ALREADY_EXISTS", OperationalRiskCategory.POLICY_RISK, OperationSeverity.INFO),
            ("NOT_FOUND", OperationalRiskCategory.DATA_INTEGRITY_RISK, OperationSeverity.WARNING),
            ("INTERNAL_SERVER_ERROR", OperationalRiskCategory.INFRASTRUCTURE_RISK, OperationSeverity.ERROR),
        ],
    )
    def test_table_entries(self, classifier, code, category, severity):
        signal = classifier.classify(code)

        assert signal.category == category
        assert signal.severity == severity
        assert signal.remediation_hint

    def test_first_match_wins(self, clock):
        table = (
            RiskClassificationEntry(
                "NET_", OperationalRiskCategory.NETWORK_RISK, OperationSeverity.WARNING, "net"
            ),
            RiskClassificationEntry(
                "SEC_", OperationalRiskCategory.SECURITY_RISK, OperationSeverity.CRITICAL, "sec"
            ),
        )
        classifier = RiskClassifier(table=table, clock=clock)

        assert classifier.classify("NET_SEC_DOWN").category == OperationalRiskCategory.NETWORK_RISK


class TestFallback:

    def test_unknown_code(self, classifier):
        signal = classifier.classify("UNKNOWN_XYZ")

        assert signal is not None
        assert signal.category == OperationalRiskCategory.INFRASTRUCTURE_RISK
        assert signal.severity == OperationSeverity.WARNING
        assert signal.confidence == ConfidenceLevel.LOW
        assert signal.remediation_hint

    def test_module_level_helper(self):
        signal = classify_error_code("CONFLICT_ON_UPDATE", "c-3")

        assert signal.category == OperationalRiskCategory.POLICY_RISK
        assert signal.correlation_id == "c-3"


class TestTable:

    def test_table_has_fifteen_entries(self):
        assert len(RISK_CLASSIFICATION_TABLE) == 15

    def test_shadowing_prefix_rejected(self):
        table = (
            RiskClassificationEntry(
                "INVALID", OperationalRiskCategory.DATA_INTEGRITY_RISK, OperationSeverity.ERROR, "x"
            ),
            RiskClassificationEntry(
                "INVALID_NETWORK", OperationalRiskCategory.NETWORK_RISK, OperationSeverity.ERROR, "y"
            ),
        )
        with pytest.raises(InvalidConfigError):
            RiskClassifier(table=table)

    def test_classify_many_preserves_order(self, classifier):
        signals = classifier.classify_many(["NOT_FOUND", "", "WHATEVER"], correlation_id="c-4")

        assert [s.signal_code for s in signals] == ["NOT_FOUND", "NO_ERROR", "WHATEVER"]
        assert all(s.correlation_id == "c-4" for s in signals)

    def test_classification_is_deterministic(self, classifier):
        first = classifier.classify("IPFS_SERVICE_ERROR")
        second = classifier.classify("IPFS_SERVICE_ERROR")

        assert (first.category, first.severity, first.confidence, first.remediation_hint) == (
            second.category, second.severity, second.confidence, second.remediation_hint
        )

    def test_to_dict_uses_labels(self, classifier):
        data = classifier.classify("UNAUTHORIZED").to_dict()

        assert data["category"] == "AuthorizationRisk"
        assert data["severity"] == "Error"
        assert data["confidence"] == "Definitive"
