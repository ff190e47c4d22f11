"""
Risk Classifier - Configuration.

============================================================
PURPOSE
============================================================
The ordered prefix table and fallback classification.

============================================================
ORDERING
============================================================
The first entry whose prefix matches wins. A more specific
prefix must therefore appear before any shorter prefix that
would also match it.

============================================================
"""

from typing import Tuple

from core import error_codes
from core.exceptions import InvalidConfigError

from .types import (
    ConfidenceLevel,
    OperationalRiskCategory,
    OperationSeverity,
    RiskClassificationEntry,
)


# ============================================================
# PREFIX TABLE
# ============================================================

RISK_CLASSIFICATION_TABLE: Tuple[RiskClassificationEntry, ...] = (
    # Authorization
    RiskClassificationEntry(
        error_codes.UNAUTHORIZED,
        OperationalRiskCategory.AUTHORIZATION_RISK,
        OperationSeverity.ERROR,
        "Re-authenticate and retry.",
    ),
    RiskClassificationEntry(
        error_codes.FORBIDDEN,
        OperationalRiskCategory.AUTHORIZATION_RISK,
        OperationSeverity.ERROR,
        "Verify permissions for the requested operation.",
    ),
    RiskClassificationEntry(
        error_codes.INVALID_AUTH_TOKEN,
        OperationalRiskCategory.AUTHORIZATION_RISK,
        OperationSeverity.ERROR,
        "Refresh your authentication token and retry.",
    ),
    # Network / infrastructure
    RiskClassificationEntry(
        error_codes.BLOCKCHAIN_CONNECTION_ERROR,
        OperationalRiskCategory.NETWORK_RISK,
        OperationSeverity.WARNING,
        "Check network connectivity; retry with exponential back-off.",
    ),
    RiskClassificationEntry(
        error_codes.TIMEOUT,
        OperationalRiskCategory.INFRASTRUCTURE_RISK,
        OperationSeverity.WARNING,
        "Transient timeout - retry after a short delay.",
    ),
    RiskClassificationEntry(
        error_codes.EXTERNAL_SERVICE_ERROR,
        OperationalRiskCategory.INFRASTRUCTURE_RISK,
        OperationSeverity.WARNING,
        "Upstream service degraded - retry later.",
    ),
    RiskClassificationEntry(
        error_codes.IPFS_SERVICE_ERROR,
        OperationalRiskCategory.INFRASTRUCTURE_RISK,
        OperationSeverity.WARNING,
        "IPFS service unavailable - retry after a short delay.",
    ),
    # Data integrity
    RiskClassificationEntry(
        error_codes.INVALID_REQUEST,
        OperationalRiskCategory.DATA_INTEGRITY_RISK,
        OperationSeverity.ERROR,
        "Correct the request parameters and resubmit.",
    ),
    RiskClassificationEntry(
        error_codes.MISSING_REQUIRED_FIELD,
        OperationalRiskCategory.DATA_INTEGRITY_RISK,
        OperationSeverity.ERROR,
        "Supply all required fields and resubmit.",
    ),
    RiskClassificationEntry(
        error_codes.INVALID_TOKEN_PARAMETERS,
        OperationalRiskCategory.DATA_INTEGRITY_RISK,
        OperationSeverity.ERROR,
        "Correct the token parameters and resubmit.",
    ),
    RiskClassificationEntry(
        error_codes.INVALID_NETWORK,
        OperationalRiskCategory.NETWORK_RISK,
        OperationSeverity.ERROR,
        "Specify a supported network identifier.",
    ),
    # Policy
    RiskClassificationEntry(
        error_codes.CONFLICT,
        OperationalRiskCategory.POLICY_RISK,
        OperationSeverity.WARNING,
        "Resolve the conflicting operation before retrying.",
    ),
    RiskClassificationEntry(
        error_codes.ALREADY_EXISTS,
        OperationalRiskCategory.POLICY_RISK,
        OperationSeverity.INFO,
        "Resource already exists - idempotent re-submission is safe.",
    ),
    RiskClassificationEntry(
        error_codes.NOT_FOUND,
        OperationalRiskCategory.DATA_INTEGRITY_RISK,
        OperationSeverity.WARNING,
        "Verify the resource identifier and retry.",
    ),
    RiskClassificationEntry(
        error_codes.INTERNAL_SERVER_ERROR,
        OperationalRiskCategory.INFRASTRUCTURE_RISK,
        OperationSeverity.ERROR,
        "Contact support if this error persists.",
    ),
)


# ============================================================
# FIXED OUTCOMES
# ============================================================

NO_ERROR_SIGNAL_CODE = "NO_ERROR"
NO_ERROR_DESCRIPTION = "No error detected."

FALLBACK_CATEGORY = OperationalRiskCategory.INFRASTRUCTURE_RISK
FALLBACK_SEVERITY = OperationSeverity.WARNING
FALLBACK_CONFIDENCE = ConfidenceLevel.LOW
FALLBACK_DESCRIPTION = "Unclassified operational signal."
FALLBACK_HINT = "Contact support with the signal code for guidance."


def validate_table_order(table: Tuple[RiskClassificationEntry, ...]) -> None:
    """
    Reject a table in which an earlier prefix shadows a later one.

    Raises:
        InvalidConfigError: If an earlier prefix is a prefix of a later one
    """
    for i, earlier in enumerate(table):
        for later in table[i + 1:]:
            if later.prefix.upper().startswith(earlier.prefix.upper()):
                raise InvalidConfigError(
                    "risk_classification_table",
                    later.prefix,
                    f"shadowed by earlier prefix {earlier.prefix}",
                )
