"""
Core Module - Error Codes.

============================================================
RESPONSIBILITY
============================================================
Bounded vocabulary of error codes exposed to consumers.

These strings are the engines' only contractual failure surface.
Internal exception types and messages never leave the engines;
callers branch on these codes instead.

============================================================
DESIGN PRINCIPLES
============================================================
- Codes are stable strings, never renamed once published
- Value equals name (UPPER_SNAKE_CASE)
- Grouped by concern

============================================================
"""

# ============================================================
# REQUEST VALIDATION
# ============================================================

INVALID_REQUEST = "INVALID_REQUEST"
MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
INVALID_NETWORK = "INVALID_NETWORK"
INVALID_TOKEN_PARAMETERS = "INVALID_TOKEN_PARAMETERS"

# ============================================================
# AUTHENTICATION / AUTHORIZATION
# ============================================================

UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
INVALID_AUTH_TOKEN = "INVALID_AUTH_TOKEN"

# ============================================================
# RESOURCES
# ============================================================

NOT_FOUND = "NOT_FOUND"
ALREADY_EXISTS = "ALREADY_EXISTS"
CONFLICT = "CONFLICT"

# ============================================================
# EXTERNAL SERVICES
# ============================================================

BLOCKCHAIN_CONNECTION_ERROR = "BLOCKCHAIN_CONNECTION_ERROR"
IPFS_SERVICE_ERROR = "IPFS_SERVICE_ERROR"
EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
TIMEOUT = "TIMEOUT"

# ============================================================
# SERVER
# ============================================================

INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

# ============================================================
# KYC / COMPLIANCE
# ============================================================

KYC_REQUIRED = "KYC_REQUIRED"
KYC_NOT_STARTED = "KYC_NOT_STARTED"
KYC_PENDING = "KYC_PENDING"
KYC_REJECTED = "KYC_REJECTED"
COMPLIANCE_REVIEW_REQUIRED = "COMPLIANCE_REVIEW_REQUIRED"

# ============================================================
# ENTITLEMENTS
# ============================================================

ENTITLEMENT_LIMIT_EXCEEDED = "ENTITLEMENT_LIMIT_EXCEEDED"
FEATURE_NOT_INCLUDED = "FEATURE_NOT_INCLUDED"
TIER_UPGRADE_REQUIRED = "TIER_UPGRADE_REQUIRED"
MONTHLY_QUOTA_EXCEEDED = "MONTHLY_QUOTA_EXCEEDED"

# ============================================================
# ACCOUNT READINESS
# ============================================================

ACCOUNT_NOT_READY = "ACCOUNT_NOT_READY"
ACCOUNT_INITIALIZING = "ACCOUNT_INITIALIZING"
ACCOUNT_DEGRADED = "ACCOUNT_DEGRADED"
ACCOUNT_INITIALIZATION_FAILED = "ACCOUNT_INITIALIZATION_FAILED"


ALL_ERROR_CODES = frozenset(
    value
    for name, value in list(globals().items())
    if name.isupper() and isinstance(value, str)
)


def is_known_error_code(code: str) -> bool:
    """Check whether a code belongs to the published vocabulary."""
    return code in ALL_ERROR_CODES
