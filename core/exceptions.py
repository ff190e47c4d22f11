"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy used inside the decision engines.

- Exceptions never cross an engine boundary: every engine
  converts them into a structured decision carrying a bounded
  error code (see core.error_codes)
- Each exception type knows the code it degrades to
- Context is carried for logging and debugging

============================================================
EXCEPTION HIERARCHY
============================================================
DecisionEngineException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── ValidationError
│   └── MissingRequiredFieldError
├── DependencyError
│   ├── UsageSourceError
│   └── ReadinessSourceError
├── PersistenceError
│   ├── EvidenceStoreError
│   └── AuditStoreError
└── RuleEvaluationError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from . import error_codes


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, degrades a decision."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Caller can correct the input and retry."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class DecisionEngineException(Exception):
    """
    Base exception for all decision engine errors.

    All exceptions carry:
    - severity: for alerting
    - classification: for retry decisions
    - error_code: the bounded code a consumer sees instead
    - context: for debugging
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE
    error_code: str = error_codes.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if a retry may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(DecisionEngineException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE
    error_code = error_codes.CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# VALIDATION ERRORS
# ============================================================

class ValidationError(DecisionEngineException):
    """Malformed request. Never retried."""

    default_severity = Severity.LOW
    error_code = error_codes.INVALID_REQUEST


class MissingRequiredFieldError(ValidationError):
    """A mandatory request field is absent or empty."""

    error_code = error_codes.MISSING_REQUIRED_FIELD

    def __init__(self, field_name: str):
        super().__init__(
            message=f"Missing required field: {field_name}",
            context={"field": field_name},
        )
        self.field_name = field_name


# ============================================================
# DEPENDENCY ERRORS
# ============================================================

class DependencyError(DecisionEngineException):
    """An external collaborator failed or timed out."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        dependency: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if dependency:
            context["dependency"] = dependency
        super().__init__(message, context=context, **kwargs)


class UsageSourceError(DependencyError):
    """Usage accounting collaborator failed."""


class ReadinessSourceError(DependencyError):
    """Account readiness, KYC, compliance or integration source failed."""


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(DecisionEngineException):
    """Audit or evidence persistence failed. Logged, never surfaced."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT


class EvidenceStoreError(PersistenceError):
    """Readiness evidence could not be stored or read."""


class AuditStoreError(PersistenceError):
    """Entitlement audit entry could not be recorded."""


# ============================================================
# RULE ERRORS
# ============================================================

class RuleEvaluationError(DecisionEngineException):
    """A single policy rule could not be evaluated."""

    default_severity = Severity.HIGH

    def __init__(self, message: str, rule_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if rule_id:
            context["rule_id"] = rule_id
        super().__init__(message, context=context, **kwargs)


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "Severity",
    "ErrorClassification",
    "DecisionEngineException",
    "ConfigurationError",
    "InvalidConfigError",
    "ValidationError",
    "MissingRequiredFieldError",
    "DependencyError",
    "UsageSourceError",
    "ReadinessSourceError",
    "PersistenceError",
    "EvidenceStoreError",
    "AuditStoreError",
    "RuleEvaluationError",
]
