"""
Core Module Package.

This package contains the shared infrastructure that every
decision engine depends on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- error_codes: Bounded error-code vocabulary
- metrics: Injected metrics sinks
- cache: TTL cache for collaborator lookups
"""

import re

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory, ensure_utc, within_window
from .exceptions import DecisionEngineException
from .metrics import MetricsSink, InMemoryMetricsCollector, NullMetricsSink
from .cache import TTLCache


_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_MAX_LOG_VALUE_LENGTH = 200


def sanitize_log_input(value) -> str:
    """
    Make a caller-supplied value safe to interpolate into a log line.

    Control characters (including newlines) are stripped so a value
    cannot forge extra log records, and the result is truncated.
    """
    if value is None:
        return "N/A"
    text = _CONTROL_CHARS.sub("", str(value))
    if len(text) > _MAX_LOG_VALUE_LENGTH:
        text = text[:_MAX_LOG_VALUE_LENGTH] + "..."
    return text


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "ensure_utc",
    "within_window",
    "DecisionEngineException",
    "MetricsSink",
    "InMemoryMetricsCollector",
    "NullMetricsSink",
    "TTLCache",
    "sanitize_log_input",
]
