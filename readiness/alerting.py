"""
Token Launch Readiness - Alerting.

============================================================
PURPOSE
============================================================
Notifications for Blocked readiness evaluations.

A Blocked evaluation triggers an alert through every
configured sender. Alerts are rate-limited per user so a
client retrying a blocked launch does not flood the channel.

Alerting never affects the readiness decision: send failures
are logged and reported as False.

============================================================
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional, Protocol, Sequence

import aiohttp

from core import sanitize_log_input
from core.clock import ClockFactory, ClockProtocol

from .types import ReadinessResponse, ReadinessStatus, RemediationSeverity


logger = logging.getLogger(__name__)


# ============================================================
# ALERT MESSAGE TYPES
# ============================================================

@dataclass(frozen=True)
class ReadinessAlert:
    """Alert message structure."""

    evaluation_id: str
    user_id: str

    severity: RemediationSeverity
    """Severity of the top remediation task."""

    title: str
    message: str

    error_code: str
    """Error code of the top remediation task."""

    correlation_id: Optional[str]
    timestamp: datetime

    def to_payload(self) -> Dict[str, object]:
        return {
            "evaluation_id": self.evaluation_id,
            "user_id": self.user_id,
            "severity": self.severity.label,
            "title": self.title,
            "message": self.message,
            "error_code": self.error_code,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
        }


class ReadinessAlertFormatter:
    """Formats Blocked responses into alert messages."""

    def format_alert(self, response: ReadinessResponse, user_id: str) -> ReadinessAlert:
        top = response.top_task
        severity = top.severity if top else RemediationSeverity.CRITICAL
        error_code = top.error_code if top else "UNKNOWN"

        lines = [
            "TOKEN LAUNCH BLOCKED",
            "",
            f"User: {user_id}",
            f"Status: {response.status.value}",
            f"Summary: {response.summary}",
        ]
        for task in response.remediation_tasks:
            lines.append(f"- [{task.severity.label}] {task.category.value}: {task.error_code}")
        lines.append("")
        lines.append(f"Evaluation: {response.evaluation_id}")
        if response.correlation_id:
            lines.append(f"Correlation: {response.correlation_id}")

        return ReadinessAlert(
            evaluation_id=response.evaluation_id,
            user_id=user_id,
            severity=severity,
            title=f"Token launch blocked [{severity.label}]",
            message="\n".join(lines),
            error_code=error_code,
            correlation_id=response.correlation_id,
            timestamp=response.evaluated_at or ClockFactory.get_clock().now(),
        )


# ============================================================
# RATE LIMITER
# ============================================================

class AlertRateLimiter:
    """Rate limits alerts per user and in total."""

    def __init__(
        self,
        min_interval_seconds: float = 300,
        max_per_hour: int = 30,
        clock: Optional[ClockProtocol] = None,
    ):
        self._min_interval = timedelta(seconds=min_interval_seconds)
        self._max_per_hour = max_per_hour
        self._clock = clock or ClockFactory.get_clock()

        self._last_alert_by_user: Dict[str, datetime] = {}
        self._alert_timestamps: List[datetime] = []

    def should_send(self, user_id: str) -> bool:
        now = self._clock.now()

        self._cleanup_old_timestamps(now)
        if len(self._alert_timestamps) >= self._max_per_hour:
            logger.warning("Readiness alert rate limit exceeded")
            return False

        last_alert = self._last_alert_by_user.get(user_id)
        if last_alert and now - last_alert < self._min_interval:
            logger.debug(f"Rate limiting readiness alert for {sanitize_log_input(user_id)}")
            return False

        return True

    def record_sent(self, user_id: str) -> None:
        now = self._clock.now()
        self._last_alert_by_user[user_id] = now
        self._alert_timestamps.append(now)

    def _cleanup_old_timestamps(self, now: datetime) -> None:
        cutoff = now - timedelta(hours=1)
        self._alert_timestamps = [ts for ts in self._alert_timestamps if ts > cutoff]
        self._last_alert_by_user = {
            user_id: sent_at
            for user_id, sent_at in self._last_alert_by_user.items()
            if now - sent_at < self._min_interval
        }

    @property
    def tracked_users(self) -> int:
        return len(self._last_alert_by_user)


# ============================================================
# SENDERS
# ============================================================

class AlertSender(Protocol):
    async def send(self, alert: ReadinessAlert) -> bool:
        ...


class ConsoleAlertSender:
    """Writes alerts to the log, keeping the most recent ones in memory."""

    def __init__(self, history_size: int = 100):
        self.sent: Deque[ReadinessAlert] = deque(maxlen=history_size)

    async def send(self, alert: ReadinessAlert) -> bool:
        logger.warning(f"{alert.title}\n{alert.message}")
        self.sent.append(alert)
        return True


class WebhookAlertSender:
    """
    Posts alerts as JSON to an HTTP endpoint.

    The aiohttp session is created lazily and reused until
    close() is called.
    """

    def __init__(self, url: str, timeout_seconds: float = 10.0):
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def send(self, alert: ReadinessAlert) -> bool:
        try:
            session = await self._get_session()
            async with session.post(self._url, json=alert.to_payload()) as response:
                if 200 <= response.status < 300:
                    logger.info(f"Sent readiness alert: {alert.evaluation_id}")
                    return True
                text = await response.text()
                logger.error(f"Webhook alert error: {response.status} - {text}")
                return False

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send webhook alert: {e}")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


# ============================================================
# ALERTER
# ============================================================

class ReadinessAlerter:
    """
    Alerting for Blocked readiness evaluations.

    Combines formatting, rate limiting, and sending.
    """

    def __init__(
        self,
        senders: Optional[Sequence[AlertSender]] = None,
        min_interval_seconds: float = 300,
        max_per_hour: int = 30,
        enabled: bool = True,
        clock: Optional[ClockProtocol] = None,
    ):
        self._senders: List[AlertSender] = list(senders) if senders is not None else [
            ConsoleAlertSender()
        ]
        self._enabled = enabled
        self._formatter = ReadinessAlertFormatter()
        self._rate_limiter = AlertRateLimiter(
            min_interval_seconds=min_interval_seconds,
            max_per_hour=max_per_hour,
            clock=clock,
        )

    async def alert_on_blocked(self, response: ReadinessResponse, user_id: str) -> bool:
        """
        Send an alert for a Blocked evaluation.

        Returns:
            True if sent, skipped or rate limited. False if every sender failed.
        """
        if not self._enabled or response.status != ReadinessStatus.BLOCKED:
            return True

        if not self._rate_limiter.should_send(user_id):
            return True  # Rate limited is not an error

        alert = self._formatter.format_alert(response, user_id)

        results = []
        for sender in self._senders:
            try:
                results.append(await sender.send(alert))
            except Exception as e:
                logger.error(f"Alert sender {type(sender).__name__} failed: {e}", exc_info=True)
                results.append(False)

        sent = any(results) or not self._senders
        if sent:
            self._rate_limiter.record_sent(user_id)
        return sent
