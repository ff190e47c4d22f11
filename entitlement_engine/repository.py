"""
Entitlement Engine - Repository.

============================================================
PURPOSE
============================================================
Database operations for the entitlement audit trail.

Provides:
- Audit entry logging
- Recent-entry and per-user queries
- Denial counts by code
- SqlAuditSink: AuditSink adapter over the repository

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.clock import ensure_utc
from core.exceptions import AuditStoreError
from database.engine import transaction_scope

from .models import EntitlementAuditLog
from .types import EntitlementAuditEntry


logger = logging.getLogger(__name__)


class EntitlementAuditRepository:
    """
    Repository for entitlement audit persistence.

    All database operations go through this class.
    """

    def __init__(self, session: Session):
        self._session = session

    # ============================================================
    # WRITE OPERATIONS
    # ============================================================

    def log_entry(self, entry: EntitlementAuditEntry) -> EntitlementAuditLog:
        """
        Persist an audit entry.

        The caller owns the transaction (see transaction_scope).
        """
        try:
            record = EntitlementAuditLog(
                correlation_id=entry.correlation_id,
                user_id=entry.user_id,
                operation=entry.operation,
                subscription_tier=entry.subscription_tier,
                is_allowed=entry.is_allowed,
                denial_code=entry.denial_code,
                policy_version=entry.policy_version,
                timestamp=entry.timestamp,
            )
            self._session.add(record)
            self._session.flush()

            logger.debug(f"Logged entitlement audit entry: {entry.correlation_id}")
            return record

        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to log entitlement audit entry: {e}")
            raise

    # ============================================================
    # QUERY OPERATIONS
    # ============================================================

    def get_recent(self, limit: Optional[int] = None) -> List[EntitlementAuditEntry]:
        stmt = select(EntitlementAuditLog).order_by(
            desc(EntitlementAuditLog.timestamp), desc(EntitlementAuditLog.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_entry(r) for r in self._session.execute(stmt).scalars().all()]

    def get_for_user(self, user_id: str, limit: int = 100) -> List[EntitlementAuditEntry]:
        stmt = (
            select(EntitlementAuditLog)
            .where(EntitlementAuditLog.user_id == user_id)
            .order_by(desc(EntitlementAuditLog.timestamp), desc(EntitlementAuditLog.id))
            .limit(limit)
        )
        return [self._to_entry(r) for r in self._session.execute(stmt).scalars().all()]

    def count_denials_by_code(self, since: Optional[datetime] = None) -> Dict[str, int]:
        stmt = (
            select(EntitlementAuditLog.denial_code, func.count(EntitlementAuditLog.id))
            .where(EntitlementAuditLog.is_allowed.is_(False))
            .group_by(EntitlementAuditLog.denial_code)
        )
        if since is not None:
            stmt = stmt.where(EntitlementAuditLog.timestamp >= since)
        return {code or "UNKNOWN": count for code, count in self._session.execute(stmt).all()}

    @staticmethod
    def _to_entry(record: EntitlementAuditLog) -> EntitlementAuditEntry:
        return EntitlementAuditEntry(
            timestamp=ensure_utc(record.timestamp),
            subscription_tier=record.subscription_tier,
            is_allowed=record.is_allowed,
            denial_code=record.denial_code,
            policy_version=record.policy_version,
            correlation_id=record.correlation_id,
            user_id=record.user_id,
            operation=record.operation,
        )


# ============================================================
# AUDIT SINK ADAPTER
# ============================================================

class SqlAuditSink:
    """
    AuditSink backed by the entitlement_audit_entries table.

    Synchronous sessions run in a worker thread so the event loop
    is never blocked.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    async def record(self, entry: EntitlementAuditEntry) -> None:
        await asyncio.to_thread(self._record_sync, entry)

    async def get_entries(self, limit: Optional[int] = None) -> List[EntitlementAuditEntry]:
        return await asyncio.to_thread(self._get_entries_sync, limit)

    def _record_sync(self, entry: EntitlementAuditEntry) -> None:
        try:
            with transaction_scope(self._session_factory) as session:
                EntitlementAuditRepository(session).log_entry(entry)
        except Exception as e:
            raise AuditStoreError("Failed to persist entitlement audit entry", cause=e) from e

    def _get_entries_sync(self, limit: Optional[int]) -> List[EntitlementAuditEntry]:
        try:
            with transaction_scope(self._session_factory) as session:
                return EntitlementAuditRepository(session).get_recent(limit)
        except Exception as e:
            raise AuditStoreError("Failed to read entitlement audit entries", cause=e) from e
