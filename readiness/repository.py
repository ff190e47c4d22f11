"""
Token Launch Readiness - Repository.

============================================================
PURPOSE
============================================================
Database operations for readiness evidence.

Provides:
- Evidence insertion (append-only)
- Lookup by evaluation id and token deployment
- Per-user history, newest first
- SqlEvidenceStore: EvidenceStore adapter over the repository

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.clock import ensure_utc
from core.exceptions import EvidenceStoreError
from database.engine import transaction_scope

from .evidence import ReadinessEvidence
from .models import ReadinessEvidenceRecord


logger = logging.getLogger(__name__)


class EvidenceRepository:
    """
    Repository for readiness evidence persistence.

    All database operations go through this class.
    """

    def __init__(self, session: Session):
        self._session = session

    # ============================================================
    # WRITE OPERATIONS
    # ============================================================

    def add(self, evidence: ReadinessEvidence) -> ReadinessEvidenceRecord:
        """
        Insert an evidence record.

        The caller owns the transaction (see transaction_scope).
        """
        try:
            record = ReadinessEvidenceRecord(
                evidence_id=evidence.id,
                evaluation_id=evidence.evaluation_id,
                user_id=evidence.user_id,
                correlation_id=evidence.correlation_id,
                token_deployment_id=evidence.token_deployment_id,
                request_snapshot=evidence.request_snapshot,
                response_snapshot=evidence.response_snapshot,
                category_results_snapshot=evidence.category_results_snapshot,
                data_hash=evidence.data_hash,
                created_at=evidence.created_at,
            )
            self._session.add(record)
            self._session.flush()

            logger.debug(f"Stored readiness evidence: {evidence.evaluation_id}")
            return record

        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error(f"Failed to store readiness evidence: {e}")
            raise

    # ============================================================
    # QUERY OPERATIONS
    # ============================================================

    def get_by_evaluation_id(self, evaluation_id: str) -> Optional[ReadinessEvidence]:
        stmt = select(ReadinessEvidenceRecord).where(
            ReadinessEvidenceRecord.evaluation_id == evaluation_id
        )
        record = self._session.execute(stmt).scalar_one_or_none()
        return self._to_evidence(record) if record else None

    def get_history(
        self,
        user_id: str,
        limit: int = 50,
        from_date: Optional[datetime] = None,
    ) -> List[ReadinessEvidence]:
        stmt = select(ReadinessEvidenceRecord).where(ReadinessEvidenceRecord.user_id == user_id)
        if from_date is not None:
            stmt = stmt.where(ReadinessEvidenceRecord.created_at >= from_date)
        stmt = stmt.order_by(
            desc(ReadinessEvidenceRecord.created_at), desc(ReadinessEvidenceRecord.id)
        ).limit(limit)
        return [self._to_evidence(r) for r in self._session.execute(stmt).scalars().all()]

    def get_by_token_deployment(self, token_deployment_id: str) -> List[ReadinessEvidence]:
        stmt = (
            select(ReadinessEvidenceRecord)
            .where(ReadinessEvidenceRecord.token_deployment_id == token_deployment_id)
            .order_by(ReadinessEvidenceRecord.id)
        )
        return [self._to_evidence(r) for r in self._session.execute(stmt).scalars().all()]

    @staticmethod
    def _to_evidence(record: ReadinessEvidenceRecord) -> ReadinessEvidence:
        return ReadinessEvidence(
            id=record.evidence_id,
            evaluation_id=record.evaluation_id,
            user_id=record.user_id,
            correlation_id=record.correlation_id,
            token_deployment_id=record.token_deployment_id,
            request_snapshot=record.request_snapshot,
            response_snapshot=record.response_snapshot,
            category_results_snapshot=record.category_results_snapshot,
            data_hash=record.data_hash,
            created_at=ensure_utc(record.created_at),
        )


# ============================================================
# EVIDENCE STORE ADAPTER
# ============================================================

class SqlEvidenceStore:
    """
    EvidenceStore backed by the readiness_evidence table.

    Synchronous sessions run in a worker thread so the event loop
    is never blocked.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    async def store(self, evidence: ReadinessEvidence) -> None:
        def add(repo: EvidenceRepository) -> None:
            repo.add(evidence)

        await asyncio.to_thread(self._run, "store", add)

    async def get_by_evaluation_id(self, evaluation_id: str) -> Optional[ReadinessEvidence]:
        return await asyncio.to_thread(
            self._run, "read", lambda repo: repo.get_by_evaluation_id(evaluation_id)
        )

    async def get_history(
        self,
        user_id: str,
        limit: int = 50,
        from_date: Optional[datetime] = None,
    ) -> List[ReadinessEvidence]:
        return await asyncio.to_thread(
            self._run, "read", lambda repo: repo.get_history(user_id, limit, from_date)
        )

    async def get_latest(self, user_id: str) -> Optional[ReadinessEvidence]:
        history = await self.get_history(user_id, limit=1)
        return history[0] if history else None

    async def get_by_token_deployment(self, token_deployment_id: str) -> List[ReadinessEvidence]:
        return await asyncio.to_thread(
            self._run, "read", lambda repo: repo.get_by_token_deployment(token_deployment_id)
        )

    def _run(self, action: str, operation):
        try:
            with transaction_scope(self._session_factory) as session:
                return operation(EvidenceRepository(session))
        except Exception as e:
            raise EvidenceStoreError(f"Failed to {action} readiness evidence", cause=e) from e
