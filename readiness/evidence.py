"""
Token Launch Readiness - Evidence.

============================================================
PURPOSE
============================================================
Immutable record of one readiness evaluation, kept for audit.

Each record holds JSON snapshots of the request, the response
and the category results, plus a SHA-256 hash binding them to
the evaluation id, user and creation time.

Stores are append-only. Writing evidence is best-effort: the
aggregator logs store failures and still returns its decision.

============================================================
"""

import asyncio
import base64
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable
from uuid import uuid4

from .types import ReadinessRequest, ReadinessResponse


def to_snapshot(payload: Mapping[str, Any]) -> str:
    """Serialize a payload to canonical JSON."""
    return json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))


def compute_data_hash(
    evaluation_id: str,
    user_id: str,
    request_snapshot: str,
    response_snapshot: str,
    created_at: datetime,
) -> str:
    """Base64 SHA-256 over evaluation_id|user_id|request|response|created_at."""
    data = "|".join(
        (evaluation_id, user_id, request_snapshot, response_snapshot, created_at.isoformat())
    )
    digest = hashlib.sha256(data.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass(frozen=True)
class ReadinessEvidence:
    """Stored evidence for one evaluation."""

    evaluation_id: str
    user_id: str
    request_snapshot: str
    response_snapshot: str
    category_results_snapshot: str
    created_at: datetime
    data_hash: str
    correlation_id: Optional[str] = None
    token_deployment_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_evaluation(
        cls,
        request: ReadinessRequest,
        response: ReadinessResponse,
        created_at: datetime,
        token_deployment_id: Optional[str] = None,
    ) -> "ReadinessEvidence":
        request_snapshot = to_snapshot(request.to_dict())
        response_snapshot = to_snapshot(response.to_dict())
        category_snapshot = to_snapshot(response.details.to_dict() if response.details else {})
        return cls(
            evaluation_id=response.evaluation_id,
            user_id=request.user_id,
            request_snapshot=request_snapshot,
            response_snapshot=response_snapshot,
            category_results_snapshot=category_snapshot,
            created_at=created_at,
            correlation_id=response.correlation_id,
            token_deployment_id=token_deployment_id,
            data_hash=compute_data_hash(
                response.evaluation_id,
                request.user_id,
                request_snapshot,
                response_snapshot,
                created_at,
            ),
        )

    def verify_hash(self) -> bool:
        """True when the snapshots still match data_hash."""
        return self.data_hash == compute_data_hash(
            self.evaluation_id,
            self.user_id,
            self.request_snapshot,
            self.response_snapshot,
            self.created_at,
        )

    def to_response(self) -> ReadinessResponse:
        return ReadinessResponse.from_dict(json.loads(self.response_snapshot))


# ============================================================
# STORE PROTOCOL
# ============================================================

@runtime_checkable
class EvidenceStore(Protocol):
    """Append-only evidence store keyed by evaluation id."""

    async def store(self, evidence: ReadinessEvidence) -> None:
        ...

    async def get_by_evaluation_id(self, evaluation_id: str) -> Optional[ReadinessEvidence]:
        ...

    async def get_history(
        self,
        user_id: str,
        limit: int = 50,
        from_date: Optional[datetime] = None,
    ) -> List[ReadinessEvidence]:
        """Evidence for a user, newest first."""
        ...

    async def get_latest(self, user_id: str) -> Optional[ReadinessEvidence]:
        ...

    async def get_by_token_deployment(self, token_deployment_id: str) -> List[ReadinessEvidence]:
        ...


class InMemoryEvidenceStore:
    """Evidence held in process memory."""

    def __init__(self):
        self._by_evaluation: Dict[str, ReadinessEvidence] = {}
        self._order: List[str] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._order)

    async def store(self, evidence: ReadinessEvidence) -> None:
        async with self._lock:
            if evidence.evaluation_id in self._by_evaluation:
                # Append-only: the first record for an evaluation wins
                return
            self._by_evaluation[evidence.evaluation_id] = evidence
            self._order.append(evidence.evaluation_id)

    async def get_by_evaluation_id(self, evaluation_id: str) -> Optional[ReadinessEvidence]:
        async with self._lock:
            return self._by_evaluation.get(evaluation_id)

    async def get_history(
        self,
        user_id: str,
        limit: int = 50,
        from_date: Optional[datetime] = None,
    ) -> List[ReadinessEvidence]:
        async with self._lock:
            matches = [
                e
                for e in (self._by_evaluation[eid] for eid in reversed(self._order))
                if e.user_id == user_id and (from_date is None or e.created_at >= from_date)
            ]
        # Stable sort keeps insertion order (newest first) for equal timestamps
        matches.sort(key=lambda e: e.created_at, reverse=True)
        return matches[:limit]

    async def get_latest(self, user_id: str) -> Optional[ReadinessEvidence]:
        history = await self.get_history(user_id, limit=1)
        return history[0] if history else None

    async def get_by_token_deployment(self, token_deployment_id: str) -> List[ReadinessEvidence]:
        async with self._lock:
            return [
                self._by_evaluation[eid]
                for eid in self._order
                if self._by_evaluation[eid].token_deployment_id == token_deployment_id
            ]
