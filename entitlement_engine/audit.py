"""
Entitlement Engine - Audit Trail.

============================================================
PURPOSE
============================================================
Best-effort side channel for entitlement decisions.

- The engine submits an entry and does not await the write
- A failing sink is logged, never surfaced to the caller
- drain() lets shutdown paths and tests wait for pending writes

============================================================
"""

import asyncio
import logging
import threading
from typing import List, Optional, Protocol, Set

from core.exceptions import AuditStoreError

from .types import EntitlementAuditEntry


logger = logging.getLogger(__name__)


# ============================================================
# SINK PROTOCOL
# ============================================================

class AuditSink(Protocol):
    """Destination for entitlement audit entries."""

    async def record(self, entry: EntitlementAuditEntry) -> None:
        ...

    async def get_entries(self, limit: Optional[int] = None) -> List[EntitlementAuditEntry]:
        """Newest first."""
        ...


class InMemoryAuditSink:
    """Process-local audit sink."""

    def __init__(self, max_entries: int = 10_000):
        self._lock = threading.Lock()
        self._entries: List[EntitlementAuditEntry] = []
        self._max_entries = max_entries

    async def record(self, entry: EntitlementAuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._max_entries:
                del self._entries[: len(self._entries) - self._max_entries]

    async def get_entries(self, limit: Optional[int] = None) -> List[EntitlementAuditEntry]:
        with self._lock:
            entries = list(reversed(self._entries))
        return entries[:limit] if limit is not None else entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ============================================================
# FIRE-AND-FORGET RECORDER
# ============================================================

class AuditRecorder:
    """
    Schedules audit writes as background tasks.

    Holds a reference to every pending task so it is not
    garbage-collected mid-write.
    """

    def __init__(self, sink: AuditSink):
        self._sink = sink
        self._pending: Set[asyncio.Task] = set()
        self._failures = 0

    @property
    def sink(self) -> AuditSink:
        return self._sink

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def failure_count(self) -> int:
        return self._failures

    def submit(self, entry: EntitlementAuditEntry) -> None:
        """Schedule a write on the running loop and return immediately."""
        task = asyncio.create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: EntitlementAuditEntry) -> None:
        try:
            await self._sink.record(entry)
            logger.debug(
                f"Recorded entitlement decision audit entry. CorrelationId: {entry.correlation_id}"
            )
        except Exception as e:
            self._failures += 1
            error = e if isinstance(e, AuditStoreError) else AuditStoreError(
                "Failed to record entitlement audit entry", cause=e
            )
            logger.warning(f"{error.to_log_format()} | correlation_id={entry.correlation_id}")

    async def drain(self) -> None:
        """Wait for every pending write."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
