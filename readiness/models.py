"""
Token Launch Readiness - ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy model for persisted readiness evidence.

One row per evaluation. Rows are never updated.

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class ReadinessEvidenceRecord(Base):
    """Snapshot of one token launch readiness evaluation."""

    __tablename__ = "readiness_evidence"

    # Primary Key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    evidence_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    """UUID of the evidence record"""

    evaluation_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    token_deployment_id: Mapped[Optional[str]] = mapped_column(
        String(128), nullable=True, index=True
    )

    # Snapshots (canonical JSON)
    request_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    response_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    category_results_snapshot: Mapped[str] = mapped_column(Text, nullable=False)

    data_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    """Base64 SHA-256 of the evaluation"""

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_readiness_evidence_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReadinessEvidenceRecord("
            f"evaluation_id={self.evaluation_id!r}, "
            f"user_id={self.user_id!r}, "
            f"created_at={self.created_at}"
            f")>"
        )
