"""
Entitlement Engine - ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy model for persisting entitlement audit entries.

Every decision, allow or deny, is one row. Rows are never
updated.

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


class EntitlementAuditLog(Base):
    """Record of one entitlement decision."""

    __tablename__ = "entitlement_audit_entries"

    # Primary Key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    correlation_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    """Caller correlation id, or a generated UUID"""

    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    operation: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    """EntitlementOperation value"""

    # Decision
    subscription_tier: Mapped[str] = mapped_column(String(32), nullable=False)
    is_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, index=True)
    denial_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    policy_version: Mapped[str] = mapped_column(String(32), nullable=False)

    # Timestamps
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    """When the decision was made"""

    __table_args__ = (
        Index("ix_entitlement_audit_user_timestamp", "user_id", "timestamp"),
        Index("ix_entitlement_audit_tier_allowed", "subscription_tier", "is_allowed"),
    )

    def __repr__(self) -> str:
        return (
            f"<EntitlementAuditLog("
            f"id={self.id}, "
            f"correlation_id={self.correlation_id!r}, "
            f"tier={self.subscription_tier!r}, "
            f"allowed={self.is_allowed}"
            f")>"
        )
