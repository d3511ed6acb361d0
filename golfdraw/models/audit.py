from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base


class AuditLog(Base):
    """Append-only trail of administrative actions taken on draws and winners."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    subject_table: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("actor_type IN ('system','admin')", name="actor_type_enum"),
    )

    @classmethod
    def record(
        cls,
        session: Session,
        action: str,
        subject_table: str,
        subject_id: Optional[int] = None,
        *,
        admin_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> "AuditLog":
        """Add an audit row to ``session`` and return it.

        The actor is ``"admin"`` when ``admin_id`` is given, otherwise ``"system"``.
        """
        entry = cls(
            actor_type="admin" if admin_id is not None else "system",
            actor_admin_id=admin_id,
            action=action,
            subject_table=subject_table,
            subject_id=subject_id,
            details_json=(
                json.dumps(details, ensure_ascii=False, sort_keys=True)
                if details is not None
                else None
            ),
            occurred_at=occurred_at or datetime.now(timezone.utc),
        )
        session.add(entry)
        return entry

    @property
    def details(self) -> Optional[dict[str, Any]]:
        if self.details_json is None:
            return None
        return json.loads(self.details_json)

    @classmethod
    def for_subject(
        cls, session: Session, subject_table: str, subject_id: int
    ) -> list["AuditLog"]:
        """Return audit rows for one record, oldest first."""
        stmt = (
            select(cls)
            .where(cls.subject_table == subject_table, cls.subject_id == subject_id)
            .order_by(cls.occurred_at.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())
