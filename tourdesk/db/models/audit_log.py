from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, JSON, String, Integer, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class ActorType(str, PyEnum):
    employee = "employee"
    admin = "admin"
    system = "system"


class AuditLog(Base):
    """Audit trail for records that have no lifecycle log of their own (timesheets)."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_type: Mapped[ActorType] = mapped_column(Enum(ActorType))
    actor_id: Mapped[str | None] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(255), index=True)
    subject_id: Mapped[int | None] = mapped_column(Integer)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
