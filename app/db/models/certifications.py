"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

if TYPE_CHECKING:
    from app.db.models import Course, Customer, Tenant


class Achievement(Base):
    """
    A certification earned by a customer for completing a course.

    is_expired caches the derived state and is kept in sync by the reminder
    service; reminders_sent only ever grows.
    """

    __tablename__ = "achievements"
    __table_args__ = (
        CheckConstraint("reminders_sent >= 0", name="ck_achievements_reminders_sent"),
        Index("idx_achievements_tenant_expiry", "tenant_id", "is_expired", "expiry_date"),
        Index("idx_achievements_next_reminder", "next_reminder_date"),
        Index("idx_achievements_customer", "customer_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )

    certification_date: Mapped[datetime] = mapped_column(nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(nullable=True)  # NULL = never expires
    is_expired: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    reminders_sent: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    next_reminder_date: Mapped[datetime | None] = mapped_column(nullable=True)
    certificate_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # {"path", "original_name", "size_bytes", "uploaded_at"}
    attached_file: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # Processing claim held by a reminder run; stale claims expire on their own
    reminder_claimed_until: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship()
    customer: Mapped["Customer"] = relationship()
    course: Mapped["Course"] = relationship()
    reminders: Mapped[list["CertificationReminder"]] = relationship(
        back_populates="achievement",
        order_by="CertificationReminder.sent_at",
        passive_deletes=True,
    )


class CertificationReminder(Base):
    """
    One reminder send attempt (append-only audit trail).

    Written for successful and failed sends alike; never updated or deleted.
    """

    __tablename__ = "certification_reminders"
    __table_args__ = (
        Index("idx_cert_reminders_achievement", "achievement_id", "sent_at"),
        Index("idx_cert_reminders_tenant", "tenant_id", "sent_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    achievement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )

    reminder_type: Mapped[str] = mapped_column(String(20), nullable=False)  # ReminderType value
    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False)
    email_subject: Mapped[str] = mapped_column(String(300), nullable=False)
    email_content: Mapped[str] = mapped_column(Text, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    achievement: Mapped["Achievement"] = relationship(back_populates="reminders")
