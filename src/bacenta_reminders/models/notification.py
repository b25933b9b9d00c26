from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SqlEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from bacenta_reminders.db.base import Base


class NotificationStatusEnum(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


def _new_id() -> str:
    return str(uuid4())


class BirthdayNotification(Base):
    """Ledger row recording one birthday reminder attempt for a member/offset/day."""

    __tablename__ = "birthday_notifications"
    __table_args__ = (
        UniqueConstraint("church_id", "claim_key", name="uq_birthday_notifications_church_claim"),
        Index("ix_birthday_notifications_church_date", "church_id", "notification_date"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    church_id = Column(String(64), nullable=False)
    member_id = Column(String(64), nullable=False, index=True)
    member_name = Column(String, nullable=True)
    bacenta_id = Column(String(64), nullable=True)
    bacenta_name = Column(String, nullable=True)
    notification_date = Column(Date, nullable=False)
    days_until_birthday = Column(Integer, nullable=False)
    recipient_ids = Column(JSON, nullable=False, default=list)
    status = Column(
        SqlEnum(NotificationStatusEnum, name="birthday_notification_status_enum"),
        nullable=False,
        default=NotificationStatusEnum.PENDING,
        server_default=NotificationStatusEnum.PENDING.name,
    )
    forced = Column(Boolean, nullable=False, default=False, server_default="false")
    # NULL for forced entries and once a failed attempt releases it
    claim_key = Column(String(160), nullable=True)
    subject = Column(String, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)
    provider_message_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class InAppNotification(Base):
    """Bell notification shown to a church user inside the application."""

    __tablename__ = "in_app_notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    church_id = Column(String(64), nullable=False, index=True)
    recipient_user_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(64), nullable=False)
    description = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    actor_id = Column(String(64), nullable=False)
    actor_name = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
