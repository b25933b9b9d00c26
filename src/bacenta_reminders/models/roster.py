"""Church roster tables read by the birthday reminder jobs."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, func

from bacenta_reminders.db.base import Base


class ChurchUserRoleEnum(str, Enum):
    ADMIN = "admin"
    UNIT_LEADER = "unit_leader"
    SUB_LEADER = "sub_leader"


class Church(Base):
    __tablename__ = "churches"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    birthday_notifications_enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    email_notifications_enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    notification_offsets = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Bacenta(Base):
    """Smallest organizational unit of a church, with its own leaders."""

    __tablename__ = "bacentas"

    id = Column(String(64), primary_key=True)
    church_id = Column(String(64), ForeignKey("churches.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    leader_ids = Column(JSON, nullable=False, default=list)


class Member(Base):
    __tablename__ = "members"

    id = Column(String(64), primary_key=True)
    church_id = Column(String(64), ForeignKey("churches.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    # YYYY-MM-DD, or MM-DD when the year is unknown
    birthday = Column(String(10), nullable=True)
    bacenta_id = Column(String(64), nullable=True, index=True)
    role = Column(String(64), nullable=False, default="Member", server_default="Member")
    phone_number = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ChurchUser(Base):
    """Application user of a church (admins and leaders)."""

    __tablename__ = "church_users"

    id = Column(String(64), primary_key=True)
    church_id = Column(String(64), ForeignKey("churches.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    role = Column(
        String(length=16),
        nullable=False,
        default=ChurchUserRoleEnum.UNIT_LEADER.value,
        server_default=ChurchUserRoleEnum.UNIT_LEADER.value,
    )
    bacenta_ids = Column(JSON, nullable=False, default=list)
    supervisor_id = Column(String(64), nullable=True)
    invited_by_admin_id = Column(String(64), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    birthday_notifications_enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    email_notifications_enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
