"""SQLAlchemy models package."""

from .notification import (  # noqa: F401
    BirthdayNotification,
    InAppNotification,
    NotificationStatusEnum,
)
from .roster import (  # noqa: F401
    Bacenta,
    Church,
    ChurchUser,
    ChurchUserRoleEnum,
    Member,
)

__all__ = [
    "Bacenta",
    "BirthdayNotification",
    "Church",
    "ChurchUser",
    "ChurchUserRoleEnum",
    "InAppNotification",
    "Member",
    "NotificationStatusEnum",
]
