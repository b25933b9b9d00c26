"""Typed records exchanged between the birthday reminder components."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from bacenta_reminders.models.notification import NotificationStatusEnum
from bacenta_reminders.models.roster import ChurchUserRoleEnum

from .exceptions import InvalidBirthdayError

_FULL_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:T\S*)?$")
_MONTH_DAY = re.compile(r"^(?:--)?(\d{1,2})-(\d{1,2})$")


@dataclass(frozen=True, slots=True)
class Birthday:
    """Birth month/day with an optional year."""

    month: int
    day: int
    year: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidBirthdayError(f"Invalid birth month: {self.month}")
        # 2000 is a leap year so Feb 29 is accepted
        if not 1 <= self.day <= calendar.monthrange(2000, self.month)[1]:
            raise InvalidBirthdayError(f"Invalid birth day {self.day} for month {self.month}")
        if self.year is not None:
            if self.month == 2 and self.day == 29 and not calendar.isleap(self.year):
                raise InvalidBirthdayError(f"{self.year} has no February 29")

    @classmethod
    def parse(cls, value: str | date | None) -> "Birthday | None":
        """Parse ``YYYY-MM-DD``, ``MM-DD`` or ``--MM-DD``; blank values yield ``None``."""

        if value is None:
            return None
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, date):
            return cls(month=value.month, day=value.day, year=value.year)
        raw = value.strip()
        if not raw:
            return None
        full = _FULL_DATE.match(raw)
        if full:
            year, month, day = (int(part) for part in full.groups())
            return cls(month=month, day=day, year=year)
        partial = _MONTH_DAY.match(raw)
        if partial:
            month, day = (int(part) for part in partial.groups())
            return cls(month=month, day=day)
        raise InvalidBirthdayError(f"Unrecognised birthday format: {value!r}")

    @property
    def is_leap_day(self) -> bool:
        return self.month == 2 and self.day == 29

    def occurrence_in(self, year: int) -> date:
        """Calendar date the birthday is observed in ``year`` (Feb 29 -> Feb 28 off leap years)."""

        if self.is_leap_day and not calendar.isleap(year):
            return date(year, 2, 28)
        return date(year, self.month, self.day)

    def isoformat(self) -> str:
        if self.year is None:
            return f"--{self.month:02d}-{self.day:02d}"
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(slots=True)
class MemberRecord:
    id: str
    first_name: str
    last_name: str | None = None
    birthday: Birthday | None = None
    unit_id: str | None = None
    role: str = "Member"
    phone_number: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


@dataclass(slots=True)
class UserRecord:
    id: str
    role: ChurchUserRoleEnum
    email: str | None = None
    display_name: str | None = None
    unit_ids: tuple[str, ...] = ()
    supervisor_id: str | None = None
    invited_by_admin_id: str | None = None
    is_active: bool = True
    birthday_notifications_enabled: bool = True
    email_notifications_enabled: bool = True

    @property
    def name(self) -> str:
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        if self.email:
            return self.email.split("@", 1)[0]
        return self.id


@dataclass(slots=True)
class UnitRecord:
    id: str
    name: str
    leader_ids: tuple[str, ...] = ()


class RecipientRelationship(str, Enum):
    UNIT_LEADER = "unit_leader"
    SUB_LEADER = "sub_leader"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    ACTING_ADMIN = "acting_admin"
    LINKED_LEADER = "linked_leader"


@dataclass(frozen=True, slots=True)
class Recipient:
    user_id: str
    email: str | None
    display_name: str
    role: ChurchUserRoleEnum
    relationship: RecipientRelationship


@dataclass(frozen=True, slots=True)
class ActingIdentity:
    """Who in-app notifications of a run are attributed to."""

    user_id: str
    display_name: str
    is_system: bool = False


SYSTEM_IDENTITY = ActingIdentity(user_id="system", display_name="System", is_system=True)


@dataclass(frozen=True, slots=True)
class ChannelDetails:
    subject: str
    sent_at: datetime
    failure_reason: str | None = None
    provider_message_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"subject": self.subject, "sent_at": self.sent_at.isoformat()}
        if self.failure_reason is not None:
            payload["failure_reason"] = self.failure_reason
        if self.provider_message_id is not None:
            payload["provider_message_id"] = self.provider_message_id
        return payload


@dataclass(slots=True)
class LedgerEntry:
    """One reminder attempt for a (member, offset, day); validated on construction."""

    church_id: str
    member_id: str
    notification_date: date
    days_until_birthday: int
    recipient_ids: tuple[str, ...] = ()
    status: NotificationStatusEnum = NotificationStatusEnum.PENDING
    forced: bool = False
    member_name: str | None = None
    unit_id: str | None = None
    unit_name: str | None = None
    channel_details: ChannelDetails | None = None
    id: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.church_id:
            raise ValueError("Ledger entries require a church id")
        if not self.member_id:
            raise ValueError("Ledger entries require a member id")
        if self.days_until_birthday < 0:
            raise ValueError("days_until_birthday must be non-negative")
        if isinstance(self.notification_date, datetime):
            self.notification_date = self.notification_date.date()
        self.recipient_ids = tuple(self.recipient_ids)
        self.status = NotificationStatusEnum(self.status)

    @property
    def claim_key(self) -> str | None:
        if self.forced:
            return None
        return f"{self.member_id}:{self.days_until_birthday}:{self.notification_date.isoformat()}"

    @property
    def is_terminal(self) -> bool:
        return self.status is not NotificationStatusEnum.PENDING

    def as_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "notification_date": self.notification_date.isoformat(),
            "days_until_birthday": self.days_until_birthday,
            "recipients": list(self.recipient_ids),
            "status": self.status.value,
            "forced": self.forced,
        }
        if self.channel_details is not None:
            record["channel_details"] = self.channel_details.as_dict()
        return record


class OutcomeStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    NO_RECIPIENTS = "no_recipients"
    DUPLICATE = "duplicate"
    CLAIM_LOST = "claim_lost"


@dataclass(slots=True)
class MemberOutcome:
    """Result of processing a single qualifying member."""

    member_id: str
    member_name: str
    days_until_birthday: int
    status: OutcomeStatus
    reason: str | None = None
    error: str | None = None
    ledger_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "days_until_birthday": self.days_until_birthday,
            "status": self.status.value,
            "reason": self.reason,
            "error": self.error,
            "ledger_id": self.ledger_id,
        }


@dataclass(slots=True)
class RunReport:
    church_id: str
    reference_date: date
    forced: bool = False
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: list[MemberOutcome] = field(default_factory=list)
    fatal: bool = False

    def record(self, outcome: MemberOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status is OutcomeStatus.SENT:
            self.sent += 1
        elif outcome.status is OutcomeStatus.FAILED:
            self.failed += 1
            if outcome.error:
                self.errors.append(outcome.error)
        else:
            self.skipped += 1

    def record_fatal(self, message: str) -> None:
        self.fatal = True
        self.errors.append(message)

    def summary(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "church_id": self.church_id,
            "reference_date": self.reference_date.isoformat(),
            "forced": self.forced,
            **self.summary(),
            "errors": list(self.errors),
            "fatal": self.fatal,
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
        }


@dataclass(frozen=True, slots=True)
class LedgerStats:
    total: int
    sent: int
    failed: int
    pending: int
    unique_members: int

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "pending": self.pending,
            "unique_members": self.unique_members,
        }


__all__ = [
    "ActingIdentity",
    "Birthday",
    "ChannelDetails",
    "LedgerEntry",
    "LedgerStats",
    "MemberOutcome",
    "MemberRecord",
    "OutcomeStatus",
    "Recipient",
    "RecipientRelationship",
    "RunReport",
    "SkipReason",
    "SYSTEM_IDENTITY",
    "UnitRecord",
    "UserRecord",
]
