"""Birthday reminder engine and its collaborators."""

from .domain import (
    ActingIdentity,
    Birthday,
    ChannelDetails,
    LedgerEntry,
    LedgerStats,
    MemberOutcome,
    MemberRecord,
    OutcomeStatus,
    Recipient,
    RecipientRelationship,
    RunReport,
    SkipReason,
    UnitRecord,
    UserRecord,
)
from .engine import BirthdayReminderEngine, resolve_acting_identity
from .exceptions import (
    BatchDeadlineExceeded,
    BirthdayReminderError,
    InvalidBirthdayError,
    LedgerTransitionError,
    LedgerUnavailableError,
)
from .ledger import InMemoryLedgerStore, LedgerStore, SqlAlchemyLedgerStore
from .recipients import resolve_recipients
from .scanner import age_turning, days_until_birthday, next_notification, scan

__all__ = [
    "ActingIdentity",
    "BatchDeadlineExceeded",
    "Birthday",
    "BirthdayReminderEngine",
    "BirthdayReminderError",
    "ChannelDetails",
    "InMemoryLedgerStore",
    "InvalidBirthdayError",
    "LedgerEntry",
    "LedgerStats",
    "LedgerStore",
    "LedgerTransitionError",
    "LedgerUnavailableError",
    "MemberOutcome",
    "MemberRecord",
    "OutcomeStatus",
    "Recipient",
    "RecipientRelationship",
    "RunReport",
    "SkipReason",
    "SqlAlchemyLedgerStore",
    "UnitRecord",
    "UserRecord",
    "age_turning",
    "days_until_birthday",
    "next_notification",
    "resolve_acting_identity",
    "resolve_recipients",
    "scan",
]
