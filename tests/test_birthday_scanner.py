from datetime import date

import pytest

from bacenta_reminders.services.birthdays.domain import Birthday
from bacenta_reminders.services.birthdays.exceptions import InvalidBirthdayError
from bacenta_reminders.services.birthdays.scanner import (
    age_turning,
    days_until_birthday,
    next_notification,
    normalize_offsets,
    scan,
)

from birthday_fixtures import member


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1990-07-10", Birthday(month=7, day=10, year=1990)),
        ("1990-07-10T00:00:00Z", Birthday(month=7, day=10, year=1990)),
        ("07-10", Birthday(month=7, day=10)),
        ("--7-10", Birthday(month=7, day=10)),
        (date(1985, 1, 2), Birthday(month=1, day=2, year=1985)),
        ("   ", None),
        (None, None),
    ],
)
def test_birthday_parse_accepts_supported_formats(raw, expected):
    assert Birthday.parse(raw) == expected


@pytest.mark.parametrize("raw", ["1990-02-30", "13-01", "1991-02-29", "tomorrow", "1990-07-10garbage", "1990-07-1000"])
def test_birthday_parse_rejects_invalid_values(raw):
    with pytest.raises(InvalidBirthdayError):
        Birthday.parse(raw)


def test_days_until_birthday_counts_forward_from_reference():
    birthday = Birthday.parse("1990-07-10")

    assert days_until_birthday(birthday, date(2025, 7, 3)) == 7
    assert days_until_birthday(birthday, date(2025, 7, 10)) == 0
    assert days_until_birthday(birthday, date(2025, 7, 11)) == 364


def test_days_until_birthday_wraps_into_next_year():
    assert days_until_birthday(Birthday(month=1, day=2), date(2025, 12, 30)) == 3


def test_leap_day_birthday_observed_on_february_28_in_common_years():
    birthday = Birthday.parse("2000-02-29")

    assert birthday.occurrence_in(2025) == date(2025, 2, 28)
    assert days_until_birthday(birthday, date(2025, 2, 21)) == 7
    assert days_until_birthday(birthday, date(2024, 2, 22)) == 7
    assert days_until_birthday(birthday, date(2025, 2, 28)) == 0


def test_age_turning_uses_next_occurrence():
    birthday = Birthday.parse("1990-07-10")

    assert age_turning(birthday, date(2025, 7, 3)) == 35
    assert age_turning(birthday, date(2025, 7, 11)) == 36
    assert age_turning(Birthday(month=7, day=10), date(2025, 7, 3)) is None


def test_normalize_offsets_drops_negatives_and_duplicates():
    assert normalize_offsets([7, 3, -1, 3, 0]) == (0, 3, 7)


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        (date(2025, 7, 1), (date(2025, 7, 3), 7)),
        (date(2025, 7, 4), (date(2025, 7, 7), 3)),
        (date(2025, 7, 10), (date(2026, 7, 3), 7)),
        (date(2025, 7, 11), (date(2026, 7, 3), 7)),
    ],
)
def test_next_notification_returns_earliest_firing_offset(reference, expected):
    birthday = Birthday.parse("1990-07-10")

    assert next_notification(birthday, [7, 3, 1], reference) == expected


def test_next_notification_without_offsets_is_none():
    assert next_notification(Birthday(month=7, day=10), [-2], date(2025, 7, 1)) is None


def test_scan_orders_by_days_then_roster_position():
    members = [
        member("far", birthday="1990-07-10"),
        member("none", birthday=None),
        member("today", birthday="2001-07-03"),
        member("miss", birthday="1995-07-05"),
        member("also-far", birthday="07-10"),
        member("tomorrow", birthday="1980-07-04"),
    ]

    matches = scan(members, [7, 1, 0], date(2025, 7, 3))

    assert [(item.id, days) for item, days in matches] == [
        ("today", 0),
        ("tomorrow", 1),
        ("far", 7),
        ("also-far", 7),
    ]


def test_scan_with_no_valid_offsets_is_empty():
    assert scan([member()], [], date(2025, 7, 3)) == []
