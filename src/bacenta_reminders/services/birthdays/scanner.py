"""Offset scanning: which members are a configured number of days from a birthday."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Sequence

from .domain import Birthday, MemberRecord


def normalize_offsets(offsets: Iterable[int]) -> tuple[int, ...]:
    """Drop negative and duplicate offsets, keeping them sorted ascending."""

    return tuple(sorted({int(offset) for offset in offsets if int(offset) >= 0}))


def next_occurrence(birthday: Birthday, reference_date: date) -> date:
    """First observed occurrence of ``birthday`` on or after ``reference_date``."""

    candidate = birthday.occurrence_in(reference_date.year)
    if candidate < reference_date:
        candidate = birthday.occurrence_in(reference_date.year + 1)
    return candidate


def days_until_birthday(birthday: Birthday, reference_date: date) -> int:
    return (next_occurrence(birthday, reference_date) - reference_date).days


def age_turning(birthday: Birthday, on: date) -> int | None:
    """Age the member turns at the next occurrence on or after ``on``."""

    if birthday.year is None:
        return None
    return next_occurrence(birthday, on).year - birthday.year


def next_notification(
    birthday: Birthday,
    offsets: Iterable[int],
    reference_date: date,
) -> tuple[date, int] | None:
    """Next ``(date, offset)`` on or after ``reference_date`` at which a reminder fires."""

    normalized = normalize_offsets(offsets)
    if not normalized:
        return None
    upcoming = next_occurrence(birthday, reference_date)
    candidates: list[tuple[date, int]] = []
    for occurrence in (upcoming, next_occurrence(birthday, upcoming + timedelta(days=1))):
        for offset in normalized:
            fires_on = occurrence - timedelta(days=offset)
            if fires_on >= reference_date:
                candidates.append((fires_on, offset))
        if candidates:
            break
    return min(candidates, key=lambda item: item[0]) if candidates else None


def scan(
    members: Sequence[MemberRecord],
    offsets: Iterable[int],
    reference_date: date,
) -> list[tuple[MemberRecord, int]]:
    """Members whose next birthday is exactly one of ``offsets`` days away.

    Ordered by ascending days-until-birthday, then by roster position.
    """

    wanted = set(normalize_offsets(offsets))
    if not wanted:
        return []
    matches: list[tuple[int, int, MemberRecord]] = []
    for position, member in enumerate(members):
        if member.birthday is None:
            continue
        days = days_until_birthday(member.birthday, reference_date)
        if days in wanted:
            matches.append((days, position, member))
    matches.sort(key=lambda item: (item[0], item[1]))
    return [(member, days) for days, _, member in matches]


__all__ = [
    "age_turning",
    "days_until_birthday",
    "next_notification",
    "next_occurrence",
    "normalize_offsets",
    "scan",
]
