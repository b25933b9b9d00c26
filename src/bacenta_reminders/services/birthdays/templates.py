"""Notification templates for birthday reminders."""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import date

from .domain import MemberRecord, Recipient
from .scanner import age_turning, next_occurrence


@dataclass
class RenderedTemplate:
    subject: str
    text_body: str
    html_body: str


@dataclass(frozen=True, slots=True)
class BirthdayReminderContext:
    """Everything the default renderer needs for one recipient."""

    member: MemberRecord
    recipient: Recipient
    unit_name: str | None
    days_until_birthday: int
    reference_date: date


def birthday_subject(member_name: str, days_until_birthday: int) -> str:
    if days_until_birthday == 0:
        return f"🎉 Birthday Today - {member_name}"
    if days_until_birthday == 1:
        return f"🎂 Birthday Tomorrow - {member_name} (1 day)"
    return f"🎈 Upcoming Birthday - {member_name} ({days_until_birthday} days)"


def birthday_description(member_name: str, days_until_birthday: int) -> str:
    """One-line text used for in-app notifications."""

    if days_until_birthday == 0:
        return f"Birthday today: {member_name}"
    suffix = "day" if days_until_birthday == 1 else "days"
    return f"Birthday in {days_until_birthday} {suffix}: {member_name}"


def _days_text(days_until_birthday: int) -> str:
    if days_until_birthday == 0:
        return "today"
    if days_until_birthday == 1:
        return "tomorrow"
    return f"in {days_until_birthday} days"


def render_birthday_reminder(context: BirthdayReminderContext) -> RenderedTemplate:
    member = context.member
    name = member.full_name
    unit_label = context.unit_name or "Unassigned"
    subject = birthday_subject(name, context.days_until_birthday)
    days_text = _days_text(context.days_until_birthday)

    birthday_line = "Unknown"
    age: int | None = None
    if member.birthday is not None:
        occurrence = next_occurrence(member.birthday, context.reference_date)
        birthday_line = occurrence.strftime("%A, %B %d").replace(" 0", " ")
        age = age_turning(member.birthday, context.reference_date)

    greeting = f"Hi {context.recipient.display_name},"
    text_lines = [
        greeting,
        "",
        f"{name}'s birthday is {days_text}.",
        "",
        "Member details:",
        f"- Birthday: {birthday_line}",
    ]
    if age is not None:
        text_lines.append(f"- Turning: {age}")
    text_lines.extend([f"- Bacenta: {unit_label}", f"- Role: {member.role}"])
    if member.phone_number:
        text_lines.append(f"- Phone: {member.phone_number}")
    text_lines.extend(
        [
            "",
            f"Take a moment to reach out and celebrate with {member.first_name}!",
            "",
            "You received this because you have oversight responsibilities for "
            f"members in the {unit_label} bacenta.",
        ]
    )
    text_body = "\n".join(text_lines)

    detail_rows = [("Birthday", birthday_line)]
    if age is not None:
        detail_rows.append(("Turning", str(age)))
    detail_rows.extend([("Bacenta", unit_label), ("Role", member.role)])
    if member.phone_number:
        detail_rows.append(("Phone", member.phone_number))
    rows_html = "".join(
        f"<li><strong>{html.escape(label)}:</strong> {html.escape(value)}</li>" for label, value in detail_rows
    )
    html_body = f"""
<html>
  <body style="font-family:Arial,sans-serif;color:#1d1d1f;">
    <h2 style="margin:0 0 12px 0;">{html.escape(subject)}</h2>
    <p>{html.escape(greeting)}</p>
    <p><strong>{html.escape(name)}</strong>'s birthday is {html.escape(days_text)}.</p>
    <ul>
      {rows_html}
    </ul>
    <p>Take a moment to reach out and celebrate with {html.escape(member.first_name)}!</p>
    <p style="font-size:12px;color:#666;">
      You received this because you have oversight responsibilities for members in the
      {html.escape(unit_label)} bacenta.
    </p>
  </body>
</html>
""".strip()

    return RenderedTemplate(subject=subject, text_body=text_body, html_body=html_body)


__all__ = [
    "BirthdayReminderContext",
    "RenderedTemplate",
    "birthday_description",
    "birthday_subject",
    "render_birthday_reminder",
]
