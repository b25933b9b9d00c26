from datetime import date

import pytest

from bacenta_reminders.models.roster import ChurchUserRoleEnum
from bacenta_reminders.services.birthdays.domain import Recipient, RecipientRelationship
from bacenta_reminders.services.birthdays.templates import (
    BirthdayReminderContext,
    birthday_description,
    birthday_subject,
    render_birthday_reminder,
)

from birthday_fixtures import member

RECIPIENT = Recipient(
    user_id="leader",
    email="leader@example.org",
    display_name="Kwame",
    role=ChurchUserRoleEnum.UNIT_LEADER,
    relationship=RecipientRelationship.UNIT_LEADER,
)


@pytest.mark.parametrize(
    ("days", "subject", "description"),
    [
        (0, "🎉 Birthday Today - Ama Mensah", "Birthday today: Ama Mensah"),
        (1, "🎂 Birthday Tomorrow - Ama Mensah (1 day)", "Birthday in 1 day: Ama Mensah"),
        (7, "🎈 Upcoming Birthday - Ama Mensah (7 days)", "Birthday in 7 days: Ama Mensah"),
    ],
)
def test_subject_and_description_wording(days, subject, description):
    assert birthday_subject("Ama Mensah", days) == subject
    assert birthday_description("Ama Mensah", days) == description


def test_render_includes_member_details():
    context = BirthdayReminderContext(
        member=member(role="Shepherd", phone_number="+233200000000"),
        recipient=RECIPIENT,
        unit_name="Central <East>",
        days_until_birthday=7,
        reference_date=date(2025, 7, 3),
    )

    rendered = render_birthday_reminder(context)

    assert rendered.subject == "🎈 Upcoming Birthday - Ama Mensah (7 days)"
    assert rendered.text_body.startswith("Hi Kwame,")
    assert "Ama Mensah's birthday is in 7 days." in rendered.text_body
    assert "- Birthday: Thursday, July 10" in rendered.text_body
    assert "- Turning: 35" in rendered.text_body
    assert "- Role: Shepherd" in rendered.text_body
    assert "- Phone: +233200000000" in rendered.text_body
    assert "Central &lt;East&gt;" in rendered.html_body


def test_render_without_year_or_unit():
    context = BirthdayReminderContext(
        member=member(birthday="07-03", unit_id=None),
        recipient=RECIPIENT,
        unit_name=None,
        days_until_birthday=0,
        reference_date=date(2025, 7, 3),
    )

    rendered = render_birthday_reminder(context)

    assert "birthday is today" in rendered.text_body
    assert "Turning" not in rendered.text_body
    assert "- Bacenta: Unassigned" in rendered.text_body
