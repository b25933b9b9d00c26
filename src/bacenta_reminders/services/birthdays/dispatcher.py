"""Fan a birthday reminder out to the in-app and email channels."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Sequence

from loguru import logger

from bacenta_reminders.models.notification import NotificationStatusEnum
from bacenta_reminders.services.notifications.backend import EmailBackend
from bacenta_reminders.services.notifications.in_app import InAppNotifier

from .domain import (
    ActingIdentity,
    ChannelDetails,
    LedgerEntry,
    MemberOutcome,
    MemberRecord,
    OutcomeStatus,
    Recipient,
    SkipReason,
    UnitRecord,
)
from .email_batch import Deadline, EmailMessageSpec, send_email_batch
from .exceptions import BatchDeadlineExceeded
from .ledger import LedgerStore
from .templates import (
    BirthdayReminderContext,
    RenderedTemplate,
    birthday_description,
    birthday_subject,
    render_birthday_reminder,
)

BIRTHDAY_NOTIFICATION_KIND = "birthday_reminder"
TIMEOUT_REASON = "timeout"

TemplateRenderer = Callable[[BirthdayReminderContext], RenderedTemplate]


class BirthdayDispatcher:
    """Records a ledger entry for one member and delivers it on every channel.

    In-app delivery is best effort. Email delivery decides whether the entry
    ends up ``sent`` or ``failed``; with email disabled, or with no recipient
    holding an address, in-app delivery alone marks it ``sent``.
    """

    def __init__(
        self,
        *,
        ledger: LedgerStore,
        email_backend: EmailBackend,
        in_app_notifier: InAppNotifier,
        renderer: TemplateRenderer = render_birthday_reminder,
        email_enabled: bool = True,
        batch_timeout_seconds: float = 20.0,
        pacing_seconds: float = 0.1,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ledger = ledger
        self._email_backend = email_backend
        self._in_app_notifier = in_app_notifier
        self._renderer = renderer
        self._email_enabled = email_enabled
        self._batch_timeout_seconds = batch_timeout_seconds
        self._pacing_seconds = pacing_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def dispatch(
        self,
        *,
        church_id: str,
        member: MemberRecord,
        days_until_birthday: int,
        recipients: Sequence[Recipient],
        unit: UnitRecord | None,
        acting: ActingIdentity,
        reference_date: date,
        force: bool = False,
    ) -> MemberOutcome:
        member_name = member.full_name
        entry = LedgerEntry(
            church_id=church_id,
            member_id=member.id,
            member_name=member_name,
            unit_id=unit.id if unit else member.unit_id,
            unit_name=unit.name if unit else None,
            notification_date=reference_date,
            days_until_birthday=days_until_birthday,
            recipient_ids=tuple(recipient.user_id for recipient in recipients),
            forced=force,
        )
        if force:
            entry_id = await self._ledger.create(entry)
        else:
            entry_id = await self._ledger.claim(entry)
            if entry_id is None:
                logger.debug(
                    "Birthday reminder already claimed by another run",
                    church_id=church_id,
                    member_id=member.id,
                    days_until_birthday=days_until_birthday,
                )
                return MemberOutcome(
                    member_id=member.id,
                    member_name=member_name,
                    days_until_birthday=days_until_birthday,
                    status=OutcomeStatus.SKIPPED,
                    reason=SkipReason.CLAIM_LOST.value,
                )

        subject = birthday_subject(member_name, days_until_birthday)
        try:
            await self._notify_in_app(church_id, member, days_until_birthday, recipients, unit, acting)
            status, details = await self._deliver_email(
                member=member,
                days_until_birthday=days_until_birthday,
                recipients=recipients,
                unit=unit,
                reference_date=reference_date,
                subject=subject,
            )
        except Exception as exc:
            # release the entry so it does not block later runs
            await self._ledger.mark_terminal(
                church_id,
                entry_id,
                NotificationStatusEnum.FAILED,
                ChannelDetails(subject=subject, sent_at=self._clock(), failure_reason=str(exc)),
            )
            raise
        await self._ledger.mark_terminal(church_id, entry_id, status, details)

        if status is NotificationStatusEnum.FAILED:
            logger.warning(
                "Birthday reminder delivery failed",
                church_id=church_id,
                member_id=member.id,
                days_until_birthday=days_until_birthday,
                reason=details.failure_reason,
            )
            return MemberOutcome(
                member_id=member.id,
                member_name=member_name,
                days_until_birthday=days_until_birthday,
                status=OutcomeStatus.FAILED,
                reason=details.failure_reason,
                error=f"{member_name}: {details.failure_reason}",
                ledger_id=entry_id,
            )
        return MemberOutcome(
            member_id=member.id,
            member_name=member_name,
            days_until_birthday=days_until_birthday,
            status=OutcomeStatus.SENT,
            ledger_id=entry_id,
        )

    async def _notify_in_app(
        self,
        church_id: str,
        member: MemberRecord,
        days_until_birthday: int,
        recipients: Sequence[Recipient],
        unit: UnitRecord | None,
        acting: ActingIdentity,
    ) -> None:
        member_name = member.full_name
        description = birthday_description(member_name, days_until_birthday)
        payload = {
            "memberName": member_name,
            "description": description,
            "metadata": {
                "daysUntilBirthday": days_until_birthday,
                "bacentaId": unit.id if unit else member.unit_id,
                "bacentaName": unit.name if unit else None,
            },
        }
        try:
            await self._in_app_notifier.create_for_recipients(
                church_id,
                [recipient.user_id for recipient in recipients],
                kind=BIRTHDAY_NOTIFICATION_KIND,
                description=description,
                payload=payload,
                attribution=acting,
            )
        except Exception as exc:
            logger.warning(
                "In-app birthday notification failed",
                church_id=church_id,
                member_id=member.id,
                error=str(exc),
            )

    async def _deliver_email(
        self,
        *,
        member: MemberRecord,
        days_until_birthday: int,
        recipients: Sequence[Recipient],
        unit: UnitRecord | None,
        reference_date: date,
        subject: str,
    ) -> tuple[NotificationStatusEnum, ChannelDetails]:
        messages: list[EmailMessageSpec] = []
        if self._email_enabled:
            for recipient in recipients:
                if not recipient.email:
                    continue
                rendered = self._renderer(
                    BirthdayReminderContext(
                        member=member,
                        recipient=recipient,
                        unit_name=unit.name if unit else None,
                        days_until_birthday=days_until_birthday,
                        reference_date=reference_date,
                    )
                )
                messages.append(
                    EmailMessageSpec(
                        recipient=recipient.email,
                        subject=rendered.subject,
                        text_body=rendered.text_body,
                        html_body=rendered.html_body,
                    )
                )

        if not messages:
            return NotificationStatusEnum.SENT, ChannelDetails(subject=subject, sent_at=self._clock())

        deadline = Deadline(self._batch_timeout_seconds)
        try:
            results = await send_email_batch(
                self._email_backend,
                messages,
                deadline=deadline,
                pacing_seconds=self._pacing_seconds,
            )
        except BatchDeadlineExceeded as exc:
            logger.warning(
                "Birthday email batch timed out",
                member_id=member.id,
                completed=exc.completed,
                total=exc.total,
            )
            return NotificationStatusEnum.FAILED, ChannelDetails(
                subject=subject,
                sent_at=self._clock(),
                failure_reason=TIMEOUT_REASON,
            )

        failures = [result for result in results if not result.success]
        if failures:
            reason = "; ".join(f"{result.recipient}: {result.error}" for result in failures)
            return NotificationStatusEnum.FAILED, ChannelDetails(
                subject=subject,
                sent_at=self._clock(),
                failure_reason=reason,
            )
        first_message_id = next((result.message_id for result in results if result.message_id), None)
        return NotificationStatusEnum.SENT, ChannelDetails(
            subject=subject,
            sent_at=self._clock(),
            provider_message_id=first_message_id,
        )


__all__ = ["BIRTHDAY_NOTIFICATION_KIND", "BirthdayDispatcher", "TemplateRenderer"]
