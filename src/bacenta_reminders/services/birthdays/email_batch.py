"""Bounded-time sequential email sends."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from loguru import logger

from bacenta_reminders.services.notifications.backend import EmailBackend

from .exceptions import BatchDeadlineExceeded


@dataclass
class Deadline:
    """A single time budget shared by every send of one batch."""

    timeout_seconds: float
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.started_at = self.clock()

    def remaining(self) -> float:
        return max(0.0, self.timeout_seconds - (self.clock() - self.started_at))

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


@dataclass(frozen=True, slots=True)
class EmailMessageSpec:
    recipient: str
    subject: str
    text_body: str
    html_body: str | None = None


@dataclass(frozen=True, slots=True)
class EmailSendResult:
    recipient: str
    success: bool
    error: str | None = None
    message_id: str | None = None


async def send_email_batch(
    backend: EmailBackend,
    messages: Sequence[EmailMessageSpec],
    *,
    deadline: Deadline,
    pacing_seconds: float = 0.1,
) -> list[EmailSendResult]:
    """Send ``messages`` one at a time, pausing ``pacing_seconds`` between sends.

    A failing recipient is recorded and the batch continues. Raises
    :class:`BatchDeadlineExceeded` when the whole batch outlives ``deadline``.
    """

    results: list[EmailSendResult] = []
    total = len(messages)

    async def _send_all() -> None:
        for index, message in enumerate(messages):
            if index and pacing_seconds > 0:
                await asyncio.sleep(pacing_seconds)
            try:
                message_id = await backend.send_email(
                    message.recipient,
                    message.subject,
                    message.text_body,
                    body_html=message.html_body,
                )
            except Exception as exc:
                logger.warning(
                    "Birthday email delivery failed",
                    recipient=message.recipient,
                    error=str(exc),
                )
                results.append(EmailSendResult(recipient=message.recipient, success=False, error=str(exc)))
            else:
                results.append(EmailSendResult(recipient=message.recipient, success=True, message_id=message_id))

    if not messages:
        return results
    if deadline.expired:
        raise BatchDeadlineExceeded(deadline.timeout_seconds, 0, total)
    try:
        await asyncio.wait_for(_send_all(), timeout=deadline.remaining())
    except asyncio.TimeoutError as exc:
        completed = sum(1 for result in results if result.success)
        raise BatchDeadlineExceeded(deadline.timeout_seconds, completed, total) from exc
    return results


__all__ = ["Deadline", "EmailMessageSpec", "EmailSendResult", "send_email_batch"]
