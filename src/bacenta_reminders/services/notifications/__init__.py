"""Notification delivery channels."""

from .backend import (
    EmailBackend,
    InMemoryEmailBackend,
    SendGridEmailBackend,
    SMTPEmailBackend,
    build_email_backend,
)
from .in_app import InAppNotifier, InMemoryInAppNotifier, SqlAlchemyInAppNotifier

__all__ = [
    "EmailBackend",
    "SMTPEmailBackend",
    "SendGridEmailBackend",
    "InMemoryEmailBackend",
    "build_email_backend",
    "InAppNotifier",
    "InMemoryInAppNotifier",
    "SqlAlchemyInAppNotifier",
]
