"""Mail Package - email provider adapters.

This package provides the ``MailHandler`` capability interface used by the
subscription and notification workflows, a Mailgun-backed implementation,
and an in-memory implementation for tests and dry runs.
"""
from .handler import (
    EmptyEmailAddressError,
    MailHandler,
    MailHandlerError,
    validate_email_address,
)
from .mailgun import MailgunHandler
from .memory import InMemoryMailHandler, SentEmail

__all__ = [
    "EmptyEmailAddressError",
    "InMemoryMailHandler",
    "MailHandler",
    "MailHandlerError",
    "MailgunHandler",
    "SentEmail",
    "validate_email_address",
]
