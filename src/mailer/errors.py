"""
Error Taxonomy for the Blog Mailer.

Every failure a workflow surfaces to the HTTP layer is one of the classes
below. Route handlers in ``server.app`` map them to responses:

    ValidationError      bad caller input, HTTP 400 or redirect + flash
    AuthenticationError  confirmation token mismatch, HTTP 400
    DependencyError      Mailgun or network failure, logged, HTTP 500

Errors reading or writing the feed state file are plain ``OSError`` and are
handled inside the notification workflow, never surfaced over HTTP.
"""
from typing import Optional


class MailerError(Exception):
    """Base class for errors raised by the mailer workflows.

    Attributes:
        message: Human-readable description, safe to show to end users
        field: Form field or failure category the error relates to, used as
               the flash message category (``name``, ``email`` or ``send``)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(MailerError):
    """Raised when caller input is missing or malformed."""


class AuthenticationError(MailerError):
    """Raised when a confirmation token does not match the signed-up address."""


class DependencyError(MailerError):
    """Raised when an external provider (Mailgun, the feed host) fails."""
