"""
Mail Handler capability interface.

The workflows never talk to an email provider directly. They depend on a
``MailHandler``, which covers the four mail operations the mailer needs:
validating an address, sending the sign-up confirmation email, adding an
address to the mailing list, and broadcasting a new post to the list.

Implementations:
    MailgunHandler (mail.mailgun): production adapter for the Mailgun HTTP API
    InMemoryMailHandler (mail.memory): records calls, used for tests and dry runs
"""
import logging
import re
from abc import ABC, abstractmethod


logger = logging.getLogger(__name__)

# RFC 5322 compatible address pattern, local part @ dotted domain
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)
EMAIL_MAX_LENGTH = 254


class MailHandlerError(Exception):
    """Raised when the email provider cannot complete a request."""


class EmptyEmailAddressError(MailHandlerError):
    """Raised when an operation is given an empty email address."""

    def __init__(self):
        super().__init__("email address is empty")


def validate_email_address(email_address: str) -> bool:
    """Check whether an email address is syntactically valid.

    This does not check that the address can receive mail.

    Args:
        email_address: Address to validate

    Returns:
        True if the address has a valid format

    Raises:
        EmptyEmailAddressError: If the address is empty
    """
    if not email_address:
        raise EmptyEmailAddressError()

    email_address = email_address.strip()
    if len(email_address) > EMAIL_MAX_LENGTH:
        return False

    return bool(EMAIL_PATTERN.match(email_address))


class MailHandler(ABC):
    """Abstract base class for email provider adapters.

    Every method raises ``MailHandlerError`` (or a subclass) when the
    provider fails; return values only carry successful results.
    """

    @abstractmethod
    def check_valid_email(self, email_address: str) -> bool:
        """Check whether the given email address is valid.

        Raises:
            EmptyEmailAddressError: If the address is empty
            MailHandlerError: If the validation service cannot be reached
        """

    @abstractmethod
    def send_subscription_confirmation_email(self, email_address: str, text_content: str,
                                             html_content: str) -> None:
        """Send an email asking the recipient to confirm their subscription."""

    @abstractmethod
    def subscribe_email_to_mailing_list(self, email_address: str, name: str) -> None:
        """Add the given address to the mailing list under the given name."""

    @abstractmethod
    def send_notification_to_mailing_list(self, post_title: str, text_content: str,
                                          html_content: str) -> None:
        """Send a new blog post notification to the whole mailing list."""
