"""In-memory mail handler, used by the test suite and by ``mail.dry_run``."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .handler import EmptyEmailAddressError, MailHandler, MailHandlerError, validate_email_address


logger = logging.getLogger(__name__)


@dataclass
class SentEmail:
    to: str
    subject: str
    text_content: str
    html_content: str


class InMemoryMailHandler(MailHandler):
    """Records every mail operation instead of calling a provider.

    Addresses are validated locally unless listed in ``invalid_addresses``.
    Setting ``fail_with`` makes every operation raise that error, to
    exercise provider-failure paths.

    Attributes:
        confirmations: Confirmation emails sent, in order
        notifications: Mailing list broadcasts sent, in order
        subscribers: Mailing list members, address -> name
        max_recorded: Keep only this many of each, oldest dropped first
            (None keeps everything)
    """

    def __init__(self, invalid_addresses: Optional[List[str]] = None,
                 fail_with: Optional[MailHandlerError] = None,
                 max_recorded: Optional[int] = None):
        self.invalid_addresses = set(invalid_addresses or [])
        self.fail_with = fail_with
        self.confirmations: List[SentEmail] = []
        self.notifications: List[SentEmail] = []
        self.subscribers: Dict[str, str] = {}
        self.max_recorded = max_recorded

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _trim(self) -> None:
        if self.max_recorded is None:
            return
        for sent in (self.confirmations, self.notifications):
            excess = len(sent) - self.max_recorded
            if excess > 0:
                del sent[:excess]
        while len(self.subscribers) > self.max_recorded:
            del self.subscribers[next(iter(self.subscribers))]

    def check_valid_email(self, email_address: str) -> bool:
        if not email_address:
            raise EmptyEmailAddressError()
        self._maybe_fail()
        if email_address in self.invalid_addresses:
            return False
        return validate_email_address(email_address)

    def send_subscription_confirmation_email(self, email_address: str, text_content: str,
                                             html_content: str) -> None:
        if not email_address:
            raise EmptyEmailAddressError()
        self._maybe_fail()
        self.confirmations.append(SentEmail(email_address, "confirm subscription", text_content, html_content))
        self._trim()
        logger.info(f"[dry run] confirmation email to {email_address}")

    def subscribe_email_to_mailing_list(self, email_address: str, name: str) -> None:
        if not email_address:
            raise EmptyEmailAddressError()
        self._maybe_fail()
        self.subscribers[email_address] = name
        self._trim()
        logger.info(f"[dry run] subscribed {email_address} as {name!r}")

    def send_notification_to_mailing_list(self, post_title: str, text_content: str,
                                          html_content: str) -> None:
        self._maybe_fail()
        self.notifications.append(SentEmail("mailing list", post_title, text_content, html_content))
        self._trim()
        logger.info(f"[dry run] notification for '{post_title}' to the mailing list")
