"""
Mailgun Mail Handler.

This module implements the ``MailHandler`` interface on top of the Mailgun
HTTP API using requests:

- Address validation: GET /v4/address/validate (paid Mailgun feature, only
  used when ``mailgun.email_validation`` is enabled; otherwise addresses are
  checked locally for valid syntax)
- Sending mail: POST /v3/<domain>/messages
- Mailing list membership: POST /v3/lists/<list address>/members

Mailgun Configuration:
    Configure via config.yml:
    - mailgun.domain: Sending domain configured with Mailgun
    - mailgun.api_key_file: Path to Docker secret holding the private API key
    - mailgun.mailing_list: Address of the mailing list
    - mailgun.email_validation: Use the validation API
    - mail.from_name: Display name shown on outgoing mail

API Reference:
    https://documentation.mailgun.com/docs/mailgun/api-reference/

Security:
    - The API key is loaded from Docker secrets or the environment
    - The API key is never logged
"""
import logging
from typing import Any, Dict, Optional

import requests

from config import MailgunConfig
from .handler import (
    EmptyEmailAddressError,
    MailHandler,
    MailHandlerError,
    validate_email_address,
)


logger = logging.getLogger(__name__)


class MailgunHandler(MailHandler):
    """Mail handler backed by the Mailgun HTTP API.

    Attributes:
        domain: Mailgun sending domain
        api_key: Mailgun private API key
        mailing_list: Address of the mailing list notifications are sent to
        from_name: Display name for outgoing mail
        email_validation: Whether to use Mailgun's address validation API
        api_base: Mailgun API base URL

    Example:
        >>> handler = MailgunHandler.from_config(mailer_config.mailgun, mailer_config.from_name)
        >>> handler.subscribe_email_to_mailing_list("ann@example.com", "Ann")
    """

    REQUEST_TIMEOUT = 10  # seconds

    # Validation results for which Mailgun advises not to send
    INVALID_RESULTS = {"undeliverable", "do_not_send"}

    UNSUBSCRIBE_HEADER_VALUE = "%unsubscribe_email%"

    def __init__(self, domain: str, api_key: str, mailing_list: str, from_name: str = "",
                 email_validation: bool = False, api_base: str = "https://api.mailgun.net",
                 session: Optional[requests.Session] = None):
        self.domain = domain
        self.api_key = api_key
        self.mailing_list = mailing_list
        self.from_name = from_name
        self.email_validation = email_validation
        self.api_base = api_base.rstrip("/")
        self.session = session or requests.Session()

        logger.info(
            f"Mailgun mail handler initialized for domain {self.domain} "
            f"(mailing list {self.mailing_list}, validation API "
            f"{'enabled' if self.email_validation else 'disabled'})"
        )

    @classmethod
    def from_config(cls, config: MailgunConfig, from_name: str) -> "MailgunHandler":
        """Create a MailgunHandler from the Mailgun section of the configuration."""
        return cls(
            domain=config.domain,
            api_key=config.api_key,
            mailing_list=config.mailing_list,
            from_name=from_name,
            email_validation=config.email_validation,
            api_base=config.api_base,
        )

    @property
    def from_address(self) -> str:
        """Sender shown on outgoing mail, e.g. ``MyBB Blog <blog@lists.mybb.com>``."""
        if self.from_name:
            return f"{self.from_name} <{self.mailing_list}>"
        return self.mailing_list

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """Call the Mailgun API and return the decoded JSON body.

        Raises:
            MailHandlerError: On network errors or non-2xx responses
        """
        url = f"{self.api_base}{path}"
        try:
            response = self.session.request(
                method,
                url,
                auth=("api", self.api_key),
                timeout=self.REQUEST_TIMEOUT,
                **kwargs
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise MailHandlerError(f"Mailgun request {method} {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError:
            return {}

    def check_valid_email(self, email_address: str) -> bool:
        if not email_address:
            raise EmptyEmailAddressError()

        if not self.email_validation:
            return validate_email_address(email_address)

        result = self._request("GET", "/v4/address/validate", params={"address": email_address})
        verdict = result.get("result", "")
        logger.debug(f"Mailgun validation result for address: {verdict}")

        return verdict not in self.INVALID_RESULTS

    def _send_message(self, to: str, subject: str, text_content: str, html_content: str,
                      headers: Optional[Dict[str, str]] = None) -> None:
        data = {
            "from": self.from_address,
            "to": to,
            "subject": subject,
            "text": text_content,
            "html": html_content,
        }
        for name, value in (headers or {}).items():
            data[f"h:{name}"] = value

        result = self._request("POST", f"/v3/{self.domain}/messages", data=data)
        logger.info(f"Sent email '{subject}' with id {result.get('id', 'unknown')}: {result.get('message', '')}")

    def send_subscription_confirmation_email(self, email_address: str, text_content: str,
                                             html_content: str) -> None:
        if not email_address:
            raise EmptyEmailAddressError()

        self._send_message(
            to=email_address,
            subject=f"Confirm your subscription to {self.from_name or self.mailing_list}",
            text_content=text_content,
            html_content=html_content,
        )

    def subscribe_email_to_mailing_list(self, email_address: str, name: str) -> None:
        if not email_address:
            raise EmptyEmailAddressError()

        self._request(
            "POST",
            f"/v3/lists/{self.mailing_list}/members",
            data={
                "address": email_address,
                "name": name,
                "subscribed": "yes",
                "upsert": "yes",
            },
        )
        logger.info(f"Subscribed {name!r} to mailing list {self.mailing_list}")

    def send_notification_to_mailing_list(self, post_title: str, text_content: str,
                                          html_content: str) -> None:
        self._send_message(
            to=self.mailing_list,
            subject=f"New {self.from_name} Post: {post_title}" if self.from_name else f"New Post: {post_title}",
            text_content=text_content,
            html_content=html_content,
            headers={"List-Unsubscribe": self.UNSUBSCRIBE_HEADER_VALUE},
        )
