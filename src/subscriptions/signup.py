"""
Subscription Workflow - mailing list sign-up with email confirmation.

Flow:
    1. The visitor submits the sign-up form (name + email address)
    2. ``sign_up`` validates the input, mints a confirmation token and mails
       a link to /confirm carrying the address, name and token
    3. The visitor follows the link; ``confirm_sign_up`` verifies the token
       and adds the address to the Mailgun mailing list

No state is kept between steps 2 and 3: the token itself proves that the
visitor received the confirmation email.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from jinja2 import Environment, TemplateError

from mail import MailHandler, MailHandlerError
from mailer.errors import AuthenticationError, DependencyError, ValidationError
from templating import render_subscription_confirmation
from . import tokens


logger = logging.getLogger(__name__)


def build_confirm_link(confirm_url: str, email_address: str, display_name: str, token: str) -> str:
    """Append the confirmation query parameters to the /confirm URL."""
    query = urlencode({"emailAddress": email_address, "name": display_name, "token": token})
    separator = "&" if "?" in confirm_url else "?"
    return f"{confirm_url}{separator}{query}"


class SubscriptionService:
    """Drives the sign-up and confirmation steps.

    Attributes:
        mail_handler: Mail provider used to validate, send and subscribe
        hmac_secret: Key confirmation tokens are signed with
        from_name: Display name of the mailing list, used in email bodies
    """

    def __init__(self, mail_handler: MailHandler, hmac_secret: str, from_name: str,
                 template_env: Optional[Environment] = None):
        self.mail_handler = mail_handler
        self.hmac_secret = hmac_secret
        self.from_name = from_name
        self.template_env = template_env

    def sign_up(self, email_address: str, display_name: str, confirm_url: str) -> str:
        """Validate a sign-up request and send the confirmation email.

        Args:
            email_address: Address submitted in the form
            display_name: Name submitted in the form
            confirm_url: Absolute URL of the /confirm endpoint

        Returns:
            The confirmation link that was mailed

        Raises:
            ValidationError: If the name or address is missing or the address is invalid
            DependencyError: If the address check or the confirmation email fails
        """
        display_name = (display_name or "").strip()
        email_address = (email_address or "").strip()

        if not display_name:
            raise ValidationError("name required", field="name")

        if not email_address:
            raise ValidationError("email required", field="email")

        try:
            valid = self.mail_handler.check_valid_email(email_address)
        except MailHandlerError as e:
            logger.error(f"Error validating email address for sign-up: {e}")
            raise DependencyError("unable to validate email address", field="email") from e

        if not valid:
            logger.info("Sign-up rejected: invalid email address")
            raise ValidationError("invalid email", field="email")

        token = tokens.mint(email_address, display_name, self.hmac_secret)
        confirm_link = build_confirm_link(confirm_url, email_address, display_name, token)

        try:
            text_content, html_content = render_subscription_confirmation(
                display_name, confirm_link, self.from_name, env=self.template_env
            )
        except TemplateError as e:
            logger.error(f"Unable to render confirmation email: {e}", exc_info=True)
            raise DependencyError("unable to send confirmation email", field="send") from e

        try:
            self.mail_handler.send_subscription_confirmation_email(email_address, text_content, html_content)
        except MailHandlerError as e:
            logger.error(f"Error sending confirmation email: {e}")
            raise DependencyError("unable to send confirmation email", field="send") from e

        logger.info(f"Sent subscription confirmation email for {display_name!r}")
        return confirm_link

    def confirm_sign_up(self, email_address: Optional[str], display_name: Optional[str],
                        supplied_token: Optional[str]) -> None:
        """Verify a confirmation link and subscribe the address to the mailing list.

        Raises:
            ValidationError: If any of the three parameters is missing
            AuthenticationError: If the token does not match the address and name
            DependencyError: If the mailing list subscription fails
        """
        if not email_address or not display_name or not supplied_token:
            raise ValidationError("missing email address, name or token")

        if not tokens.verify(email_address, display_name, self.hmac_secret, supplied_token):
            logger.warning("Rejected confirmation link with an invalid token")
            raise AuthenticationError("invalid confirmation token")

        try:
            self.mail_handler.subscribe_email_to_mailing_list(email_address, display_name)
        except MailHandlerError as e:
            logger.error(f"Error subscribing confirmed address to the mailing list: {e}")
            raise DependencyError("unable to subscribe to the mailing list") from e

        logger.info(f"Confirmed subscription for {display_name!r}")
