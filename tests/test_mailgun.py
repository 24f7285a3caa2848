"""
Unit Tests for the Mailgun Mail Handler.

Testing Strategy:
    A MagicMock requests session is injected into MailgunHandler so the
    Mailgun API calls can be inspected without network access.
"""
from unittest.mock import MagicMock

import pytest
import requests

from config import MailgunConfig
from mail import EmptyEmailAddressError, InMemoryMailHandler, MailgunHandler, MailHandlerError, validate_email_address


def make_response(body=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.request.return_value = make_response({"id": "<20240102@mg.example.com>", "message": "Queued. Thank you."})
    return session


@pytest.fixture
def handler(session):
    return MailgunHandler(
        domain="mg.example.com",
        api_key="key-123",
        mailing_list="blog@mg.example.com",
        from_name="MyBB Blog",
        session=session,
    )


class TestMailgunHandler:
    """Test suite for MailgunHandler."""

    def test_from_config(self):
        handler = MailgunHandler.from_config(
            MailgunConfig(domain="mg.example.com", api_key="k", mailing_list="list@mg.example.com",
                          email_validation=True, api_base="https://api.eu.mailgun.net/"),
            "Example Blog",
        )

        assert handler.domain == "mg.example.com"
        assert handler.email_validation is True
        assert handler.api_base == "https://api.eu.mailgun.net"
        assert handler.from_address == "Example Blog <list@mg.example.com>"

    def test_notification_is_sent_to_mailing_list(self, handler, session):
        handler.send_notification_to_mailing_list("Release 1.8.38", "plain", "<p>html</p>")

        method, url = session.request.call_args[0]
        kwargs = session.request.call_args[1]
        assert method == "POST"
        assert url == "https://api.mailgun.net/v3/mg.example.com/messages"
        assert kwargs["auth"] == ("api", "key-123")
        assert kwargs["timeout"] == MailgunHandler.REQUEST_TIMEOUT
        assert kwargs["data"] == {
            "from": "MyBB Blog <blog@mg.example.com>",
            "to": "blog@mg.example.com",
            "subject": "New MyBB Blog Post: Release 1.8.38",
            "text": "plain",
            "html": "<p>html</p>",
            "h:List-Unsubscribe": "%unsubscribe_email%",
        }

    def test_confirmation_email_is_sent_to_subscriber(self, handler, session):
        handler.send_subscription_confirmation_email("ann@example.com", "plain", "<p>html</p>")

        data = session.request.call_args[1]["data"]
        assert data["to"] == "ann@example.com"
        assert data["subject"] == "Confirm your subscription to MyBB Blog"
        assert "h:List-Unsubscribe" not in data

    def test_subscribe_adds_list_member(self, handler, session):
        handler.subscribe_email_to_mailing_list("ann@example.com", "Ann")

        method, url = session.request.call_args[0]
        assert method == "POST"
        assert url == "https://api.mailgun.net/v3/lists/blog@mg.example.com/members"
        assert session.request.call_args[1]["data"] == {
            "address": "ann@example.com",
            "name": "Ann",
            "subscribed": "yes",
            "upsert": "yes",
        }

    def test_http_error_raises_mail_handler_error(self, handler, session):
        session.request.return_value = make_response(status_code=401)

        with pytest.raises(MailHandlerError):
            handler.send_notification_to_mailing_list("Title", "plain", "<p>html</p>")

    def test_network_error_raises_mail_handler_error(self, handler, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(MailHandlerError):
            handler.subscribe_email_to_mailing_list("ann@example.com", "Ann")

    def test_empty_address_is_rejected_without_api_call(self, handler, session):
        with pytest.raises(EmptyEmailAddressError):
            handler.check_valid_email("")
        with pytest.raises(EmptyEmailAddressError):
            handler.subscribe_email_to_mailing_list("", "Ann")

        session.request.assert_not_called()

    def test_local_validation_when_api_disabled(self, handler, session):
        assert handler.check_valid_email("ann@example.com") is True
        assert handler.check_valid_email("ann@") is False
        session.request.assert_not_called()

    @pytest.mark.parametrize("verdict,expected", [
        ("deliverable", True),
        ("risky", True),
        ("unknown", True),
        ("undeliverable", False),
        ("do_not_send", False),
    ])
    def test_validation_api(self, session, verdict, expected):
        session.request.return_value = make_response({"address": "ann@example.com", "result": verdict})
        handler = MailgunHandler("mg.example.com", "key-123", "blog@mg.example.com",
                                 email_validation=True, session=session)

        assert handler.check_valid_email("ann@example.com") is expected

        method, url = session.request.call_args[0]
        assert method == "GET"
        assert url == "https://api.mailgun.net/v4/address/validate"
        assert session.request.call_args[1]["params"] == {"address": "ann@example.com"}

    def test_validation_api_failure_raises(self, session):
        session.request.side_effect = requests.exceptions.Timeout("slow")
        handler = MailgunHandler("mg.example.com", "key-123", "blog@mg.example.com",
                                 email_validation=True, session=session)

        with pytest.raises(MailHandlerError):
            handler.check_valid_email("ann@example.com")


@pytest.mark.parametrize("address,expected", [
    ("ann@example.com", True),
    ("first.last+tag@sub.example.co.uk", True),
    ("ann@localhost", False),
    ("ann example@example.com", False),
    ("@example.com", False),
    ("a" * 250 + "@example.com", False),
])
def test_validate_email_address(address, expected):
    assert validate_email_address(address) is expected


def test_validate_email_address_rejects_empty():
    with pytest.raises(EmptyEmailAddressError):
        validate_email_address("")


def test_in_memory_handler_keeps_only_recent_history():
    handler = InMemoryMailHandler(max_recorded=2)

    for number in range(3):
        handler.send_subscription_confirmation_email(f"user{number}@example.com", "plain", "<p>html</p>")
        handler.send_notification_to_mailing_list(f"Post {number}", "plain", "<p>html</p>")
        handler.subscribe_email_to_mailing_list(f"user{number}@example.com", f"User {number}")

    assert [email.to for email in handler.confirmations] == ["user1@example.com", "user2@example.com"]
    assert [email.subject for email in handler.notifications] == ["Post 1", "Post 2"]
    assert handler.subscribers == {"user1@example.com": "User 1", "user2@example.com": "User 2"}


def test_in_memory_handler_is_unbounded_by_default():
    handler = InMemoryMailHandler()

    for number in range(150):
        handler.send_notification_to_mailing_list(f"Post {number}", "plain", "<p>html</p>")

    assert len(handler.notifications) == 150
