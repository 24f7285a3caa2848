"""
Unit Tests for the Notification Workflow.

This test suite validates BuildNotifier, which announces new blog posts to
the mailing list after a successful GitHub Pages build.

Test Coverage:
    - Successful build with a new post: broadcast + state advanced
    - Successful build without a new post: nothing sent, state unchanged
    - Send failure: state unchanged so the post is retried next build
    - Feed failure: logged, nothing sent
    - Unreadable state treated as "no prior state"
    - queued / building / errored / unknown statuses never poll the feed
    - Runs are serialized by the notifier lock
"""
import logging
import threading
import time
from unittest.mock import patch

import pytest
import requests

from conftest import FEED_URL, feed_response, make_rss
from feed import FeedStateStore
from mail import InMemoryMailHandler, MailHandlerError
from notifications.build_notifier import BuildNotifier


NEW_POST_FEED = make_rss([{
    "title": "MyBB 1.8.38 Released",
    "link": "https://blog.example.com/2024/01/02/mybb-1-8-38-released/",
    "description": "<p>This release <strong>fixes</strong> bugs.</p><script>alert(1)</script>",
    "pubDate": "Tue, 02 Jan 2024 00:00:00 +0000",
    "author": "Euan",
}])


@pytest.fixture
def notifier(mail_handler, state_file):
    return BuildNotifier(mail_handler, FeedStateStore(str(state_file)), FEED_URL)


def write_state(state_file, value):
    state_file.parent.mkdir(parents=True, exist_ok=True)
    state_file.write_text(value)


@patch("feed.poller.requests.get")
def test_new_post_is_sent_and_state_advanced(mock_get, notifier, mail_handler, state_file):
    """Scenario: stored 2024-01-01, feed entry 2024-01-02 -> sent, stored 2024-01-02."""
    write_state(state_file, "2024-01-01T00:00:00Z")
    mock_get.return_value = feed_response(NEW_POST_FEED)

    sent = notifier.on_build_completed("built")

    assert sent is not None
    assert sent.title == "MyBB 1.8.38 Released"
    assert len(mail_handler.notifications) == 1
    notification = mail_handler.notifications[0]
    assert notification.subject == "MyBB 1.8.38 Released"
    assert "https://blog.example.com/2024/01/02/mybb-1-8-38-released/" in notification.text_content
    assert "<strong>fixes</strong>" in notification.html_content
    assert "<script>" not in notification.html_content
    assert "by Euan" in notification.text_content
    assert state_file.read_text() == "2024-01-02T00:00:00Z"


@patch("feed.poller.requests.get")
def test_second_build_does_not_resend_same_post(mock_get, notifier, mail_handler, state_file):
    mock_get.return_value = feed_response(NEW_POST_FEED)

    notifier.on_build_completed("built")
    notifier.on_build_completed("built")

    assert len(mail_handler.notifications) == 1
    assert state_file.read_text() == "2024-01-02T00:00:00Z"


@patch("feed.poller.requests.get")
def test_no_new_post_sends_nothing(mock_get, notifier, mail_handler, state_file):
    write_state(state_file, "2024-01-02T00:00:00Z")
    mock_get.return_value = feed_response(NEW_POST_FEED)

    assert notifier.on_build_completed("built") is None

    assert mail_handler.notifications == []
    assert state_file.read_text() == "2024-01-02T00:00:00Z"


@patch("feed.poller.requests.get")
def test_send_failure_leaves_state_unchanged(mock_get, state_file, caplog):
    write_state(state_file, "2024-01-01T00:00:00Z")
    mock_get.return_value = feed_response(NEW_POST_FEED)
    failing = InMemoryMailHandler(fail_with=MailHandlerError("503 Service Unavailable"))
    notifier = BuildNotifier(failing, FeedStateStore(str(state_file)), FEED_URL)

    with caplog.at_level(logging.ERROR, logger="notifications.build_notifier"):
        assert notifier.on_build_completed("built") is None

    assert "MyBB 1.8.38 Released" in caplog.text
    assert state_file.read_text() == "2024-01-01T00:00:00Z"

    # The next successful build retries the same post
    working = InMemoryMailHandler()
    notifier.mail_handler = working
    assert notifier.on_build_completed("built") is not None
    assert len(working.notifications) == 1


@patch("feed.poller.requests.get")
def test_feed_failure_is_logged(mock_get, notifier, mail_handler, caplog):
    mock_get.side_effect = requests.exceptions.ConnectionError("connection refused")

    with caplog.at_level(logging.ERROR, logger="notifications.build_notifier"):
        assert notifier.on_build_completed("built") is None

    assert "Unable to get new blog post" in caplog.text
    assert mail_handler.notifications == []


@patch("feed.poller.requests.get")
def test_corrupt_state_is_treated_as_no_prior_state(mock_get, notifier, mail_handler, state_file, caplog):
    write_state(state_file, "not a timestamp")
    mock_get.return_value = feed_response(NEW_POST_FEED)

    with caplog.at_level(logging.ERROR, logger="notifications.build_notifier"):
        assert notifier.on_build_completed("built") is not None

    assert "treating as no prior state" in caplog.text
    assert state_file.read_text() == "2024-01-02T00:00:00Z"


@patch("feed.poller.requests.get")
def test_state_write_failure_does_not_fail_notification(mock_get, mail_handler, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    mock_get.return_value = feed_response(NEW_POST_FEED)
    notifier = BuildNotifier(mail_handler, FeedStateStore(str(blocker / "state.txt")), FEED_URL)

    assert notifier.on_build_completed("built") is not None
    assert len(mail_handler.notifications) == 1


@pytest.mark.parametrize("status", ["queued", "building"])
@patch("feed.poller.requests.get")
def test_informational_statuses_do_nothing(mock_get, status, notifier, mail_handler):
    assert notifier.on_build_completed(status) is None

    mock_get.assert_not_called()
    assert mail_handler.notifications == []


@patch("feed.poller.requests.get")
def test_errored_build_logs_message(mock_get, notifier, mail_handler, caplog):
    """Scenario: errored build with a message -> warning with the message, no poll or send."""
    with caplog.at_level(logging.WARNING, logger="notifications.build_notifier"):
        notifier.on_build_completed("errored", "Page build failed: Liquid syntax error in _posts/x.md")

    assert "Liquid syntax error in _posts/x.md" in caplog.text
    assert any(record.levelno == logging.WARNING for record in caplog.records)
    mock_get.assert_not_called()
    assert mail_handler.notifications == []


@patch("feed.poller.requests.get")
def test_errored_build_without_message_logs_generic_warning(mock_get, notifier, caplog):
    with caplog.at_level(logging.WARNING, logger="notifications.build_notifier"):
        notifier.on_build_completed("errored", None)

    assert "error status but no error message" in caplog.text
    mock_get.assert_not_called()


@patch("feed.poller.requests.get")
def test_unknown_status_logs_warning(mock_get, notifier, caplog):
    with caplog.at_level(logging.WARNING, logger="notifications.build_notifier"):
        assert notifier.on_build_completed("exploded") is None

    assert "unknown build status: exploded" in caplog.text
    mock_get.assert_not_called()


def test_runs_are_serialized(mail_handler, state_file):
    """Two concurrent builds never poll the feed at the same time."""
    notifier = BuildNotifier(mail_handler, FeedStateStore(str(state_file)), FEED_URL)
    active = []
    overlaps = []

    def slow_get(url, timeout):
        active.append(url)
        if len(active) > 1:
            overlaps.append(url)
        time.sleep(0.05)
        active.pop()
        return feed_response(NEW_POST_FEED)

    with patch("feed.poller.requests.get", side_effect=slow_get):
        threads = [threading.Thread(target=notifier.on_build_completed, args=("built",)) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    assert overlaps == []
    assert len(mail_handler.notifications) == 1
