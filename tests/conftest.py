"""
Pytest configuration and shared fixtures for all tests.

This module provides shared fixtures and helpers for the test suite,
including:
- A complete MailerConfig pointing the feed state at a temporary file
- An in-memory mail handler recording every email
- RSS/Atom document builders and a fake feed HTTP response
"""
import pytest
from typing import List, Optional
from unittest.mock import MagicMock

from config import FeedConfig, MailerConfig
from mail import InMemoryMailHandler


FEED_URL = "https://blog.example.com/feed.xml"
WEBHOOK_SECRET = "webhook-secret"
HMAC_SECRET = "hmac-secret"


def make_rss(items: List[dict]) -> bytes:
    """Build an RSS 2.0 document from item dicts (title, link, description, pubDate, author)."""
    rendered = []
    for item in items:
        parts = [f"<title>{item.get('title', 'Untitled')}</title>"]
        if "link" in item:
            parts.append(f"<link>{item['link']}</link>")
        if "description" in item:
            parts.append(f"<description><![CDATA[{item['description']}]]></description>")
        if "pubDate" in item:
            parts.append(f"<pubDate>{item['pubDate']}</pubDate>")
        if "author" in item:
            parts.append(f"<dc:creator>{item['author']}</dc:creator>")
        rendered.append("<item>" + "".join(parts) + "</item>")

    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">'
        '<channel><title>Example Blog</title><link>https://blog.example.com/</link>'
        '<description>Posts</description>'
        + "".join(rendered) +
        '</channel></rss>'
    ).encode("utf-8")


def make_atom_entry(title: str, published: str, author: Optional[str] = None) -> bytes:
    """Build an Atom document with a single entry."""
    author_xml = f"<author><name>{author}</name></author>" if author else ""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        '<title>Example Blog</title><id>urn:example:blog</id><updated>2024-01-02T00:00:00Z</updated>'
        f'<entry><title>{title}</title><id>urn:example:post</id>'
        '<link href="https://blog.example.com/atom-post/"/>'
        f'<published>{published}</published><updated>{published}</updated>'
        f'{author_xml}<summary>Atom summary</summary></entry>'
        '</feed>'
    ).encode("utf-8")


def feed_response(content: bytes) -> MagicMock:
    """Create a fake requests response carrying a feed document."""
    response = MagicMock()
    response.status_code = 200
    response.content = content
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def state_file(tmp_path):
    """Path of a feed state file inside the test's temporary directory."""
    return tmp_path / "data" / "last_blog_post.txt"


@pytest.fixture
def mailer_config(state_file):
    """A complete dry-run configuration for the Flask app and workflows."""
    return MailerConfig(
        webhook_secret=WEBHOOK_SECRET,
        hmac_secret=HMAC_SECRET,
        session_secret="session-secret",
        from_name="Example Blog",
        dry_run=True,
        feed=FeedConfig(url=FEED_URL, state_file=str(state_file)),
    )


@pytest.fixture
def mail_handler():
    """In-memory mail handler recording confirmations, broadcasts and subscribers."""
    return InMemoryMailHandler()
