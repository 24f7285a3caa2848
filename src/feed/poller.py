"""
Feed Poller - detects a newly published blog post.

The poller downloads the blog's RSS/Atom feed, looks at the most recent
entry only, and decides whether it was published after the last post that
was already notified. It has no side effects: persisting the new
timestamp is the caller's job once the notification has actually been sent.

Only entry 0 is examined. If several posts were published between two
builds, only the newest one is announced.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import feedparser
import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class FeedError(Exception):
    """Base class for failures fetching or parsing the feed."""


class FeedFetchError(FeedError):
    """Raised when the feed cannot be downloaded."""


class FeedParseError(FeedError):
    """Raised when the downloaded document is not a usable feed."""


@dataclass(frozen=True)
class FeedEntry:
    """The newest post of the feed, as announced to the mailing list."""
    title: str
    summary: str
    url: str
    published_at: datetime
    author_name: str = ""


def is_new_post(published_at: Optional[datetime], last_notified: Optional[datetime]) -> bool:
    """Decide whether a post still has to be notified.

    A post is new iff it has a publication date and that date is strictly
    after the last notified one. A post published at exactly the stored
    timestamp is the post that was already sent.

    Args:
        published_at: Publication date of the entry, None if missing or unparseable
        last_notified: Publication date of the last notified post, None if none yet

    Returns:
        True if the post should be notified
    """
    if published_at is None:
        return False
    if last_notified is None:
        return True
    return published_at > last_notified


def _published_at(entry: Any) -> Optional[datetime]:
    """Return the entry's publication date as an aware UTC datetime.

    Atom entries without <published> fall back to <updated>.
    """
    published = entry.get("published_parsed") or entry.get("updated_parsed")
    if not published:
        return None
    # feedparser normalises dates to UTC struct_time
    return datetime.fromtimestamp(calendar.timegm(published), tz=timezone.utc)


def _author_name(entry: Any) -> str:
    author_detail = entry.get("author_detail")
    if author_detail and author_detail.get("name"):
        return author_detail.get("name")
    return entry.get("author", "") or ""


def fetch_feed(feed_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS,
               session: Optional[requests.Session] = None) -> feedparser.FeedParserDict:
    """Download and parse the feed.

    Raises:
        FeedFetchError: On network errors or non-2xx responses
        FeedParseError: If the response is not a feed feedparser can read
    """
    http = session or requests
    try:
        response = http.get(feed_url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise FeedFetchError(f"unable to fetch feed {feed_url}: {e}") from e

    parsed = feedparser.parse(response.content)

    # feedparser recognised no feed format at all
    if not parsed.get("version") and not parsed.entries:
        raise FeedParseError(f"unable to parse feed {feed_url}: {parsed.get('bozo_exception')}")

    if parsed.bozo:
        logger.warning(f"Feed {feed_url} is not well formed, continuing: {parsed.get('bozo_exception')}")

    return parsed


def poll_for_new_post(feed_url: str, last_notified: Optional[datetime],
                      timeout: float = DEFAULT_TIMEOUT_SECONDS,
                      session: Optional[requests.Session] = None) -> Optional[FeedEntry]:
    """Check the feed for a post published after ``last_notified``.

    Args:
        feed_url: URL of the RSS/Atom feed
        last_notified: Publication date of the last notified post, None if none yet
        timeout: HTTP timeout in seconds
        session: Optional requests session to fetch with

    Returns:
        The newest entry if it still has to be notified, None otherwise

    Raises:
        FeedFetchError: If the feed cannot be downloaded
        FeedParseError: If the feed cannot be parsed
    """
    parsed = fetch_feed(feed_url, timeout=timeout, session=session)

    if not parsed.entries:
        logger.debug(f"Feed {feed_url} has no entries")
        return None

    most_recent = parsed.entries[0]
    published_at = _published_at(most_recent)

    if not is_new_post(published_at, last_notified):
        logger.debug(
            f"Most recent post '{most_recent.get('title', '')}' (published {published_at}) "
            f"is not newer than {last_notified}"
        )
        return None

    return FeedEntry(
        title=most_recent.get("title", ""),
        summary=most_recent.get("summary", "") or most_recent.get("description", ""),
        url=most_recent.get("link", ""),
        published_at=published_at,
        author_name=_author_name(most_recent),
    )
