"""Feed Package - new post detection.

Exported:
    FeedEntry: The newest post of the feed
    FeedStateStore: Flat-file storage for the last notified publication date
    poll_for_new_post: Fetch the feed and return the newest post if not yet notified
    is_new_post: The "published strictly after" eligibility rule
"""
from .poller import (
    FeedEntry,
    FeedError,
    FeedFetchError,
    FeedParseError,
    is_new_post,
    poll_for_new_post,
)
from .state import FeedStateStore, format_timestamp, parse_timestamp

__all__ = [
    "FeedEntry",
    "FeedError",
    "FeedFetchError",
    "FeedParseError",
    "FeedStateStore",
    "format_timestamp",
    "is_new_post",
    "parse_timestamp",
    "poll_for_new_post",
]
