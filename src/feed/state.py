"""
Flat-file storage for the publication date of the last notified post.

The file holds a single RFC 3339 timestamp. It only ever moves forward:
the notification workflow writes it after a broadcast succeeds, and the
poller only reports posts published strictly after it.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339, using ``Z`` for UTC.

    Naive datetimes are assumed to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value.utcoffset() == timezone.utc.utcoffset(None):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat(timespec="seconds")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into a timezone-aware datetime.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FeedStateStore:
    """Reads and writes the last-notified timestamp in a flat file.

    Attributes:
        path: Location of the state file
        seed_on_first_run: When the state file does not exist yet, write the
            current time to it and report that as the last notified date, so
            that the first build after deployment never mails an old post
    """

    def __init__(self, path: str, seed_on_first_run: bool = False):
        self.path = Path(path)
        self.seed_on_first_run = seed_on_first_run

    def read_last_notified(self) -> Optional[datetime]:
        """Return the last notified publication date, or None if nothing was notified yet.

        Raises:
            OSError: If the file exists but cannot be read
            ValueError: If the file content is not an RFC 3339 timestamp
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            if self.seed_on_first_run:
                now = datetime.now(timezone.utc).replace(microsecond=0)
                logger.info(f"No feed state at {self.path}, seeding it with {format_timestamp(now)}")
                self.write_last_notified(now)
                return now
            logger.debug(f"No feed state at {self.path}, no post notified yet")
            return None

        if not content.strip():
            return None

        return parse_timestamp(content)

    def write_last_notified(self, timestamp: datetime) -> bool:
        """Persist the last notified publication date.

        Failures are logged and swallowed: by the time this is called the
        email has already gone out.

        Returns:
            True if the timestamp was written, False otherwise
        """
        value = format_timestamp(timestamp)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(value, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Unable to save last post date '{value}' to {self.path}: {e}")
            return False

        logger.debug(f"Saved last post date '{value}' to {self.path}")
        return True
