"""
Notification Workflow - announce new blog posts after a GitHub Pages build.

GitHub sends a ``page_build`` webhook every time the blog is rebuilt. When a
build succeeds the notifier polls the blog feed and, if the newest post was
published after the last notified one, mails it to the mailing list and
remembers its publication date.

Delivery Semantics:
    - At most one post per build: only the newest feed entry is considered
    - The state file is advanced only after Mailgun accepted the broadcast,
      so a failed send is retried on the next successful build
    - A failure to save the state file after a successful send is logged; the
      same post may then be sent again on the next build
    - Runs are serialized per process so two webhook deliveries cannot both
      read the same state and send the same post twice

Build Statuses:
    built     poll the feed and notify
    queued    informational, nothing to do
    building  informational, nothing to do
    errored   log the build error, nothing to do
"""
import logging
import threading
from typing import Optional

from jinja2 import Environment, TemplateError

from feed import FeedEntry, FeedError, FeedStateStore, format_timestamp, poll_for_new_post
from mail import MailHandler, MailHandlerError
from templating import render_post_notification


logger = logging.getLogger(__name__)

BUILD_STATUS_BUILT = "built"
BUILD_STATUS_QUEUED = "queued"
BUILD_STATUS_BUILDING = "building"
BUILD_STATUS_ERRORED = "errored"


class BuildNotifier:
    """Sends new post notifications when the blog has been rebuilt.

    Attributes:
        mail_handler: Mail provider used to broadcast to the mailing list
        state_store: Storage for the last notified publication date
        feed_url: URL of the blog's RSS/Atom feed
        feed_timeout: HTTP timeout for fetching the feed, in seconds

    Example:
        >>> notifier = BuildNotifier(handler, FeedStateStore("./data/last_blog_post.txt"),
        ...                          "https://blog.mybb.com/feed.xml")
        >>> notifier.on_build_completed("built")
    """

    def __init__(self, mail_handler: MailHandler, state_store: FeedStateStore, feed_url: str,
                 feed_timeout: float = 5.0, template_env: Optional[Environment] = None):
        self.mail_handler = mail_handler
        self.state_store = state_store
        self.feed_url = feed_url
        self.feed_timeout = feed_timeout
        self.template_env = template_env
        self._lock = threading.Lock()

    def on_build_completed(self, build_status: str,
                           build_error_message: Optional[str] = None) -> Optional[FeedEntry]:
        """Handle a page build event.

        Args:
            build_status: Status reported by GitHub (built, queued, building, errored)
            build_error_message: Error message reported with an errored build

        Returns:
            The post that was broadcast, or None if nothing was sent
        """
        if build_status == BUILD_STATUS_BUILT:
            logger.debug("Received successful page build event, reading feed to send emails")
            with self._lock:
                return self.send_new_post_notification()

        if build_status in (BUILD_STATUS_QUEUED, BUILD_STATUS_BUILDING):
            logger.info(f"Received page build event with {build_status} status")
        elif build_status == BUILD_STATUS_ERRORED:
            if build_error_message:
                logger.warning(f"Received page build event with error message: {build_error_message}")
            else:
                logger.warning("Received page build event with error status but no error message")
        else:
            logger.warning(f"Received page build event with unknown build status: {build_status}")

        return None

    def _read_last_notified(self):
        try:
            return self.state_store.read_last_notified()
        except (OSError, ValueError) as e:
            logger.error(f"Unable to read last post date from {self.state_store.path}, "
                         f"treating as no prior state: {e}")
            return None

    def send_new_post_notification(self) -> Optional[FeedEntry]:
        """Poll the feed and broadcast the newest post if it was not notified yet.

        Never raises for feed, template or Mailgun failures; they are logged
        and end this run.

        Returns:
            The post that was broadcast, or None if nothing was sent
        """
        last_notified = self._read_last_notified()

        try:
            new_post = poll_for_new_post(self.feed_url, last_notified, timeout=self.feed_timeout)
        except FeedError as e:
            logger.error(f"Unable to get new blog post: {e}")
            return None

        if new_post is None:
            logger.debug("No new blog post found")
            return None

        logger.info(f"Found new blog post: '{new_post.title}' published {format_timestamp(new_post.published_at)}")

        try:
            text_content, html_content = render_post_notification(new_post, env=self.template_env)
        except TemplateError as e:
            logger.error(f"Unable to create email content for '{new_post.title}': {e}", exc_info=True)
            return None

        try:
            self.mail_handler.send_notification_to_mailing_list(new_post.title, text_content, html_content)
        except MailHandlerError as e:
            logger.error(f"Sending blog post notification for post '{new_post.title}' failed: {e}")
            return None

        self.state_store.write_last_notified(new_post.published_at)
        return new_post
