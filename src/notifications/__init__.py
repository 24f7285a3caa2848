"""Notifications Package - mailing list broadcasts for new blog posts."""
from .build_notifier import BuildNotifier

__all__ = ["BuildNotifier"]
