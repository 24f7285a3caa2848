"""Subscriptions Package - mailing list sign-up and email confirmation."""
from .signup import SubscriptionService, build_confirm_link
from .tokens import mint, verify

__all__ = ["SubscriptionService", "build_confirm_link", "mint", "verify"]
