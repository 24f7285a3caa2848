"""Server Package - Flask application and Gunicorn configuration.

This package provides the HTTP surface of the blog mailer: the GitHub
webhook receiver and the mailing list sign-up pages.
"""
from .app import create_app, create_mail_handler, validate_page_build_event, PageBuildValidationError
from .signature import WebhookSignatureError, compute_signature, verify_github_signature

__all__ = [
    "PageBuildValidationError",
    "WebhookSignatureError",
    "compute_signature",
    "create_app",
    "create_mail_handler",
    "validate_page_build_event",
    "verify_github_signature",
]
