"""Blog Mailer Package.

This package provides the entry point of the blog mailer, which emails a
blog's Mailgun mailing list whenever a GitHub Pages build publishes a new
post, and the error taxonomy shared by its workflows.

Exported Functions:
    main: Entry point for the blog-mailer console command
"""
from .mailer import main

__all__ = ["main"]
