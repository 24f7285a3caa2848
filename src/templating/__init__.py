"""
Templating Module.

Renders the email bodies and web pages of the mailer from the Jinja2
templates stored next to this module (src/templating/templates/).

Two filters are available to every template:
    to_plain_text: removes all HTML tags (for plain-text email bodies)
    strip_unsafe_tags: keeps only a safe allow-list of formatting tags
        (for post summaries embedded in HTML email)

Usage:
    >>> text, html = render_post_notification(entry)
    >>> text, html = render_subscription_confirmation("Ann", link, "MyBB Blog")
"""
import html
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import bleach
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Tags allowed in user-generated HTML such as feed summaries
SAFE_TAGS = frozenset({
    "a", "abbr", "b", "blockquote", "br", "code", "em", "h1", "h2", "h3", "h4",
    "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "strong", "ul",
})
SAFE_ATTRIBUTES = {
    "a": ["href", "title"],
    "abbr": ["title"],
    "img": ["src", "alt", "title"],
}
SAFE_PROTOCOLS = frozenset({"http", "https", "mailto"})


def to_plain_text(value: Optional[str]) -> str:
    """Remove every HTML tag from the given string."""
    if not value:
        return ""
    return html.unescape(bleach.clean(value, tags=set(), attributes={}, strip=True)).strip()


def strip_unsafe_tags(value: Optional[str]) -> Markup:
    """Remove any HTML tags outside of the safe formatting allow-list."""
    if not value:
        return Markup("")
    return Markup(bleach.clean(
        value,
        tags=SAFE_TAGS,
        attributes=SAFE_ATTRIBUTES,
        protocols=SAFE_PROTOCOLS,
        strip=True,
    ))


TEMPLATE_FILTERS = {
    "to_plain_text": to_plain_text,
    "strip_unsafe_tags": strip_unsafe_tags,
}


def create_environment(template_dir: Optional[Path] = None) -> Environment:
    """Create the Jinja2 environment used to render email bodies.

    HTML templates are autoescaped, plain-text templates are not.
    """
    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        keep_trailing_newline=True,
    )
    env.filters.update(TEMPLATE_FILTERS)
    return env


_environment: Optional[Environment] = None


def get_environment() -> Environment:
    """Return the shared email template environment, creating it on first use."""
    global _environment
    if _environment is None:
        _environment = create_environment()
    return _environment


def render_pair(name: str, context: Dict[str, Any],
                env: Optional[Environment] = None) -> Tuple[str, str]:
    """Render the ``emails/<name>.txt`` and ``emails/<name>.html`` templates.

    Returns:
        Tuple of (plain text body, HTML body)

    Raises:
        jinja2.TemplateError: If a template is missing or fails to render
    """
    env = env or get_environment()
    text_content = env.get_template(f"emails/{name}.txt").render(**context)
    html_content = env.get_template(f"emails/{name}.html").render(**context)
    return text_content, html_content


def render_post_notification(entry: Any, env: Optional[Environment] = None) -> Tuple[str, str]:
    """Render the new blog post notification sent to the mailing list."""
    return render_pair("blog_post_notification", {"post": entry}, env)


def render_subscription_confirmation(display_name: str, confirm_link: str, from_name: str,
                                     env: Optional[Environment] = None) -> Tuple[str, str]:
    """Render the email asking a new subscriber to confirm their address."""
    return render_pair(
        "subscription_confirmation",
        {"name": display_name, "confirm_link": confirm_link, "from_name": from_name},
        env,
    )
