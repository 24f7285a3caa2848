"""
Configuration Module for the Blog Mailer.

This module provides configuration loading and management for the mailer.
Configuration is loaded from config.yml and supports Docker secrets.

The raw YAML mapping is turned into an immutable ``MailerConfig`` once at
start-up; components receive the pieces they need through their
constructors and never read configuration from the environment themselves.

Usage:
    >>> from config import load_config, MailerConfig
    >>> mailer_config = MailerConfig.from_dict(load_config())
    >>> mailer_config.validate()
    >>> mailer_config.feed.url
    'https://blog.mybb.com/feed.xml'
"""
import os
import yaml
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)

DEFAULT_PORT = 5000
DEFAULT_FEED_URL = "https://blog.mybb.com/feed.xml"
DEFAULT_STATE_FILE = "./data/last_blog_post.txt"
DEFAULT_FEED_TIMEOUT_SECONDS = 5.0
DEFAULT_FROM_NAME = "MyBB Blog"
DEFAULT_MAILGUN_API_BASE = "https://api.mailgun.net"
MAX_PORT = 65535


class ConfigError(Exception):
    """Base class for configuration problems detected at start-up."""

    def __init__(self, parameter_name: str, message: str):
        super().__init__(message)
        self.parameter_name = parameter_name


class RequiredConfigMissingError(ConfigError):
    """Raised when a required configuration parameter is not provided."""

    def __init__(self, parameter_name: str):
        super().__init__(
            parameter_name,
            f"required configuration parameter '{parameter_name}' is missing"
        )


class OutOfRangeError(ConfigError):
    """Raised when a configuration parameter is outside its allowable range."""

    def __init__(self, parameter_name: str):
        super().__init__(
            parameter_name,
            f"configuration parameter '{parameter_name}' has an invalid value"
        )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from config.yml file.

    Args:
        config_path: Path to config.yml file. If None, looks in current directory
                    and parent directories.

    Returns:
        Dictionary containing configuration settings

    Example:
        >>> config = load_config()
        >>> feed_url = config.get("feed", {}).get("url")
    """
    if config_path is None:
        # Try to find config.yml in current directory or parent directories
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            candidate = parent / "config.yml"
            if candidate.exists():
                config_path = str(candidate)
                break

        # If still not found, check the project root (where this file is located)
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            candidate = project_root / "config.yml"
            if candidate.exists():
                config_path = str(candidate)

    if config_path is None:
        logger.warning("config.yml not found, using default configuration")
        return get_default_config()

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
            if not isinstance(config, dict):
                logger.warning("Configuration root must be a mapping, using default configuration")
                return get_default_config()
            logger.info(f"Loaded configuration from {config_path}")
            return config
    except FileNotFoundError:
        logger.warning(f"Configuration file not found: {config_path}")
        return get_default_config()
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration when config.yml is not available.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "server": {
            "port": DEFAULT_PORT,
            "public_url": ""
        },
        "webhook": {
            "secret_file": "/run/secrets/github_webhook_secret"
        },
        "security": {
            "hmac_secret_file": "/run/secrets/hmac_secret",
            "session_secret_file": "/run/secrets/session_secret"
        },
        "feed": {
            "url": DEFAULT_FEED_URL,
            "state_file": DEFAULT_STATE_FILE,
            "timeout_seconds": DEFAULT_FEED_TIMEOUT_SECONDS,
            "seed_state_on_first_run": False
        },
        "mail": {
            "dry_run": False,
            "from_name": DEFAULT_FROM_NAME
        },
        "mailgun": {
            "api_base": DEFAULT_MAILGUN_API_BASE,
            "api_key_file": "/run/secrets/mailgun_api_key",
            "email_validation": False
        }
    }


def read_secret_file(filepath: str) -> Optional[str]:
    """Read a Docker secret from a file.

    Docker secrets are mounted as files in /run/secrets/ directory.
    This function reads the content of the secret file.

    Args:
        filepath: Path to the secret file

    Returns:
        Content of the secret file (stripped of whitespace), or None if file doesn't exist

    Example:
        >>> token = read_secret_file("/run/secrets/mailgun_api_key")
    """
    try:
        with open(filepath, "r") as f:
            return f.read().strip()
    except FileNotFoundError:
        logger.debug(f"Secret file not found: {filepath}")
        return None
    except OSError as e:
        logger.error(f"Error reading secret file {filepath}: {e}")
        return None


def resolve_secret(section: Dict[str, Any], key: str, env_var: str) -> str:
    """Resolve a secret from config value, secret file, or environment variable.

    Priority: inline config value > ``<key>_file`` secret file > environment variable.

    Returns:
        The secret, or an empty string when none of the sources provide one
    """
    value = section.get(key)
    if not value:
        secret_file = section.get(f"{key}_file")
        if secret_file:
            value = read_secret_file(secret_file)
    if not value:
        value = os.environ.get(env_var)
    return str(value) if value else ""


@dataclass(frozen=True)
class FeedConfig:
    """Where to find the blog feed and where to remember the last notified post."""
    url: str = DEFAULT_FEED_URL
    state_file: str = DEFAULT_STATE_FILE
    timeout_seconds: float = DEFAULT_FEED_TIMEOUT_SECONDS
    seed_state_on_first_run: bool = False


@dataclass(frozen=True)
class MailgunConfig:
    """Settings for sending mail and managing the mailing list through Mailgun.

    Attributes:
        domain: Domain configured with Mailgun to send emails from
        api_key: Private API key used for all Mailgun API calls
        mailing_list: Address of the mailing list notifications are sent to
        email_validation: Use Mailgun's address validation API (paid accounts only)
        api_base: Mailgun API base URL (the EU region uses https://api.eu.mailgun.net)
    """
    domain: str = ""
    api_key: str = ""
    mailing_list: str = ""
    email_validation: bool = False
    api_base: str = DEFAULT_MAILGUN_API_BASE


@dataclass(frozen=True)
class MailerConfig:
    """Application configuration, built once at start-up.

    Attributes:
        port: TCP port to listen for HTTP requests on
        public_url: Externally visible base URL used in confirmation links;
                    empty to derive it from the incoming request
        webhook_secret: Secret configured on the GitHub webhook
        hmac_secret: Key used to sign confirmation tokens
        session_secret: Flask session key protecting flashed messages
        from_name: Display name used on outgoing email
        dry_run: Record outgoing mail in memory instead of calling Mailgun
    """
    port: int = DEFAULT_PORT
    public_url: str = ""
    webhook_secret: str = ""
    hmac_secret: str = ""
    session_secret: str = ""
    from_name: str = DEFAULT_FROM_NAME
    dry_run: bool = False
    feed: FeedConfig = field(default_factory=FeedConfig)
    mailgun: MailgunConfig = field(default_factory=MailgunConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "MailerConfig":
        """Create a MailerConfig from the mapping returned by ``load_config``.

        Secrets are resolved from inline values, Docker secret files and
        environment variables (``MAILER_WEBHOOK_SECRET``, ``MAILER_HMAC_SECRET``,
        ``MAILER_SESSION_SECRET``, ``MAILGUN_API_KEY``).
        """
        server_config = config.get("server") or {}
        webhook_config = config.get("webhook") or {}
        security_config = config.get("security") or {}
        feed_config = config.get("feed") or {}
        mail_config = config.get("mail") or {}
        mailgun_config = config.get("mailgun") or {}

        try:
            port = int(server_config.get("port", DEFAULT_PORT))
        except (TypeError, ValueError):
            raise OutOfRangeError("server.port")

        try:
            timeout = float(feed_config.get("timeout_seconds", DEFAULT_FEED_TIMEOUT_SECONDS))
        except (TypeError, ValueError):
            raise OutOfRangeError("feed.timeout_seconds")

        return cls(
            port=port,
            public_url=(server_config.get("public_url") or "").rstrip("/"),
            webhook_secret=resolve_secret(webhook_config, "secret", "MAILER_WEBHOOK_SECRET"),
            hmac_secret=resolve_secret(security_config, "hmac_secret", "MAILER_HMAC_SECRET"),
            session_secret=resolve_secret(security_config, "session_secret", "MAILER_SESSION_SECRET"),
            from_name=mail_config.get("from_name", DEFAULT_FROM_NAME) or "",
            dry_run=bool(mail_config.get("dry_run", False)),
            feed=FeedConfig(
                url=feed_config.get("url") or DEFAULT_FEED_URL,
                state_file=feed_config.get("state_file") or DEFAULT_STATE_FILE,
                timeout_seconds=timeout,
                seed_state_on_first_run=bool(feed_config.get("seed_state_on_first_run", False)),
            ),
            mailgun=MailgunConfig(
                domain=mailgun_config.get("domain") or "",
                api_key=resolve_secret(mailgun_config, "api_key", "MAILGUN_API_KEY"),
                mailing_list=mailgun_config.get("mailing_list") or "",
                email_validation=bool(mailgun_config.get("email_validation", False)),
                api_base=(mailgun_config.get("api_base") or DEFAULT_MAILGUN_API_BASE).rstrip("/"),
            ),
        )

    def validate(self) -> None:
        """Check that the configuration is usable.

        Raises:
            OutOfRangeError: If the port or feed timeout is outside its range
            RequiredConfigMissingError: If a required secret or Mailgun setting is missing
        """
        if self.port < 1 or self.port > MAX_PORT:
            raise OutOfRangeError("server.port")

        if self.feed.timeout_seconds <= 0:
            raise OutOfRangeError("feed.timeout_seconds")

        if not self.webhook_secret:
            raise RequiredConfigMissingError("webhook.secret")

        if not self.hmac_secret:
            raise RequiredConfigMissingError("security.hmac_secret")

        if not self.from_name:
            raise RequiredConfigMissingError("mail.from_name")

        # Dry-run mode never talks to Mailgun
        if self.dry_run:
            return

        if not self.mailgun.domain:
            raise RequiredConfigMissingError("mailgun.domain")

        if not self.mailgun.api_key:
            raise RequiredConfigMissingError("mailgun.api_key")

        if not self.mailgun.mailing_list:
            raise RequiredConfigMissingError("mailgun.mailing_list")
