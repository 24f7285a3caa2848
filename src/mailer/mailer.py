"""
Blog Mailer Core Module.

This module provides the main entry point for the blog mailer, which:
1. Receives GitHub Pages build webhooks (POST /webhook)
2. On a successful build, checks the blog feed for a post newer than the
   last one notified and emails it to the Mailgun mailing list
3. Serves a sign-up form (GET /, POST /signup) that confirms new
   subscribers with a signed link (GET /confirm)

The entry point embeds Gunicorn to run the Flask application.

Functions:
    main() -> None:
        Entry point for the console script. Loads config.yml, configures
        logging, and starts Gunicorn with the Flask app.

Example:
    Run via console script:
        $ poetry run blog-mailer
        Starting Gunicorn for the blog mailer
        Gunicorn server is ready to accept connections
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

logger = logging.getLogger(__name__)

LOG_FILE = "blog_mailer.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = False, log_file: str = LOG_FILE) -> None:
    """Configure the root logger with a rotating log file and stdout.

    Args:
        debug: Log at DEBUG instead of INFO
        log_file: Path of the rotating log file (10MB, 3 backups)
    """
    log_level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear any existing handlers to avoid duplicates (e.g., from gunicorn)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    log_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=3
    )
    log_handler.setLevel(log_level)
    log_handler.setFormatter(formatter)
    root_logger.addHandler(log_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def main(debug: bool = False) -> None:
    """Main entry point for the blog-mailer console command.

    Args:
        debug: Enable debug logging and disable the worker timeout.
               Can be set via --debug flag or MAILER_DEBUG environment variable.

    Architecture:
        Docker -> poetry run blog-mailer -> mailer.py main() -> Gunicorn -> Flask app

    Exits with status 1 if the configuration is incomplete. Failing to
    bind the listening port is fatal as well (raised by Gunicorn).
    """
    from gunicorn.app.base import BaseApplication
    from config import ConfigError, MailerConfig, load_config
    from server import create_app

    if not debug:
        debug = os.environ.get("MAILER_DEBUG", "").lower() in ("true", "1", "yes")
        if len(sys.argv) > 1 and "--debug" in sys.argv:
            debug = True

    configure_logging(debug)

    if debug:
        logger.info("Debug mode enabled: verbose logging and worker timeout disabled")

    logger.info("Loading configuration from config.yml")
    try:
        mailer_config = MailerConfig.from_dict(load_config())
        mailer_config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logger.info(f"Checking {mailer_config.feed.url} for new posts after successful page builds")
    logger.info(f"Feed state stored in {mailer_config.feed.state_file}")

    app = create_app(mailer_config)

    config_path = os.path.join(os.path.dirname(__file__), "..", "server", "gunicorn_config.py")

    class StandaloneApplication(BaseApplication):
        """Custom Gunicorn application for embedding within the blog-mailer entry point."""

        def __init__(self, app, options=None):
            self.options = options or {}
            self.application = app
            super().__init__()

        def load_config(self):
            config_file = self.options.get("config")
            if config_file:
                self.cfg.set("config", config_file)
                # Execute the config file to load settings
                with open(config_file, "r") as f:
                    config_code = f.read()
                config_namespace = {}
                exec(config_code, config_namespace)
                for key, value in config_namespace.items():
                    if key in self.cfg.settings and value is not None:
                        self.cfg.set(key.lower(), value)

            self.cfg.set("bind", f"0.0.0.0:{self.options['port']}")

            if self.options.get("debug"):
                self.cfg.set("timeout", 0)
                self.cfg.set("loglevel", "debug")

        def load(self):
            return self.application

    options = {
        "config": config_path,
        "debug": debug,
        "port": mailer_config.port,
    }
    StandaloneApplication(app, options).run()


# Allow running as a script for development/testing
if __name__ == "__main__":
    main()
