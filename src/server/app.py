"""
Blog Mailer HTTP Surface - Flask Application.

This module implements the Flask application that receives GitHub Pages
build webhooks and serves the mailing list sign-up pages.

Endpoints:
    POST /webhook   GitHub webhook receiver (ping and page_build events)
    GET  /          Sign-up form
    POST /signup    Sign-up form submission, sends the confirmation email
    GET  /confirm   Confirmation link target, subscribes the address
    GET  /health    Health check for monitoring and container orchestration

Webhook Handling:
    1. Verify the X-Hub-Signature-256 / X-Hub-Signature HMAC (400 on failure)
    2. Parse the JSON body, either raw or form-encoded as ``payload`` (400 on failure)
    3. Dispatch on the X-GitHub-Event header:
        * ping        200, nothing else to do
        * page_build  validate against the page_build schema (400 on failure)
                      and hand the build status to the BuildNotifier
        * anything    501 Not Implemented
    4. Return JSON with "status" and "message"

Sign-up Handling:
    Validation and delivery failures are flashed back to the form with a
    category naming the failed field (name, email, send) and the visitor is
    redirected to /. Flashed messages travel in Flask's signed session
    cookie, so ``security.session_secret`` should be configured.

Logging Strategy:
    - INFO: sign-ups, confirmations, build events
    - WARNING: unknown events, rejected confirmation links
    - ERROR: signature failures, malformed payloads, unexpected exceptions
"""
import json
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from flask import Flask, current_app, flash, jsonify, redirect, render_template, request, url_for
from jsonschema import Draft7Validator, ValidationError as SchemaValidationError

from config import MailerConfig
from feed import FeedStateStore
from mail import InMemoryMailHandler, MailgunHandler, MailHandler
from mailer.errors import AuthenticationError, DependencyError, ValidationError
from notifications import BuildNotifier
from schema import PAGE_BUILD_EVENT_SCHEMA
from subscriptions import SubscriptionService
from templating import TEMPLATE_DIR, TEMPLATE_FILTERS, create_environment
from .signature import WebhookSignatureError, verify_github_signature

# Logging is configured in mailer.py main() - this module uses the configured logger
logger = logging.getLogger(__name__)

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"

# Messages shown on the sign-up form, keyed by error message
SIGN_UP_MESSAGES = {
    "name required": "Please enter your name.",
    "email required": "Please enter your email address.",
    "invalid email": "That email address doesn't look valid.",
}
SIGN_UP_FAILURE_MESSAGE = "We couldn't send your confirmation email, please try again later."
SIGN_UP_CHECK_FAILURE_MESSAGE = "We couldn't check your email address right now, please try again later."

# Emails kept in memory by a dry-run mail handler
DRY_RUN_HISTORY = 100

validator = Draft7Validator(PAGE_BUILD_EVENT_SCHEMA)


class PageBuildValidationError(Exception):
    """Raised when a page_build payload fails schema validation."""


def validate_page_build_event(payload: Dict[str, Any]) -> None:
    """Validate a GitHub page_build payload against the JSON schema.

    Raises:
        PageBuildValidationError: If validation fails, naming the failing field
    """
    try:
        validator.validate(payload)
    except SchemaValidationError as e:
        path_str = ".".join(str(p) for p in e.path)
        raise PageBuildValidationError(f"Schema validation failed: {e.message} at path: {path_str}") from e


def parse_webhook_payload(body: bytes, content_type: Optional[str]) -> Dict[str, Any]:
    """Decode a webhook body sent as application/json or form-encoded ``payload``.

    Raises:
        ValueError: If the body is not a JSON object
    """
    if content_type == "application/x-www-form-urlencoded":
        form = parse_qs(body.decode("utf-8"))
        values = form.get("payload")
        if not values:
            raise ValueError("form-encoded webhook has no payload field")
        text = values[0]
    else:
        text = body.decode("utf-8")

    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("webhook payload must be a JSON object")
    return payload


def create_mail_handler(config: MailerConfig) -> MailHandler:
    """Create the mail handler selected by the configuration."""
    if config.dry_run:
        logger.warning("Mail dry run enabled: emails are logged, not sent")
        return InMemoryMailHandler(max_recorded=DRY_RUN_HISTORY)
    return MailgunHandler.from_config(config.mailgun, config.from_name)


def create_app(config: MailerConfig, mail_handler: Optional[MailHandler] = None,
               build_notifier: Optional[BuildNotifier] = None,
               subscription_service: Optional[SubscriptionService] = None) -> Flask:
    """Factory function to create and configure the Flask application.

    Dependencies are injected so tests can pass an in-memory mail handler
    or pre-built services.

    Args:
        config: Validated application configuration
        mail_handler: Mail provider (created from config if None)
        build_notifier: Notification workflow (created from config if None)
        subscription_service: Subscription workflow (created from config if None)

    Returns:
        Configured Flask application instance

    Example:
        >>> app = create_app(config, mail_handler=InMemoryMailHandler())
        >>> client = app.test_client()
    """
    app = Flask(__name__, template_folder=str(TEMPLATE_DIR))

    if config.session_secret:
        app.secret_key = config.session_secret
    else:
        # Flashed messages still work, but sessions do not survive a restart
        logger.warning("No session secret configured, generating a random one")
        app.secret_key = secrets.token_hex(32)

    app.jinja_env.filters.update(TEMPLATE_FILTERS)

    if mail_handler is None:
        mail_handler = create_mail_handler(config)

    template_env = create_environment()

    if build_notifier is None:
        build_notifier = BuildNotifier(
            mail_handler=mail_handler,
            state_store=FeedStateStore(config.feed.state_file, config.feed.seed_state_on_first_run),
            feed_url=config.feed.url,
            feed_timeout=config.feed.timeout_seconds,
            template_env=template_env,
        )

    if subscription_service is None:
        subscription_service = SubscriptionService(
            mail_handler=mail_handler,
            hmac_secret=config.hmac_secret,
            from_name=config.from_name,
            template_env=template_env,
        )

    app.config["MAILER_CONFIG"] = config
    app.config["MAIL_HANDLER"] = mail_handler
    app.config["BUILD_NOTIFIER"] = build_notifier
    app.config["SUBSCRIPTION_SERVICE"] = subscription_service

    @app.context_processor
    def inject_from_name():
        return {"from_name": config.from_name}

    @app.route("/webhook", methods=["POST"])
    def receive_webhook():
        """Webhook endpoint receiving GitHub repository events.

        Success Response (200):
            {"status": "success", "message": "...", "build_status": "built", "notified_post": "https://..."}

        Error Responses:
            400 signature mismatch, undecodable body or invalid page_build payload
            501 event type other than ping or page_build
            500 unexpected error while handling the event
        """
        notifier = current_app.config["BUILD_NOTIFIER"]
        mailer_config = current_app.config["MAILER_CONFIG"]
        delivery = request.headers.get(DELIVERY_HEADER, "unknown")

        try:
            body = verify_github_signature(request.get_data(), request.headers, mailer_config.webhook_secret)
        except WebhookSignatureError as e:
            error_message = f"error validating request body: {e}"
            logger.error(f"{error_message} (delivery {delivery})")
            return jsonify({"status": "error", "message": error_message}), 400

        try:
            payload = parse_webhook_payload(body, request.mimetype)
        except (ValueError, UnicodeDecodeError) as e:
            error_message = f"could not parse webhook: {e}"
            logger.error(f"{error_message} (delivery {delivery})")
            return jsonify({"status": "error", "message": error_message}), 400

        event_type = request.headers.get(EVENT_HEADER, "")

        if event_type == "ping":
            logger.debug(f"Received ping event (delivery {delivery})")
            return jsonify({"status": "success", "message": "pong"}), 200

        if event_type != "page_build":
            warning_message = f"unknown event type: {event_type}"
            logger.warning(f"{warning_message} (delivery {delivery})")
            return jsonify({"status": "error", "message": warning_message}), 501

        try:
            validate_page_build_event(payload)
        except PageBuildValidationError as e:
            logger.error(f"Page build payload validation failed: {e}")
            return jsonify({
                "status": "error",
                "message": "Invalid page build payload",
                "details": str(e)
            }), 400

        build = payload["build"]
        build_status = build["status"]
        build_error = build.get("error") or {}
        logger.info(f"Received page build event with status '{build_status}' (delivery {delivery})")
        logger.debug(f"Page build payload: {json.dumps(payload, indent=2)}")

        try:
            notified = notifier.on_build_completed(build_status, build_error.get("message"))
        except Exception as e:
            logger.error(f"Unexpected error handling page build event: {e}", exc_info=True)
            return jsonify({"status": "error", "message": "Internal server error"}), 500

        return jsonify({
            "status": "success",
            "message": "Page build event processed",
            "build_status": build_status,
            "notified_post": notified.url if notified else None
        }), 200

    @app.route("/", methods=["GET"])
    def index():
        """Show the sign-up form, including any flashed errors."""
        return render_template("index.html")

    @app.route("/signup", methods=["POST"])
    def sign_up():
        """Handle the sign-up form and send the confirmation email."""
        service = current_app.config["SUBSCRIPTION_SERVICE"]
        mailer_config = current_app.config["MAILER_CONFIG"]

        email_address = request.form.get("email", "")
        display_name = request.form.get("name", "")

        if mailer_config.public_url:
            confirm_url = f"{mailer_config.public_url}{url_for('confirm')}"
        else:
            confirm_url = url_for("confirm", _external=True)

        try:
            service.sign_up(email_address, display_name, confirm_url)
        except ValidationError as e:
            flash(SIGN_UP_MESSAGES.get(e.message, e.message), e.field or "error")
            return redirect(url_for("index"))
        except DependencyError as e:
            # The address check itself failed before anything was sent
            if e.field == "email":
                flash(SIGN_UP_CHECK_FAILURE_MESSAGE, "email")
            else:
                flash(SIGN_UP_FAILURE_MESSAGE, e.field or "send")
            return redirect(url_for("index"))

        return render_template(
            "signup_sent.html",
            name=display_name.strip(),
            email_address=email_address.strip()
        )

    @app.route("/confirm", methods=["GET"])
    def confirm():
        """Verify a confirmation link and subscribe the address."""
        service = current_app.config["SUBSCRIPTION_SERVICE"]

        email_address = request.args.get("emailAddress")
        display_name = request.args.get("name")
        token = request.args.get("token")

        try:
            service.confirm_sign_up(email_address, display_name, token)
        except ValidationError:
            return render_template(
                "confirm_failed.html",
                message="This confirmation link is incomplete."
            ), 400
        except AuthenticationError:
            return render_template(
                "confirm_failed.html",
                message="This confirmation link is not valid."
            ), 400
        except DependencyError:
            return render_template(
                "confirm_failed.html",
                message="We couldn't add you to the mailing list right now, please try the link again later."
            ), 500

        return render_template("subscribed.html", name=display_name, email_address=email_address)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint for monitoring and load balancers.

        Returns:
            tuple: (JSON response, 200 status code)

        Example:
            $ curl http://localhost:5000/health
            {"status": "healthy"}
        """
        return jsonify({"status": "healthy"}), 200

    return app
