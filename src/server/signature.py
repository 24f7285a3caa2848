"""
GitHub webhook signature verification.

GitHub signs every webhook delivery with the secret configured on the
webhook: ``X-Hub-Signature-256: sha256=<hex HMAC>`` and, for older
integrations, ``X-Hub-Signature: sha1=<hex HMAC>``. The SHA-256 header is
preferred when both are present.

Reference:
    https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries
"""
import hashlib
import hmac
from typing import Callable, Mapping


SIGNATURE_HEADERS = (
    ("X-Hub-Signature-256", "sha256", hashlib.sha256),
    ("X-Hub-Signature", "sha1", hashlib.sha1),
)


class WebhookSignatureError(Exception):
    """Raised when a webhook delivery is missing a signature or it does not match."""


def compute_signature(body: bytes, secret: str, digest: Callable = hashlib.sha256) -> str:
    """Compute the hexadecimal HMAC GitHub sends for a payload."""
    return hmac.new(secret.encode("utf-8"), body, digest).hexdigest()


def verify_github_signature(body: bytes, headers: Mapping[str, str], secret: str) -> bytes:
    """Check the signature of a webhook delivery.

    Args:
        body: Raw request body
        headers: Request headers
        secret: Secret configured on the GitHub webhook

    Returns:
        The validated payload bytes

    Raises:
        WebhookSignatureError: If no secret is configured, no signature header
            is present, or the signature does not match
    """
    if not secret:
        raise WebhookSignatureError("no webhook secret configured")

    for header, prefix, digest in SIGNATURE_HEADERS:
        signature = headers.get(header)
        if not signature:
            continue

        algorithm, _, received = signature.partition("=")
        if algorithm != prefix or not received:
            raise WebhookSignatureError(f"malformed {header} header")

        expected = compute_signature(body, secret, digest)
        if not hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8")):
            raise WebhookSignatureError("payload signature check failed")

        return body

    raise WebhookSignatureError("missing signature")
