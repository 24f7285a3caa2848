"""
Confirmation tokens for mailing list sign-ups.

A token is ``urlsafe_b64encode(HMAC-SHA256(secret, email + "_" + name))``.
Nothing is stored on the server: verification re-derives the token from the
address and name in the confirmation link and compares it in constant time.

Known weaknesses, kept as-is:
    - Tokens never expire and are not single-use; a confirmation link stays
      valid for as long as the secret does and can be replayed.
    - Email and name are joined with a plain ``_``, so different
      email/name splits of the same string produce the same token.
"""
import base64
import hashlib
import hmac


SEPARATOR = "_"
DIGEST = hashlib.sha256


def _signed_message(email_address: str, display_name: str) -> bytes:
    return f"{email_address}{SEPARATOR}{display_name}".encode("utf-8")


def mint(email_address: str, display_name: str, secret: str) -> str:
    """Derive the confirmation token for an email address and display name.

    Args:
        email_address: Address being subscribed
        display_name: Name the subscriber signed up with
        secret: HMAC key (``security.hmac_secret``)

    Returns:
        URL-safe base64 encoded HMAC, padding included

    Example:
        >>> token = mint("ann@example.com", "Ann", "s3cret")
        >>> verify("ann@example.com", "Ann", "s3cret", token)
        True
    """
    mac = hmac.new(secret.encode("utf-8"), _signed_message(email_address, display_name), DIGEST)
    return base64.urlsafe_b64encode(mac.digest()).decode("ascii")


def verify(email_address: str, display_name: str, secret: str, supplied_token: str) -> bool:
    """Check a token from a confirmation link.

    The comparison is constant-time to avoid leaking how much of the
    token matched.

    Returns:
        True if ``supplied_token`` is the token minted for these inputs
    """
    if not isinstance(supplied_token, str):
        return False

    expected = mint(email_address, display_name, secret)
    return hmac.compare_digest(expected.encode("ascii"), supplied_token.encode("utf-8"))
