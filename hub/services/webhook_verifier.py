"""Webhook signature verification for GitHub and Slack."""

import hmac
import hashlib
import time
from typing import Mapping, Optional

from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

SLACK_REPLAY_WINDOW_SECONDS = 60 * 5


def get_header(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup."""
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    return (value or "").strip()


def verify_github_signature(secret: str, raw_body: bytes, signature: str) -> bool:
    """
    Verify GitHub's X-Hub-Signature-256 header.

    The digest is an HMAC-SHA256 of the raw request body, hex encoded and
    prefixed with "sha256=".
    """
    if not secret or not signature:
        return False

    if not signature.startswith("sha256="):
        logger.warning("GitHub signature has unexpected format")
        return False

    expected = "sha256=" + hmac.new(
        secret.encode("utf-8"),
        raw_body,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def verify_slack_signature(
    secret: str,
    timestamp: str,
    raw_body: bytes,
    signature: str,
    now: Optional[float] = None
) -> bool:
    """
    Verify Slack request signature using HMAC-SHA256.

    Requests whose timestamp is more than five minutes away from the current
    time are rejected to prevent replay attacks.
    """
    if not secret or not timestamp or not signature:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False

    current_time = int(now if now is not None else time.time())
    if abs(current_time - ts) > SLACK_REPLAY_WINDOW_SECONDS:
        logger.warning("Slack request timestamp too old or too far in future")
        return False

    sig_basestring = b"v0:" + timestamp.encode("utf-8") + b":" + raw_body

    expected = "v0=" + hmac.new(
        secret.encode("utf-8"),
        sig_basestring,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
