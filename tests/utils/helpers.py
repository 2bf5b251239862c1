"""Test helper functions."""

import json
import hmac
import hashlib
import time
from typing import Dict, Any, Optional
from urllib.parse import urlencode

TEST_GITHUB_SECRET = "test-github-secret"
TEST_SLACK_SECRET = "test-slack-secret"


def generate_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Generate a valid Slack signature for testing."""
    sig_basestring = b"v0:" + timestamp.encode("utf-8") + b":" + body
    signature = hmac.new(
        secret.encode('utf-8'),
        sig_basestring,
        hashlib.sha256
    ).hexdigest()
    return f"v0={signature}"


def generate_github_signature(secret: str, body: bytes) -> str:
    """Generate a valid X-Hub-Signature-256 value for testing."""
    digest = hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def create_slash_command_body(command: str = "/plan", text: str = "Add dark mode", **overrides: str) -> bytes:
    """URL-encoded form body Slack posts for a slash command."""
    fields = {
        "token": "verification-token",
        "team_id": "T123456",
        "team_domain": "acme",
        "channel_id": "C123456",
        "channel_name": "general",
        "user_id": "U123456",
        "user_name": "alice",
        "command": command,
        "text": text,
        "response_url": "https://hooks.slack.com/commands/T123456/1/abc",
        "trigger_id": "13345224609.738474920.8088930838d88f008e0",
        "api_app_id": "A123456",
    }
    fields.update(overrides)
    return urlencode(fields).encode("utf-8")


def slack_headers(body: bytes, secret: str = TEST_SLACK_SECRET, timestamp: Optional[str] = None) -> Dict[str, str]:
    """Signed headers for a Slack request."""
    if timestamp is None:
        timestamp = str(int(time.time()))
    return {
        "Content-Type": "application/x-www-form-urlencoded",
        "X-Slack-Request-Timestamp": timestamp,
        "X-Slack-Signature": generate_slack_signature(secret, timestamp, body),
    }


def github_headers(
    body: bytes,
    event: str = "issue_comment",
    delivery: str = "72d3162e-cc78-11e3-81ab-4c9367dc0958",
    secret: str = TEST_GITHUB_SECRET
) -> Dict[str, str]:
    """Signed headers for a GitHub delivery."""
    return {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": delivery,
        "X-Hub-Signature-256": generate_github_signature(secret, body),
    }


def encode_json(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")
