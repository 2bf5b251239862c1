"""Slack webhook provider: signature check and slash command normalization."""

import time
from datetime import datetime, timezone
from typing import Mapping, Optional
from urllib.parse import parse_qs

from pydantic import ValidationError

from hub.models.envelope import CommandEnvelope, Provider
from hub.models.slack_event import SlackCommandData
from hub.services.webhook_verifier import get_header, verify_slack_signature
from hub.utils.errors import PayloadValidationError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

SIGNATURE_HEADER = "X-Slack-Signature"
TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"


class SlackWebhookProvider:
    """
    Slack webhook provider implementation.

    Slash commands arrive URL-encoded and must be acknowledged within three
    seconds, so dispatch is deferred to a background task.
    """
    name = Provider.SLACK
    defer_dispatch = True

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str], secret: str) -> bool:
        signature = get_header(headers, SIGNATURE_HEADER)
        timestamp = get_header(headers, TIMESTAMP_HEADER)
        if not signature or not timestamp:
            logger.warning("Missing Slack signature or timestamp headers")
            return False
        return verify_slack_signature(secret, timestamp, raw_body, signature)

    def delivery_id(self, headers: Mapping[str, str]) -> Optional[str]:
        return None

    def parse_payload(self, raw_body: bytes, headers: Mapping[str, str]) -> CommandEnvelope:
        """Parse URL-encoded slash command form data."""
        try:
            form = parse_qs(raw_body.decode("utf-8"), keep_blank_values=True)
        except UnicodeDecodeError as e:
            raise PayloadValidationError(f"Invalid Slack payload: {e}") from e

        try:
            data = SlackCommandData(**{key: values[0] for key, values in form.items() if values})
        except ValidationError as e:
            raise PayloadValidationError(f"Invalid Slack payload fields: {e.error_count()} error(s)") from e

        return CommandEnvelope(
            id=f"slack-{data.trigger_id or int(time.time() * 1000)}",
            timestamp=datetime.now(timezone.utc).isoformat(),
            provider=Provider.SLACK,
            source="slack",
            event=f"slash_command:{data.command}" if data.command else "unknown",
            data=data,
        )

    def get_event_type(self, envelope: CommandEnvelope) -> str:
        if envelope.data.command:
            return f"slash_command:{envelope.data.command}"
        return "unknown"

    def get_event_description(self, envelope: CommandEnvelope) -> str:
        data: SlackCommandData = envelope.data
        if data.command:
            return f"{data.user_name or 'Unknown user'} used {data.command}: {data.text or '(no text)'}"
        return "Slack webhook received"

    def validate_payload(self, envelope: CommandEnvelope) -> bool:
        data: SlackCommandData = envelope.data
        if data.command:
            return bool(data.team_id and data.user_id)
        return True

    def acknowledgment(self, envelope: CommandEnvelope) -> dict:
        """Immediate ephemeral reply sent before the sandbox run starts."""
        data: SlackCommandData = envelope.data
        return {
            "response_type": "ephemeral",
            "text": f"⏳ Received `{data.command}`. Working on it...",
        }


slack_webhook_provider = SlackWebhookProvider()
