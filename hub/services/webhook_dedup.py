"""Webhook delivery deduplication using the Supabase webhook_events table."""

import hashlib
import logging
from hub.config import HubConfig
from hub.models.envelope import CommandEnvelope
from hub.services.supabase_client import check_webhook_event_exists, insert_webhook_event

logger = logging.getLogger(__name__)


def generate_event_id(envelope: CommandEnvelope, raw_body: bytes) -> str:
    """
    Generate deterministic event ID for deduplication.

    Uses the provider-derived envelope id (GitHub delivery id, Slack
    trigger_id) when one exists, otherwise hashes the raw body.
    """
    provider_prefix = f"{envelope.provider.value}-"
    suffix = envelope.id[len(provider_prefix):] if envelope.id.startswith(provider_prefix) else ""

    # Time-derived ids are all digits and would never collide on a redelivery
    if suffix and not suffix.isdigit():
        return envelope.id

    return f"{envelope.provider.value}-sha1-{hashlib.sha1(raw_body).hexdigest()}"


async def is_duplicate_event(event_id: str, config: HubConfig) -> bool:
    """
    Check if an event is a duplicate.

    Returns True if event already processed, False otherwise. Storage errors
    never block processing.
    """
    try:
        exists = await check_webhook_event_exists(event_id, config)

        if exists:
            logger.info(f"Duplicate webhook delivery detected: {event_id}")
            return True

        try:
            await insert_webhook_event(event_id, event_id.split("-", 1)[0], config)
        except Exception as e:
            logger.warning(f"Failed to record webhook event (non-fatal): {e}")

        return False
    except Exception as e:
        logger.error(f"Error checking duplicate event: {e}")
        return False
