"""Supabase access for the webhook delivery ledger."""

import logging
from typing import Optional

from supabase import Client, create_client
from supabase.client import ClientOptions

from hub.config import HubConfig
from hub.utils.errors import SupabaseError

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS_TABLE = "webhook_events"

_client: Optional[Client] = None


def get_supabase_client(config: HubConfig) -> Client:
    """Process-wide client built from the service role credentials."""
    global _client

    if _client is None:
        if not config.supabase_url or not config.supabase_service_role_key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for webhook dedup")

        # Server-side key; no user session to persist or refresh
        options = ClientOptions(auto_refresh_token=False, persist_session=False)
        _client = create_client(config.supabase_url, config.supabase_service_role_key, options)
        logger.info("Supabase client initialized", extra={"url": config.supabase_url})

    return _client


def reset_supabase_client() -> None:
    global _client
    _client = None


class SupabaseClient:
    """Async context manager yielding the shared client and logging failed operations."""

    def __init__(self, config: HubConfig):
        self.config = config

    async def __aenter__(self) -> Client:
        return get_supabase_client(self.config)

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "error_type": exc_type.__name__}
            )
        return False


async def check_webhook_event_exists(event_id: str, config: HubConfig) -> bool:
    """True when this delivery id was already recorded."""
    async with SupabaseClient(config) as client:
        try:
            result = (
                client.table(WEBHOOK_EVENTS_TABLE)
                .select("event_id")
                .eq("event_id", event_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseError(f"Failed to check webhook event {event_id}: {e}") from e
        return bool(result.data)


async def insert_webhook_event(event_id: str, provider: str, config: HubConfig) -> None:
    """Record a delivery; a concurrent insert of the same id is not an error."""
    async with SupabaseClient(config) as client:
        try:
            client.table(WEBHOOK_EVENTS_TABLE).insert({"event_id": event_id, "provider": provider}).execute()
        except Exception as e:
            if "duplicate key" in str(e).lower():
                logger.debug(f"Webhook event {event_id} recorded concurrently")
                return
            raise SupabaseError(f"Failed to record webhook event {event_id}: {e}") from e
