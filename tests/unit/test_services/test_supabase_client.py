"""Tests for the Supabase webhook delivery ledger."""

import pytest
from unittest.mock import MagicMock, patch

from hub.services import supabase_client
from hub.services.supabase_client import (
    check_webhook_event_exists,
    get_supabase_client,
    insert_webhook_event,
    reset_supabase_client,
)
from hub.utils.errors import SupabaseError


@pytest.fixture
def supabase_config(hub_config):
    return hub_config.model_copy(update={
        "supabase_url": "https://example.supabase.co",
        "supabase_service_role_key": "service-role-key",
    })


@pytest.fixture
def fake_client():
    client = MagicMock()
    with patch.object(supabase_client, "_client", client):
        yield client


@pytest.fixture(autouse=True)
def clean_singleton():
    reset_supabase_client()
    yield
    reset_supabase_client()


@pytest.mark.unit
def test_get_client_requires_credentials(hub_config):
    with pytest.raises(SupabaseError):
        get_supabase_client(hub_config)


@pytest.mark.unit
def test_get_client_is_cached(supabase_config):
    with patch("hub.services.supabase_client.create_client", return_value=MagicMock()) as create:
        first = get_supabase_client(supabase_config)
        second = get_supabase_client(supabase_config)

    assert first is second
    create.assert_called_once()
    assert create.call_args.args[:2] == ("https://example.supabase.co", "service-role-key")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_webhook_event_exists(supabase_config, fake_client):
    query = fake_client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = MagicMock(data=[{"event_id": "github-1"}])

    assert await check_webhook_event_exists("github-1", supabase_config) is True
    fake_client.table.assert_called_with("webhook_events")

    query.execute.return_value = MagicMock(data=[])
    assert await check_webhook_event_exists("github-2", supabase_config) is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_webhook_event_wraps_errors(supabase_config, fake_client):
    fake_client.table.side_effect = RuntimeError("network down")

    with pytest.raises(SupabaseError):
        await check_webhook_event_exists("github-1", supabase_config)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_webhook_event(supabase_config, fake_client):
    await insert_webhook_event("slack-abc", "slack", supabase_config)

    fake_client.table.return_value.insert.assert_called_once_with({"event_id": "slack-abc", "provider": "slack"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_duplicate_is_ignored(supabase_config, fake_client):
    fake_client.table.return_value.insert.return_value.execute.side_effect = Exception(
        "duplicate key value violates unique constraint"
    )

    await insert_webhook_event("slack-abc", "slack", supabase_config)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_other_errors_raise(supabase_config, fake_client):
    fake_client.table.return_value.insert.return_value.execute.side_effect = Exception("permission denied")

    with pytest.raises(SupabaseError):
        await insert_webhook_event("slack-abc", "slack", supabase_config)
