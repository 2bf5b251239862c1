"""Slack slash command endpoint."""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from api.webhooks.common import WebhookRequestHandler
from hub.models.envelope import Provider
from hub.providers.registration import get_registry
from hub.services.webhook_registry import WebhookOutcome, WebhookRegistry
from hub.utils.logging import correlation_context

_logger = logging.getLogger(__name__)


async def _dispatch(registry: WebhookRegistry, outcome: WebhookOutcome) -> None:
    try:
        response = await registry.dispatch(outcome.envelope, outcome.context)
        _logger.info(
            f"Slack command {outcome.envelope.event} finished: success={response.success}",
            extra={"error_id": response.error_id}
        )
    finally:
        await registry.drain()


def run_deferred(registry: WebhookRegistry, outcome: WebhookOutcome) -> None:
    """Run the dispatch that was deferred behind the immediate acknowledgment."""
    with correlation_context(outcome.context.correlation_id):
        try:
            asyncio.run(_dispatch(registry, outcome))
        except Exception as e:
            _logger.error(f"Background Slack dispatch failed: {e}", exc_info=True)


def start_background_dispatch(registry: WebhookRegistry, outcome: WebhookOutcome) -> None:
    thread = threading.Thread(
        target=run_deferred,
        args=(registry, outcome),
        name=f"slack-dispatch-{outcome.envelope.id}",
        daemon=True,
    )
    thread.start()


def process_request(
    raw_body: bytes,
    headers: dict[str, str],
    registry: Optional[WebhookRegistry] = None,
    dispatcher: Optional[Callable[[WebhookRegistry, WebhookOutcome], None]] = None
) -> tuple[int, dict[str, str], dict[str, Any]]:
    """
    Verify a slash command and acknowledge it immediately.

    Slack requires an answer within three seconds; the handler's sandbox run
    continues on a background thread and reports through response_url.
    """
    registry = registry or get_registry()
    dispatcher = dispatcher or start_background_dispatch

    with correlation_context():
        outcome = asyncio.run(registry.receive(Provider.SLACK, raw_body, headers))

    if outcome.deferred:
        dispatcher(registry, outcome)

    return outcome.status_code, outcome.headers, outcome.body


class handler(WebhookRequestHandler):
    """Serverless-style handler for Slack slash commands."""
    process_request = staticmethod(process_request)
