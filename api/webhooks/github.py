"""GitHub webhook endpoint."""

import asyncio
import logging
from typing import Any, Optional

from api.webhooks.common import WebhookRequestHandler
from hub.models.envelope import Provider
from hub.providers.github.provider import DELIVERY_HEADER
from hub.providers.registration import get_registry
from hub.services.webhook_registry import WebhookOutcome, WebhookRegistry
from hub.services.webhook_verifier import get_header
from hub.utils.logging import correlation_context

_logger = logging.getLogger(__name__)


async def _receive(registry: WebhookRegistry, raw_body: bytes, headers: dict[str, str]) -> WebhookOutcome:
    try:
        return await registry.receive(Provider.GITHUB, raw_body, headers)
    finally:
        await registry.drain()


def process_request(
    raw_body: bytes,
    headers: dict[str, str],
    registry: Optional[WebhookRegistry] = None
) -> tuple[int, dict[str, str], dict[str, Any]]:
    """Verify, route and run one GitHub delivery within the request."""
    registry = registry or get_registry()
    delivery_id = get_header(headers, DELIVERY_HEADER)

    with correlation_context(f"gh_{delivery_id}" if delivery_id else None):
        outcome = asyncio.run(_receive(registry, raw_body, headers))

    _logger.info(f"GitHub webhook processed with status {outcome.status_code}")
    return outcome.status_code, outcome.headers, outcome.body


class handler(WebhookRequestHandler):
    """Serverless-style handler for GitHub webhooks."""
    process_request = staticmethod(process_request)
