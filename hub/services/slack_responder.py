"""Post delayed replies to a slash command's response_url."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

RESPONSE_TIMEOUT_SECONDS = 10.0


async def respond_to_slack(
    response_url: Optional[str],
    text: str,
    blocks: Optional[list[dict]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> bool:
    """
    Send a message back to the channel the command came from.

    Returns False when the message could not be delivered; a failed reply is
    logged and never raised, the handler's own outcome stands.
    """
    if not response_url:
        logger.warning("No response URL provided for Slack message")
        return False

    payload: dict = {"text": text}
    if blocks:
        payload["blocks"] = blocks

    try:
        async with httpx.AsyncClient(timeout=RESPONSE_TIMEOUT_SECONDS, transport=transport) as client:
            response = await client.post(response_url, json=payload)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Failed to send response to Slack: {e}")
        return False

    return True
