"""Tests for delayed slash command replies."""

import json
import httpx
import pytest

from hub.services.slack_responder import respond_to_slack

RESPONSE_URL = "https://hooks.slack.com/commands/T123456/1/abc"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_respond_posts_text_and_blocks():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text="ok")

    blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": "hi"}}]
    sent = await respond_to_slack(RESPONSE_URL, "hi", blocks, transport=httpx.MockTransport(handler))

    assert sent is True
    assert seen["url"] == RESPONSE_URL
    assert seen["body"] == {"text": "hi", "blocks": blocks}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_respond_without_url():
    assert await respond_to_slack(None, "hi") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_respond_http_error_returns_false():
    transport = httpx.MockTransport(lambda request: httpx.Response(404, text="expired_url"))
    assert await respond_to_slack(RESPONSE_URL, "hi", transport=transport) is False
