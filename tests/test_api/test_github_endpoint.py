"""Tests for the GitHub webhook endpoint."""

import pytest
from unittest.mock import AsyncMock

from api.webhooks.github import process_request
from hub.models.envelope import HandlerResponse
from hub.providers.registration import build_registry
from hub.utils.logging import get_correlation_id
from tests.utils.factories import create_issue_comment_payload
from tests.utils.helpers import encode_json, github_headers


@pytest.fixture
def registry(hub_config, mock_sandbox, mock_github, mock_notifier):
    return build_registry(hub_config, sandbox=mock_sandbox, github=mock_github, notifier=mock_notifier)


@pytest.mark.unit
def test_github_endpoint_runs_handler_within_request(registry, mock_github, mock_notifier):
    body = encode_json(create_issue_comment_payload("@ClaudeBot explain this", number=4))

    status, headers, response = process_request(body, github_headers(body), registry=registry)

    assert status == 200
    assert response["ok"] is True
    assert response["handled"] is True
    mock_github.post_comment.assert_awaited_once()
    mock_notifier.drain.assert_awaited_once()


@pytest.mark.unit
def test_github_endpoint_invalid_signature(registry, mock_sandbox):
    body = encode_json(create_issue_comment_payload("@ClaudeBot explain this"))

    status, _, response = process_request(body, github_headers(body, secret="nope"), registry=registry)

    assert status == 401
    assert response == {"error": "invalid signature"}
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
def test_github_endpoint_mistyped_payload_is_400(registry, mock_sandbox):
    payload = create_issue_comment_payload("@ClaudeBot explain this")
    payload["issue"]["number"] = "x"
    body = encode_json(payload)

    status, _, response = process_request(body, github_headers(body), registry=registry)

    assert status == 400
    assert response == {"error": "invalid payload"}
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
def test_github_endpoint_reports_handler_error_id(registry):
    registry.dispatch = AsyncMock(return_value=HandlerResponse(success=False, error="x", error_id="err-42"))
    body = encode_json(create_issue_comment_payload("@ClaudeBot explain this"))

    status, _, response = process_request(body, github_headers(body), registry=registry)

    assert status == 200
    assert response == {"ok": False, "handled": True, "error_id": "err-42"}


@pytest.mark.unit
def test_github_endpoint_correlates_by_delivery(registry):
    seen = []

    async def dispatch(envelope, context):
        seen.append((get_correlation_id(), context.correlation_id))
        return HandlerResponse(success=True)

    registry.dispatch = dispatch
    body = encode_json(create_issue_comment_payload("@ClaudeBot explain this"))

    process_request(body, github_headers(body, delivery="abc-123"), registry=registry)

    assert seen == [("gh_abc-123", "gh_abc-123")]
