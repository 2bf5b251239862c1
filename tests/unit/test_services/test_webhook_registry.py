"""Tests for the provider/handler registry and inbound pipeline."""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from hub.models.envelope import HandlerKind, HandlerResponse, Provider, WebhookContext
from hub.providers.registration import build_registry
from hub.services.webhook_registry import HandlerRegistration
from hub.utils.errors import SignatureVerificationError
from tests.utils.factories import create_issue_comment_payload
from tests.utils.helpers import create_slash_command_body, encode_json, github_headers, slack_headers


@pytest.fixture
def registry(hub_config, mock_sandbox, mock_github, mock_notifier):
    return build_registry(hub_config, sandbox=mock_sandbox, github=mock_github, notifier=mock_notifier)


def _registration(kind, event, accepts, message):
    return HandlerRegistration(
        kind=kind,
        event=event,
        can_handle=lambda envelope: accepts,
        handle=AsyncMock(return_value=HandlerResponse(success=True, message=message)),
    )


@pytest.mark.unit
def test_build_registry_registers_handlers_in_order(registry):
    slack = [r.kind for r in registry.get_handlers(Provider.SLACK, "slash_command:/plan")]
    assert slack == [HandlerKind.PLAN]

    issues = [r.kind for r in registry.get_handlers(Provider.GITHUB, "issues")]
    assert issues == [HandlerKind.AUTO_TAG]

    comments = [r.kind for r in registry.get_handlers(Provider.GITHUB, "issue_comment")]
    assert comments == [HandlerKind.DEFAULT_MENTION]

    assert registry.get_provider("github") is not None
    assert registry.get_provider("gitlab") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_first_matching_handler_wins(registry):
    payload = create_issue_comment_payload("hello")
    envelope = registry.get_provider(Provider.GITHUB).parse_payload(
        encode_json(payload), {"X-GitHub-Event": "custom_event"}
    )
    registry.register_handler(Provider.GITHUB, _registration(HandlerKind.AUTO_TAG, "custom_event", False, "skipped"))
    registry.register_handler(Provider.GITHUB, _registration(HandlerKind.PR_REVIEW, "custom_event", True, "first"))
    registry.register_handler(Provider.GITHUB, _registration(HandlerKind.DEFAULT_MENTION, "custom_event", True, "second"))

    response = await registry.dispatch(envelope, WebhookContext(provider=Provider.GITHUB))

    assert response.message == "first"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_converts_handler_exceptions(registry):
    envelope = registry.get_provider(Provider.GITHUB).parse_payload(
        encode_json(create_issue_comment_payload("hi")), {"X-GitHub-Event": "boom_event"}
    )
    registry.register_handler(Provider.GITHUB, HandlerRegistration(
        kind=HandlerKind.DEFAULT_MENTION,
        event="boom_event",
        can_handle=lambda envelope: True,
        handle=AsyncMock(side_effect=RuntimeError("unexpected")),
    ))

    response = await registry.dispatch(envelope, WebhookContext(provider=Provider.GITHUB))

    assert response.success is False
    assert response.error == "Internal handler error"
    assert response.error_id.startswith("err-")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_unknown_provider(registry):
    outcome = await registry.receive("gitlab", b"{}", {})
    assert outcome.status_code == 404


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_rejects_bad_signature_before_parsing(registry, mock_sandbox):
    body = encode_json(create_issue_comment_payload("@ClaudeBot fix it"))
    headers = github_headers(body, secret="wrong-secret")

    outcome = await registry.receive(Provider.GITHUB, body, headers)

    assert outcome.status_code == 401
    assert outcome.envelope is None
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_without_configured_secret_is_401(hub_config, mock_sandbox, mock_github, mock_notifier):
    config = hub_config.model_copy(update={"github_webhook_secret": ""})
    registry = build_registry(config, sandbox=mock_sandbox, github=mock_github, notifier=mock_notifier)
    body = encode_json(create_issue_comment_payload("@ClaudeBot fix it"))

    outcome = await registry.receive(Provider.GITHUB, body, github_headers(body))

    assert outcome.status_code == 401
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
def test_secret_for_requires_configuration(registry):
    assert registry.secret_for(Provider.SLACK) == registry.config.slack_signing_secret

    registry.config = registry.config.model_copy(update={"slack_signing_secret": ""})
    with pytest.raises(SignatureVerificationError):
        registry.secret_for(Provider.SLACK)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_rejects_malformed_json(registry):
    body = b"{not json"
    outcome = await registry.receive(Provider.GITHUB, body, github_headers(body))
    assert outcome.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_rejects_payload_without_repository(registry):
    payload = create_issue_comment_payload("@ClaudeBot fix it")
    del payload["repository"]
    body = encode_json(payload)

    outcome = await registry.receive(Provider.GITHUB, body, github_headers(body))

    assert outcome.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_github_dispatches_inline(registry, mock_github):
    body = encode_json(create_issue_comment_payload("@ClaudeBot fix it", number=12))

    outcome = await registry.receive(Provider.GITHUB, body, github_headers(body))

    assert outcome.status_code == 200
    assert outcome.deferred is False
    assert outcome.body["ok"] is True
    assert outcome.body["handled"] is True
    assert outcome.context.delivery_id == "72d3162e-cc78-11e3-81ab-4c9367dc0958"
    mock_github.post_comment.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_github_event_without_handler(registry):
    body = encode_json({"repository": {"full_name": "test-owner/test-repo"}, "ref": "refs/heads/main"})

    outcome = await registry.receive(Provider.GITHUB, body, github_headers(body, event="push"))

    assert outcome.status_code == 200
    assert outcome.body["handled"] is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_slack_is_deferred(registry, mock_sandbox):
    body = create_slash_command_body("/plan", "Add dark mode")

    outcome = await registry.receive(Provider.SLACK, body, slack_headers(body))

    assert outcome.status_code == 200
    assert outcome.deferred is True
    assert outcome.body["response_type"] == "ephemeral"
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_receive_skips_duplicate_delivery(hub_config, mock_sandbox, mock_github, mock_notifier):
    config = hub_config.model_copy(update={"dedup_enabled": True})
    registry = build_registry(config, sandbox=mock_sandbox, github=mock_github, notifier=mock_notifier)
    body = encode_json(create_issue_comment_payload("@ClaudeBot fix it"))

    with patch("hub.services.webhook_registry.is_duplicate_event", new=AsyncMock(return_value=True)) as duplicate:
        outcome = await registry.receive(Provider.GITHUB, body, github_headers(body))

    duplicate.assert_awaited_once()
    assert duplicate.call_args.args[0] == "github-72d3162e-cc78-11e3-81ab-4c9367dc0958"
    assert outcome.body == {"ok": True, "duplicate": True}
    assert outcome.headers == {"X-Hub-Ignored-Retry": "true"}
    mock_sandbox.run_task.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_drain_waits_for_notifier(registry, mock_notifier):
    await registry.drain()
    mock_notifier.drain.assert_awaited_once()
