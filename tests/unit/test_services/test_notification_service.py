"""Tests for Slack lifecycle notifications."""

import pytest
from unittest.mock import AsyncMock, Mock
from slack_sdk.errors import SlackApiError

from hub.models.task import TaskContext, TaskResult, TaskType
from hub.services.notification_service import (
    NotificationService,
    build_error_message,
    build_start_message,
    build_success_message,
    format_duration,
    operation_type_display,
)


def _result(context: TaskContext, duration: int, success: bool = True) -> TaskResult:
    if success:
        return TaskResult(
            success=True,
            response_preview="Done",
            github_url=context.github_url,
            duration=duration,
        )
    return TaskResult(
        success=False,
        github_url=context.github_url,
        duration=duration,
        error="Sandbox timed out after 30s",
        error_id="err-123",
    )


@pytest.fixture
def slack_client():
    client = Mock()
    client.chat_postMessage = AsyncMock(return_value={"ok": True, "ts": "1733745600.000100"})
    return client


@pytest.mark.unit
@pytest.mark.parametrize("ms,expected", [
    (0, "0s"),
    (45000, "45s"),
    (125000, "2m 5s"),
    (7325000, "2h 2m"),
])
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected


@pytest.mark.unit
def test_operation_type_display():
    assert operation_type_display("auto_tag") == "Auto-Tagging"
    assert operation_type_display("pull_request_comment") == "PR Comment"
    assert operation_type_display("something_else") == "something_else"


@pytest.mark.unit
def test_build_start_message_truncates_command(task_context):
    context = task_context.model_copy(update={"command": "a" * 150})

    blocks, text = build_start_message(context)

    assert text == "⏳ Claude is processing Issue #42 in owner/repo"
    assert "a" * 100 + "..." in blocks[0]["text"]["text"]


@pytest.mark.unit
def test_build_success_message(task_context):
    blocks, text = build_success_message(task_context, _result(task_context, 125000), "claudecode:latest")

    assert text == "✅ Claude completed Issue #42 in owner/repo (2m 5s)"
    fields = [field["text"] for field in blocks[1]["fields"]]
    assert "*Issue:*\n<https://github.com/owner/repo/issues/42|Issue #42>" in fields
    assert "*Type:*\nIssue Comment" in fields
    assert "*Triggered by:*\n@testuser" in fields
    assert "Done" in blocks[2]["text"]["text"]
    assert blocks[-1]["elements"][0]["text"].startswith("Container: claudecode:latest")


@pytest.mark.unit
def test_build_error_message_for_pull_request():
    context = TaskContext(
        repo_full_name="owner/repo",
        pull_request_number=7,
        type=TaskType.PR_REVIEW,
        user="octocat",
        command="review",
    )

    try:
        raise RuntimeError("kaboom")
    except RuntimeError as e:
        blocks, text = build_error_message(context, "kaboom", "err-1", "img", duration_ms=45000, error=e)

    assert text == "❌ Claude failed processing PR #7 in owner/repo: kaboom"
    fields = [field["text"] for field in blocks[2]["fields"]]
    assert "*Pull Request:*\n<https://github.com/owner/repo/pull/7|PR #7>" in fields
    assert "*Duration before failure:*\n45s" in fields
    assert "*Error ID:*\nerr-1" in fields
    assert any("Stack Trace" in block.get("text", {}).get("text", "") for block in blocks)


@pytest.mark.unit
def test_disabled_without_flag(hub_config, slack_client):
    config = hub_config.model_copy(update={"slack_notification_enabled": False})
    assert NotificationService(config, client=slack_client).is_enabled() is False


@pytest.mark.unit
def test_disabled_without_token(hub_config):
    config = hub_config.model_copy(update={"slack_bot_token": ""})
    assert NotificationService(config).is_enabled() is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_quick_success_is_suppressed(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_complete(task_context, _result(task_context, 1200))
    await service.drain()

    slack_client.chat_postMessage.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slow_success_is_posted(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_complete(task_context, _result(task_context, 60000))
    await service.drain()

    slack_client.chat_postMessage.assert_awaited_once()
    kwargs = slack_client.chat_postMessage.call_args.kwargs
    assert kwargs["channel"] == "C1234567890"
    assert kwargs["text"] == "✅ Claude completed Issue #42 in owner/repo (1m 0s)"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_success_suppressed_when_disabled(hub_config, slack_client, task_context):
    config = hub_config.model_copy(update={"notify_on_success": False})
    service = NotificationService(config, client=slack_client)

    service.notify_complete(task_context, _result(task_context, 60000))
    await service.drain()

    slack_client.chat_postMessage.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_quick_failure_is_never_suppressed(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_complete(task_context, _result(task_context, 100, success=False))
    await service.drain()

    slack_client.chat_postMessage.assert_awaited_once()
    kwargs = slack_client.chat_postMessage.call_args.kwargs
    assert kwargs["text"].startswith("❌ Claude failed processing Issue #42")
    assert "err-123" in kwargs["blocks"][-1]["elements"][0]["text"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failure_suppressed_when_error_notifications_off(hub_config, slack_client, task_context):
    config = hub_config.model_copy(update={"notify_on_error": False})
    service = NotificationService(config, client=slack_client)

    service.notify_error(task_context, RuntimeError("boom"))
    await service.drain()

    slack_client.chat_postMessage.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_start_notification_off_by_default(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_start(task_context)
    await service.drain()
    slack_client.chat_postMessage.assert_not_awaited()

    enabled = NotificationService(hub_config.model_copy(update={"notify_on_start": True}), client=slack_client)
    enabled.notify_start(task_context)
    await enabled.drain()
    slack_client.chat_postMessage.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_notify_error_masks_secrets(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_error(task_context, RuntimeError("push rejected for ghp_abcdefghijklmnop"), error_id="err-9")
    await service.drain()

    text = slack_client.chat_postMessage.call_args.kwargs["text"]
    assert "ghp_abcdefghijklmnop" not in text
    assert "[REDACTED_GITHUB_TOKEN]" in text


@pytest.mark.unit
@pytest.mark.asyncio
async def test_slack_errors_never_reach_caller(hub_config, task_context):
    client = Mock()
    client.chat_postMessage = AsyncMock(
        side_effect=SlackApiError("failed", {"ok": False, "error": "channel_not_found"})
    )
    service = NotificationService(hub_config, client=client)

    service.notify_complete(task_context, _result(task_context, 100, success=False))
    await service.drain()

    client.chat_postMessage.assert_awaited_once()
    assert not service._pending


@pytest.mark.unit
def test_notify_without_running_loop_is_dropped(hub_config, slack_client, task_context):
    service = NotificationService(hub_config, client=slack_client)

    service.notify_error(task_context, RuntimeError("boom"))

    slack_client.chat_postMessage.assert_not_called()
