"""
Lifecycle notifications for sandbox tasks, posted to an operational Slack channel.

All notify_* methods are fire-and-forget: they schedule the post on the
running event loop and return immediately. Delivery errors are logged and
discarded in the task's done-callback; they never reach the caller. Callers
that own the event loop await drain() before the loop shuts down.
"""

import asyncio
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from ulid import ULID

from hub.config import HubConfig
from hub.models.task import TaskContext, TaskResult
from hub.utils.errors import NotificationError
from hub.utils.logging import get_structured_logger, mask_sensitive_data

logger = get_structured_logger(__name__)

COMMAND_PREVIEW_LIMIT = 100
ERROR_COMMAND_PREVIEW_LIMIT = 200
RESPONSE_PREVIEW_LIMIT = 500
STACK_PREVIEW_LINES = 5

OPERATION_TYPE_DISPLAY = {
    "issue_comment": "Issue Comment",
    "pull_request_comment": "PR Comment",
    "pr_review": "PR Review",
    "manual_pr_review": "Manual PR Review",
    "auto_tag": "Auto-Tagging",
    "check_suite": "Check Suite",
    "slash_command": "Slash Command",
}


def format_duration(ms: int) -> str:
    """45000 -> "45s", 125000 -> "2m 5s", 7325000 -> "2h 2m"."""
    seconds = max(0, int(ms)) // 1000
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def operation_type_display(task_type: str) -> str:
    return OPERATION_TYPE_DISPLAY.get(task_type, task_type)


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def _thread_field(context: TaskContext, url: str) -> dict:
    label = "Pull Request" if context.is_pull_request else "Issue"
    return {"type": "mrkdwn", "text": f"*{label}:*\n<{url}|{context.thread_label}>"}


def _stack_preview(error: BaseException) -> str:
    lines = "".join(traceback.format_exception(type(error), error, error.__traceback__)).splitlines()
    return "\n".join(lines[:STACK_PREVIEW_LINES])


def build_start_message(context: TaskContext) -> tuple[list[dict], str]:
    command = _truncate(context.command, COMMAND_PREVIEW_LIMIT)
    blocks = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (
                    f"⏳ *Claude is starting to process {context.thread_label} in {context.repo_full_name}*\n"
                    f"_Command: {command}_"
                )
            }
        }
    ]
    return blocks, f"⏳ Claude is processing {context.thread_label} in {context.repo_full_name}"


def build_success_message(context: TaskContext, result: TaskResult, container_image: str) -> tuple[list[dict], str]:
    duration = format_duration(result.duration)
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "✅ Claude Task Completed", "emoji": True}
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Repository:*\n{context.repo_full_name}"},
                _thread_field(context, result.github_url),
                {"type": "mrkdwn", "text": f"*Type:*\n{operation_type_display(context.type.value)}"},
                {"type": "mrkdwn", "text": f"*Duration:*\n{duration}"},
                {"type": "mrkdwn", "text": f"*Triggered by:*\n@{context.user}"},
                {"type": "mrkdwn", "text": f"*Command:*\n{_truncate(context.command, COMMAND_PREVIEW_LIMIT)}"},
            ]
        }
    ]

    if result.response_preview:
        preview = _truncate(result.response_preview, RESPONSE_PREVIEW_LIMIT)
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Response Preview:*\n```{preview}```"}
        })

    completed_at = datetime.now(timezone.utc).isoformat()
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Container: {container_image} | Completed at {completed_at}"}]
    })

    text = f"✅ Claude completed {context.thread_label} in {context.repo_full_name} ({duration})"
    return blocks, text


def build_error_message(
    context: TaskContext,
    error_message: str,
    error_id: str,
    container_image: str,
    duration_ms: Optional[int] = None,
    error: Optional[BaseException] = None
) -> tuple[list[dict], str]:
    duration = format_duration(duration_ms if duration_ms is not None else context.elapsed_ms())
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "❌ Claude Task Failed", "emoji": True}
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Error:* {error_message}"}
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Repository:*\n{context.repo_full_name}"},
                _thread_field(context, context.github_url),
                {"type": "mrkdwn", "text": f"*Type:*\n{operation_type_display(context.type.value)}"},
                {"type": "mrkdwn", "text": f"*Duration before failure:*\n{duration}"},
                {"type": "mrkdwn", "text": f"*Triggered by:*\n@{context.user}"},
                {"type": "mrkdwn", "text": f"*Error ID:*\n{error_id}"},
            ]
        }
    ]

    if context.command:
        command = _truncate(context.command, ERROR_COMMAND_PREVIEW_LIMIT)
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Command:*\n```{command}```"}
        })

    if error is not None:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Stack Trace:*\n```{_stack_preview(error)}```"}
        })

    failed_at = datetime.now(timezone.utc).isoformat()
    blocks.append({
        "type": "context",
        "elements": [{
            "type": "mrkdwn",
            "text": f"Container: {container_image} | Failed at {failed_at} | Error ID: {error_id}"
        }]
    })

    text = f"❌ Claude failed processing {context.thread_label} in {context.repo_full_name}: {error_message}"
    return blocks, text


class NotificationService:
    """Posts task start/success/failure messages; never raises into the caller."""

    def __init__(self, config: HubConfig, client: Optional[AsyncWebClient] = None):
        self.config = config
        self.client = client
        if self.client is None and config.slack_notification_enabled and config.slack_bot_token:
            self.client = AsyncWebClient(token=config.slack_bot_token)
        self._pending: set[asyncio.Task] = set()

        if self.is_enabled():
            logger.info(
                "Slack notification service initialized",
                channel_id=config.slack_channel_id,
                notify_on_success=config.notify_on_success,
                notify_on_error=config.notify_on_error,
                notify_on_start=config.notify_on_start,
                min_duration_ms=config.notify_min_duration_ms
            )
        else:
            logger.info("Slack notification service disabled")

    def is_enabled(self) -> bool:
        return self.config.slack_notification_enabled and self.client is not None

    def notify_start(self, context: TaskContext) -> None:
        if not self.is_enabled() or not self.config.notify_on_start:
            return
        blocks, text = build_start_message(context)
        self._schedule("start", blocks, text)

    def notify_complete(
        self,
        context: TaskContext,
        result: TaskResult,
        error: Optional[BaseException] = None
    ) -> None:
        """Report a finished task; failed results are reported as errors."""
        if not self.is_enabled():
            return

        if not result.success:
            self._notify_failure(context, result.error or "Unknown error", result.error_id, result.duration, error)
            return

        if result.duration < self.config.notify_min_duration_ms:
            logger.debug(
                "Skipping notification for quick operation",
                duration_ms=result.duration,
                min_duration_ms=self.config.notify_min_duration_ms
            )
            return

        if not self.config.notify_on_success:
            return

        blocks, text = build_success_message(context, result, self.config.container_image)
        self._schedule("complete", blocks, text)

    def notify_error(self, context: TaskContext, error: BaseException, error_id: Optional[str] = None) -> None:
        if not self.is_enabled():
            return
        self._notify_failure(context, str(error) or type(error).__name__, error_id, None, error)

    def _notify_failure(
        self,
        context: TaskContext,
        message: str,
        error_id: Optional[str],
        duration_ms: Optional[int],
        error: Optional[BaseException]
    ) -> None:
        if not self.config.notify_on_error:
            return
        blocks, text = build_error_message(
            context,
            mask_sensitive_data(message),
            error_id or f"err-{ULID()}",
            self.config.container_image,
            duration_ms=duration_ms,
            error=error,
        )
        self._schedule("error", blocks, text)

    def _schedule(self, kind: str, blocks: list[dict], text: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping notification", notification_kind=kind)
            return

        task = loop.create_task(self._post(kind, blocks, text))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        # Delivery errors stop here
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Failed to send Slack notification", error=str(error), channel_id=self.config.slack_channel_id)

    async def _post(self, kind: str, blocks: list[dict], text: str) -> None:
        try:
            response = await self.client.chat_postMessage(
                channel=self.config.slack_channel_id,
                blocks=blocks,
                text=text,
            )
        except SlackApiError as e:
            raise NotificationError(f"Slack API error: {e.response.get('error')}") from e
        logger.info(
            "Slack notification sent",
            notification_kind=kind,
            channel_id=self.config.slack_channel_id,
            message_ts=response.get("ts")
        )

    async def drain(self) -> None:
        """Wait for notifications scheduled on the current loop to finish."""
        loop = asyncio.get_running_loop()
        pending = [task for task in self._pending if task.get_loop() is loop]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


_service: Optional[NotificationService] = None


def get_notification_service(config: HubConfig) -> NotificationService:
    """Get or create the process-wide notification service."""
    global _service
    if _service is None:
        _service = NotificationService(config)
    return _service
