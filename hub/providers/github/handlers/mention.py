"""Default handler: a comment mentioning the bot becomes a sandbox command."""

import re

from hub.models.envelope import CommandEnvelope, HandlerKind, HandlerResponse, WebhookContext
from hub.models.github_event import GitHubEventData
from hub.models.task import TaskContext, TaskType
from hub.providers.github.handlers.base import GitHubEventHandler
from hub.utils.logging import get_structured_logger, sanitize_message_text

logger = get_structured_logger(__name__)

_REVIEW_REQUEST = re.compile(r"\breview\b", re.IGNORECASE)


class DefaultMentionHandler(GitHubEventHandler):
    kind = HandlerKind.DEFAULT_MENTION
    event = "issue_comment"

    def _mention(self) -> re.Pattern:
        return re.compile(rf"@{re.escape(self.config.bot_username)}\b", re.IGNORECASE)

    def can_handle(self, envelope: CommandEnvelope) -> bool:
        data: GitHubEventData = envelope.data
        if data.action != "created" or not data.comment_body:
            return False
        if self.is_bot(data.comment_author):
            return False
        return bool(self._mention().search(data.comment_body))

    def extract_command(self, comment_body: str) -> str:
        """Comment text with the bot mention removed."""
        command = self._mention().sub("", comment_body, count=1).strip()
        return command or comment_body.strip()

    def task_type(self, data: GitHubEventData, command: str) -> TaskType:
        if not data.is_pull_request:
            return TaskType.ISSUE_COMMENT
        if _REVIEW_REQUEST.search(command):
            return TaskType.MANUAL_PR_REVIEW
        return TaskType.PULL_REQUEST_COMMENT

    async def handle(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse:
        data: GitHubEventData = envelope.data
        command = self.extract_command(data.comment_body)
        task_type = self.task_type(data, command)

        branch_name = data.branch_name
        if data.is_pull_request and not branch_name:
            pull_request = await self.github.get_pull_request(data.owner, data.repo, data.number)
            if pull_request:
                branch_name = (pull_request.get("head") or {}).get("ref")

        task = TaskContext(
            repo_full_name=data.repo_full_name,
            issue_number=None if data.is_pull_request else data.number,
            pull_request_number=data.number if data.is_pull_request else None,
            type=task_type,
            user=data.comment_author or data.sender or "unknown",
            command=command,
            branch_name=branch_name,
        )

        logger.info(
            "Processing bot mention",
            repo=task.repo_full_name,
            thread_label=task.thread_label,
            task_type=task_type.value,
            comment_id=data.comment_id,
            command=sanitize_message_text(command)
        )

        result = await self.run_and_comment(data, task)
        return self.to_response(result, f"Responded on {task.thread_label}")
