"""Shared plumbing for GitHub event handlers."""

from typing import Optional

from ulid import ULID

from hub.config import HubConfig
from hub.models.envelope import HandlerKind, HandlerResponse
from hub.models.github_event import GitHubEventData
from hub.models.task import TaskContext, TaskResult
from hub.services.github_service import GitHubService
from hub.services.notification_service import NotificationService
from hub.services.sandbox import SandboxExecutor
from hub.utils.errors import HubError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

ERROR_COMMENT = (
    "❌ An error occurred while processing your command. "
    "Please check the logs for more details.\n\nReference: `{error_id}`"
)


class GitHubEventHandler:
    """Base for handlers bound to one GitHub event name."""
    kind: HandlerKind
    event: str

    def __init__(
        self,
        config: HubConfig,
        sandbox: SandboxExecutor,
        github: GitHubService,
        notifier: NotificationService
    ):
        self.config = config
        self.sandbox = sandbox
        self.github = github
        self.notifier = notifier

    def is_bot(self, login: Optional[str]) -> bool:
        return bool(login) and login.lower() == self.config.bot_username.lower()

    async def post_error_comment(self, data: GitHubEventData, number: int, result: TaskResult) -> None:
        try:
            await self.github.post_comment(
                data.owner,
                data.repo,
                number,
                ERROR_COMMENT.format(error_id=result.error_id)
            )
        except HubError as e:
            logger.error(
                "Failed to post error comment",
                repo=data.repo_full_name,
                number=number,
                error=str(e),
                error_id=result.error_id
            )

    async def run_and_comment(self, data: GitHubEventData, task: TaskContext, footer: str = "") -> TaskResult:
        """
        Run the sandbox for a task and post its answer on the originating thread.

        Failures are posted as a short comment with the error id; the full
        detail goes to the notifier only.
        """
        self.notifier.notify_start(task)
        run = await self.sandbox.run_task(task)
        result = run.result
        error = run.exception

        if result.success:
            try:
                await self.github.post_comment(data.owner, data.repo, task.number, f"{run.response}{footer}")
            except HubError as e:
                error_id = f"err-{ULID()}"
                logger.error(
                    "Failed to post sandbox response",
                    repo=task.repo_full_name,
                    thread_label=task.thread_label,
                    error=str(e),
                    error_id=error_id
                )
                result = TaskResult.failed(task, f"Failed to post comment: {e}", error_id=error_id)
                error = e
        else:
            await self.post_error_comment(data, task.number, result)

        self.notifier.notify_complete(task, result, error)
        return result

    @staticmethod
    def to_response(result: TaskResult, message: str) -> HandlerResponse:
        if result.success:
            return HandlerResponse(success=True, message=message, data={"github_url": result.github_url})
        return HandlerResponse(success=False, error=result.error, error_id=result.error_id)
