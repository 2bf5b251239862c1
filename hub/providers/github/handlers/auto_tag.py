"""Label newly opened issues, falling back to keyword labels when the sandbox fails."""

from hub.models.envelope import CommandEnvelope, HandlerKind, HandlerResponse, WebhookContext
from hub.models.github_event import GitHubEventData
from hub.models.task import TaskContext, TaskType
from hub.providers.github.handlers.base import GitHubEventHandler
from hub.services.github_service import get_fallback_labels, label_definitions
from hub.utils.errors import HubError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

AUTO_TAG_PROMPT = """Analyze this GitHub issue and apply appropriate labels.

Repository: {repository}
Issue #{number}: {title}

{body}

1. Run `gh label list` to see the labels that exist in this repository.
2. Pick labels for the issue type (type:*), priority (priority:*) and the affected component (component:*).
3. Apply them with `gh issue edit {number} --add-label "..."`. Only use labels that already exist.

Do not comment on the issue. Reply with a one-line summary of the labels you applied."""


class AutoTagHandler(GitHubEventHandler):
    kind = HandlerKind.AUTO_TAG
    event = "issues"

    def can_handle(self, envelope: CommandEnvelope) -> bool:
        data: GitHubEventData = envelope.data
        return data.action == "opened" and data.number is not None and not data.is_pull_request

    async def handle(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse:
        data: GitHubEventData = envelope.data
        task = TaskContext(
            repo_full_name=data.repo_full_name,
            issue_number=data.number,
            type=TaskType.AUTO_TAG,
            user=data.sender or "unknown",
            command=AUTO_TAG_PROMPT.format(
                repository=data.repo_full_name,
                number=data.number,
                title=data.title or "",
                body=data.body or "(no description)",
            ),
        )

        logger.info("Auto-tagging issue", repo=task.repo_full_name, thread_label=task.thread_label)
        self.notifier.notify_start(task)
        run = await self.sandbox.run_task(task)
        self.notifier.notify_complete(task, run.result, run.exception)

        if run.result.success:
            return HandlerResponse(success=True, message=run.response.split("\n", 1)[0])

        labels = get_fallback_labels(data.title or "", data.body)
        logger.warning(
            "Auto-tag sandbox failed; applying fallback labels",
            repo=task.repo_full_name,
            thread_label=task.thread_label,
            labels=labels,
            error_id=run.result.error_id
        )
        try:
            await self.github.create_repository_labels(data.owner, data.repo, label_definitions(labels))
            await self.github.add_labels_to_issue(data.owner, data.repo, data.number, labels)
        except HubError as e:
            logger.error(
                "Failed to apply fallback labels",
                repo=task.repo_full_name,
                thread_label=task.thread_label,
                error=str(e),
                error_id=run.result.error_id
            )
            return HandlerResponse(success=False, error=run.result.error, error_id=run.result.error_id)

        return HandlerResponse(
            success=True,
            message="Applied fallback labels",
            error_id=run.result.error_id,
            data={"fallback_labels": labels}
        )
