"""Shared flow for slash command handlers."""

import re
from typing import Any, Awaitable, Callable, Optional

from ulid import ULID

from hub.config import HubConfig
from hub.models.envelope import CommandEnvelope, HandlerKind, HandlerResponse, WebhookContext
from hub.models.slack_event import SlackCommandData
from hub.models.task import TaskContext, TaskResult, TaskType
from hub.services.github_service import GitHubService
from hub.services.notification_service import NotificationService
from hub.services.sandbox import SandboxExecutor
from hub.services.slack_responder import respond_to_slack
from hub.utils.errors import HubError
from hub.utils.logging import get_structured_logger, mask_user_id, sanitize_message_text
from hub.utils.repository_parser import ParsedRepository, is_valid_repository, parse_repository_from_text

logger = get_structured_logger(__name__)

Responder = Callable[..., Awaitable[bool]]

_HEADING_PREFIX = re.compile(r"^#+\s*")


def title_from_document(document: str, fallback: str) -> str:
    """First line of a markdown document with leading #'s removed."""
    first_line = document.split("\n", 1)[0]
    title = _HEADING_PREFIX.sub("", first_line).strip()
    return title or fallback


class SlashCommandHandler:
    """
    Base for handlers bound to one slash command.

    Subclasses provide the prompt and publish the sandbox's answer. The base
    class owns the user-facing replies, the sandbox run and notifications, and
    converts every failure into a reply plus a failed HandlerResponse.
    """
    kind: HandlerKind
    command: str
    requires_text = True
    usage_text = ""
    failure_text = "Command failed"

    def __init__(
        self,
        config: HubConfig,
        sandbox: SandboxExecutor,
        github: GitHubService,
        notifier: NotificationService,
        responder: Responder = respond_to_slack
    ):
        self.config = config
        self.sandbox = sandbox
        self.github = github
        self.notifier = notifier
        self.responder = responder

    @property
    def event(self) -> str:
        return f"slash_command:{self.command}"

    def can_handle(self, envelope: CommandEnvelope) -> bool:
        return getattr(envelope.data, "command", None) == self.command

    def check_repository(self, parsed: ParsedRepository) -> Optional[str]:
        """Return a refusal message when the command cannot run against this repository."""
        if not is_valid_repository(parsed.owner, parsed.repo):
            return f"Invalid repository: `{parsed.full_name}`"
        return None

    def acknowledgment_text(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        raise NotImplementedError

    def build_prompt(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        raise NotImplementedError

    async def publish(
        self,
        data: SlackCommandData,
        parsed: ParsedRepository,
        response: str
    ) -> tuple[str, Optional[str], dict[str, Any]]:
        """Persist the answer; returns (reply text, artifact url, response data)."""
        raise NotImplementedError

    async def _fail(
        self,
        data: SlackCommandData,
        task: TaskContext,
        result: TaskResult,
        error: Optional[BaseException] = None
    ) -> HandlerResponse:
        self.notifier.notify_complete(task, result, error)
        await self.responder(
            data.response_url,
            f"❌ {self.failure_text}: {result.error}\n_Error ID: {result.error_id}_"
        )
        return HandlerResponse(success=False, error=result.error, error_id=result.error_id)

    async def handle(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse:
        data: SlackCommandData = envelope.data
        text = (data.text or "").strip()

        if self.requires_text and not text:
            await self.responder(data.response_url, self.usage_text)
            return HandlerResponse(success=False, error="No text provided")

        parsed = parse_repository_from_text(text, self.config.default_github_owner, self.config.default_github_repo)
        refusal = self.check_repository(parsed)
        if refusal:
            await self.responder(data.response_url, f"❌ {refusal}")
            return HandlerResponse(success=False, error=refusal)

        logger.info(
            f"Handling {self.command}",
            handler_kind=self.kind.value,
            slack_user_id=mask_user_id(data.user_id or ""),
            repo=parsed.full_name,
            explicit_repo=parsed.is_explicit,
            text=sanitize_message_text(text)
        )

        await self.responder(data.response_url, self.acknowledgment_text(data, parsed))

        task = TaskContext(
            repo_full_name=parsed.full_name,
            type=TaskType.SLASH_COMMAND,
            user=data.user_name or data.user_id or "unknown",
            command=self.build_prompt(data, parsed),
        )
        self.notifier.notify_start(task)

        run = await self.sandbox.run_task(task)
        if not run.result.success:
            return await self._fail(data, task, run.result, run.exception)

        try:
            reply, artifact_url, response_data = await self.publish(data, parsed, run.response)
        except HubError as e:
            error_id = f"err-{ULID()}"
            logger.error(
                f"Failed to publish {self.command} result",
                handler_kind=self.kind.value,
                error=str(e),
                error_id=error_id
            )
            return await self._fail(data, task, TaskResult.failed(task, str(e), error_id=error_id), e)

        result = TaskResult.succeeded(task, run.response, github_url=artifact_url)
        self.notifier.notify_complete(task, result)
        await self.responder(data.response_url, reply)

        return HandlerResponse(success=True, message=reply.split("\n", 1)[0], data=response_data)


class IssueDocumentHandler(SlashCommandHandler):
    """Slash command whose answer becomes a new GitHub issue."""
    labels: tuple[str, ...] = ()
    fallback_title_prefix = ""
    body_heading = ""
    original_label = ""
    success_text = ""

    def source_text(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return parsed.remaining_text or (data.text or "").strip()

    async def publish(
        self,
        data: SlackCommandData,
        parsed: ParsedRepository,
        response: str
    ) -> tuple[str, Optional[str], dict[str, Any]]:
        source = self.source_text(data, parsed)
        title = title_from_document(response, f"{self.fallback_title_prefix}: {source[:50]}")
        body = (
            f"## {self.body_heading} by @{data.user_name or data.user_id}\n\n"
            f"**{self.original_label}:** {source}\n\n---\n\n{response}"
        )

        issue = await self.github.create_issue(parsed.owner, parsed.repo, title, body, list(self.labels))
        number = issue.get("number")
        url = issue.get("html_url")

        logger.info(
            "Created issue from slash command",
            handler_kind=self.kind.value,
            repo=parsed.full_name,
            issue_number=number
        )

        reply = f"✅ {self.success_text}\n\n**Issue #{number}:** {title}\n**View on GitHub:** {url}"
        return reply, url, {"issue_number": number, "issue_url": url}
