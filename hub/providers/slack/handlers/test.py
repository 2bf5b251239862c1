"""/test: webhook round-trip check against a repository."""

from typing import Any, Optional

from hub.models.envelope import HandlerKind
from hub.models.slack_event import SlackCommandData
from hub.models.task import RESPONSE_PREVIEW_LIMIT
from hub.providers.slack.handlers.base import SlashCommandHandler
from hub.utils.repository_parser import ParsedRepository, has_configured_default

DEFAULT_TEST_COMMAND = "webhook test acknowledgment"

TEST_PROMPT = """You are responding to a webhook test from Slack.

User {user_name} from {channel_name} channel sent a test command.
Repository: {repository}
Command: {command}

Please acknowledge the test and perform the requested action if any.
If it's just a test, create a simple acknowledgment."""


class TestHandler(SlashCommandHandler):
    __test__ = False
    kind = HandlerKind.TEST
    command = "/test"
    requires_text = False
    failure_text = "Test failed"

    def check_repository(self, parsed: ParsedRepository) -> Optional[str]:
        if not parsed.is_explicit and not has_configured_default(
            self.config.default_github_owner, self.config.default_github_repo
        ):
            return (
                "DEFAULT_GITHUB_OWNER not configured. "
                "Please specify repository as: `/test owner/repo [command]`"
            )
        return super().check_repository(parsed)

    def acknowledgment_text(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return f"🧪 Processing test command for repository: {parsed.full_name}"

    def build_prompt(self, data: SlackCommandData, parsed: ParsedRepository) -> str:
        return TEST_PROMPT.format(
            user_name=data.user_name or data.user_id,
            channel_name=data.channel_name or data.channel_id,
            repository=parsed.full_name,
            command=parsed.remaining_text or DEFAULT_TEST_COMMAND,
        )

    async def publish(
        self,
        data: SlackCommandData,
        parsed: ParsedRepository,
        response: str
    ) -> tuple[str, Optional[str], dict[str, Any]]:
        preview = response[:RESPONSE_PREVIEW_LIMIT]
        if len(response) > RESPONSE_PREVIEW_LIMIT:
            preview += "..."
        return f"✅ Test completed!\n\n{preview}", None, {"repository": parsed.full_name}
