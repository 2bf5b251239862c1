"""Automated review of pull requests once every check on their head commit passes."""

from hub.models.envelope import CommandEnvelope, HandlerKind, HandlerResponse, WebhookContext
from hub.models.github_event import GitHubEventData
from hub.models.task import TaskContext, TaskType
from hub.providers.github.handlers.base import GitHubEventHandler
from hub.services.github_service import REVIEW_FAILED_LABEL, REVIEWED_LABEL
from hub.utils.errors import GitHubApiError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

PR_REVIEW_PROMPT = """Review pull request #{number} in {repository}.

Head branch: {branch}
Head commit: {sha}

Use `gh pr view {number}` and `gh pr diff {number}` plus git history to understand the change, then write a
code review covering correctness, security, performance, test coverage and readability. Quote file paths and
line numbers for every finding and finish with an overall recommendation (approve, comment or request changes).
Reply with the review text only; it will be posted as a comment on the pull request."""

REVIEW_FOOTER = "\n\n---\n_Automated review at commit: {sha}_"


class PullRequestReviewHandler(GitHubEventHandler):
    """
    Reviews every pull request linked to a successful check suite.

    One suite passing is not enough: the review waits until every check suite
    and commit status on the head SHA has passed, so the last suite to finish
    triggers it. Redeliveries are expected; a PR already reviewed at the same
    head SHA (bot comment carrying "commit: <sha>") is skipped.
    """
    kind = HandlerKind.PR_REVIEW
    event = "check_suite"

    def can_handle(self, envelope: CommandEnvelope) -> bool:
        data: GitHubEventData = envelope.data
        return data.action == "completed" and data.conclusion == "success" and bool(data.pull_requests)

    async def _checks_passed(self, data: GitHubEventData, sha: str) -> bool:
        try:
            return await self.github.have_checks_passed(data.owner, data.repo, sha)
        except GitHubApiError as e:
            logger.warning("Could not read check results; not reviewing yet", repo=data.repo_full_name, head_sha=sha, error=str(e))
            return False

    async def _label_review(self, data: GitHubEventData, number: int, success: bool) -> None:
        added, removed = (REVIEWED_LABEL, REVIEW_FAILED_LABEL) if success else (REVIEW_FAILED_LABEL, REVIEWED_LABEL)
        try:
            await self.github.manage_pr_labels(data.owner, data.repo, number, [added], [removed])
        except GitHubApiError as e:
            logger.warning("Failed to update review labels", repo=data.repo_full_name, number=number, error=str(e))

    async def handle(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse:
        data: GitHubEventData = envelope.data
        reviewed, skipped, waiting, failed = [], [], [], []
        error_id = None

        for pull_request in data.pull_requests:
            sha = pull_request.head_sha or data.head_sha
            if await self.github.has_reviewed_pr_at_commit(data.owner, data.repo, pull_request.number, sha):
                skipped.append(pull_request.number)
                continue

            if not await self._checks_passed(data, sha):
                waiting.append(pull_request.number)
                continue

            task = TaskContext(
                repo_full_name=data.repo_full_name,
                pull_request_number=pull_request.number,
                type=TaskType.PR_REVIEW,
                user=data.sender or "unknown",
                command=PR_REVIEW_PROMPT.format(
                    number=pull_request.number,
                    repository=data.repo_full_name,
                    branch=pull_request.head_ref or data.branch_name or "unknown",
                    sha=sha,
                ),
                branch_name=pull_request.head_ref or data.branch_name,
            )
            logger.info("Reviewing pull request", repo=task.repo_full_name, thread_label=task.thread_label, head_sha=sha)

            result = await self.run_and_comment(data, task, footer=REVIEW_FOOTER.format(sha=sha))
            await self._label_review(data, pull_request.number, result.success)
            if result.success:
                reviewed.append(pull_request.number)
            else:
                failed.append(pull_request.number)
                error_id = error_id or result.error_id

        summary = {"reviewed": reviewed, "skipped": skipped, "waiting": waiting, "failed": failed}
        if failed:
            return HandlerResponse(
                success=False,
                error=f"Review failed for PR(s) {', '.join(f'#{n}' for n in failed)}",
                error_id=error_id,
                data=summary
            )
        return HandlerResponse(
            success=True,
            message=f"Reviewed {len(reviewed)} pull request(s), skipped {len(skipped)}, waiting on checks for {len(waiting)}",
            data=summary
        )
