"""GitHub REST collaborator: comments, labels, issues and review lookups."""

import logging
import re
from typing import Optional
from urllib.parse import quote

import httpx

from hub.config import HubConfig
from hub.utils.errors import GitHubApiError
from hub.utils.logging import timed

logger = logging.getLogger(__name__)

USER_AGENT = "Claude-GitHub-Webhook"
REQUEST_TIMEOUT_SECONDS = 30.0

_SAFE_NAME = re.compile(r"^[a-zA-Z0-9._-]+$")
_SAFE_REF = re.compile(r"^[a-zA-Z0-9._/-]+$")

# Suites that finished this way do not block a review
PASSING_CONCLUSIONS = ("success", "neutral", "skipped")

REVIEWED_LABEL = "claude-reviewed"
REVIEW_FAILED_LABEL = "claude-review-failed"

# name -> (color, description) for labels the hub applies itself
LABEL_CATALOG: dict[str, tuple[str, str]] = {
    "type:bug": ("d73a4a", "Something is not working"),
    "type:feature": ("0e8a16", "New functionality"),
    "type:enhancement": ("a2eeef", "Improvement to existing functionality"),
    "type:documentation": ("0075ca", "Documentation changes"),
    "type:question": ("d876e3", "Further information is requested"),
    "priority:critical": ("b60205", "Needs attention now"),
    "priority:high": ("d93f0b", "High priority"),
    "priority:medium": ("fbca04", "Medium priority"),
    "component:api": ("1d76db", "API"),
    "component:frontend": ("1d76db", "Frontend"),
    "component:backend": ("1d76db", "Backend"),
    "component:database": ("1d76db", "Database"),
    "component:auth": ("1d76db", "Authentication and permissions"),
    "component:webhook": ("1d76db", "Webhooks and GitHub integration"),
    "component:docker": ("1d76db", "Containers"),
    REVIEWED_LABEL: ("5319e7", "Reviewed by the bot at the current head"),
    REVIEW_FAILED_LABEL: ("e99695", "Automated review could not complete"),
}


def validate_github_params(owner: str, repo: str, issue_number: Optional[int] = None) -> tuple[str, str, Optional[int]]:
    """
    Validate owner/repo/issue before they are interpolated into a REST URL.

    Raises GitHubApiError on unsafe names or a non-positive issue number.
    """
    if not owner or not repo or not _SAFE_NAME.fullmatch(owner) or not _SAFE_NAME.fullmatch(repo):
        raise GitHubApiError("Invalid repository owner or name - contains unsafe characters")

    if issue_number is None:
        return owner, repo, None

    if isinstance(issue_number, bool) or not isinstance(issue_number, int) or issue_number <= 0:
        raise GitHubApiError("Invalid issue number - must be a positive integer")

    return owner, repo, issue_number


def validate_ref(ref: str) -> str:
    """A commit SHA, branch or tag safe to place in a REST path."""
    if not ref or not _SAFE_REF.fullmatch(ref):
        raise GitHubApiError("Invalid ref - contains unsafe characters")
    return ref


def label_definitions(names: list[str]) -> list[dict]:
    """Catalog entries for the given label names; unknown names get a neutral color."""
    definitions = []
    for name in names:
        color, description = LABEL_CATALOG.get(name, ("ededed", ""))
        definitions.append({"name": name, "color": color, "description": description})
    return definitions


def get_fallback_labels(title: str, body: Optional[str]) -> list[str]:
    """Keyword-based labels used when the auto-tag sandbox could not label an issue."""
    content = f"{title} {body or ''}".lower()
    labels = []

    # Documentation first; it is the most specific type
    if " doc " in content or "docs" in content or "readme" in content or "documentation" in content:
        labels.append("type:documentation")
    elif any(word in content for word in ("bug", "error", "issue", "problem")):
        labels.append("type:bug")
    elif any(word in content for word in ("feature", "add", "new")):
        labels.append("type:feature")
    elif any(word in content for word in ("improve", "enhance", "better")):
        labels.append("type:enhancement")
    elif any(word in content for word in ("question", "help", "how")):
        labels.append("type:question")

    if any(word in content for word in ("critical", "urgent", "security", "down")):
        labels.append("priority:critical")
    elif "important" in content or "high" in content:
        labels.append("priority:high")
    else:
        labels.append("priority:medium")

    if "api" in content or "endpoint" in content:
        labels.append("component:api")
    elif any(word in content for word in ("ui", "frontend", "interface")):
        labels.append("component:frontend")
    elif "backend" in content or "server" in content:
        labels.append("component:backend")
    elif "database" in content or "db" in content:
        labels.append("component:database")
    elif any(word in content for word in ("auth", "login", "permission")):
        labels.append("component:auth")
    elif "webhook" in content or "github" in content:
        labels.append("component:webhook")
    elif "docker" in content or "container" in content:
        labels.append("component:docker")

    return labels


class GitHubService:
    """
    Thin async wrapper over the GitHub REST API.

    Without a token, comment and label writes are logged instead of sent so a
    local deployment can run end to end; creating an issue always needs a token.
    """

    def __init__(self, config: HubConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def has_client(self) -> bool:
        return bool(self.config.github_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.github_api_url,
            headers={
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            logger.error(
                f"GitHub API returned {e.response.status_code} for {method} {path}",
                extra={"status_code": e.response.status_code, "response_body": e.response.text[:500]}
            )
            raise GitHubApiError(
                f"GitHub API error {e.response.status_code}: {method} {path}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"GitHub API request failed: {e}", extra={"path": path})
            raise GitHubApiError(f"GitHub API request failed: {e}") from e

    @timed("github_post_comment")
    async def post_comment(self, owner: str, repo: str, issue_number: int, body: str) -> dict:
        owner, repo, number = validate_github_params(owner, repo, issue_number)
        logger.info(
            f"Posting comment to GitHub {owner}/{repo}#{number}",
            extra={"body_length": len(body)}
        )

        if not self.has_client:
            logger.info(
                f"TEST MODE: Would post comment to {owner}/{repo}#{number}",
                extra={"body_preview": body[:100]}
            )
            return {"id": "test-comment-id", "body": body}

        response = await self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})
        data = response.json()
        logger.info(f"Comment posted successfully: {data.get('id')}")
        return data

    async def add_labels_to_issue(self, owner: str, repo: str, issue_number: int, labels: list[str]) -> list[dict]:
        owner, repo, number = validate_github_params(owner, repo, issue_number)
        logger.info(f"Adding {len(labels)} labels to {owner}/{repo}#{number}")

        if not self.has_client:
            logger.info(f"TEST MODE: Would add labels {labels} to {owner}/{repo}#{number}")
            return [{"id": index, "name": label} for index, label in enumerate(labels)]

        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/labels",
            json={"labels": labels}
        )
        return response.json()

    @timed("github_create_issue")
    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: Optional[list[str]] = None
    ) -> dict:
        owner, repo, _ = validate_github_params(owner, repo)

        if not self.has_client:
            raise GitHubApiError("GitHub token is not configured; cannot create issues")

        logger.info(f"Creating issue in {owner}/{repo}", extra={"title": title[:100]})
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues",
            json={"title": title, "body": body, "labels": labels or []}
        )
        data = response.json()
        logger.info(f"Issue created: {owner}/{repo}#{data.get('number')}")
        return data

    async def get_pull_request(self, owner: str, repo: str, pr_number: int) -> Optional[dict]:
        """Pull request details, or None when unavailable."""
        owner, repo, number = validate_github_params(owner, repo, pr_number)
        if not self.has_client:
            return None
        try:
            response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        except GitHubApiError as e:
            logger.warning(f"Could not fetch pull request {owner}/{repo}#{number}: {e}")
            return None
        return response.json()

    async def list_issue_comments(self, owner: str, repo: str, issue_number: int) -> list[dict]:
        owner, repo, number = validate_github_params(owner, repo, issue_number)
        if not self.has_client:
            return []
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            params={"per_page": 100}
        )
        return response.json()

    async def has_reviewed_pr_at_commit(self, owner: str, repo: str, pr_number: int, commit_sha: str) -> bool:
        """
        True when the bot already left a review comment stamped with this commit.

        Lookup failures return False so a review is attempted rather than lost.
        """
        try:
            comments = await self.list_issue_comments(owner, repo, pr_number)
        except GitHubApiError as e:
            logger.warning(f"Could not check existing reviews for {owner}/{repo}#{pr_number}: {e}")
            return False

        marker = f"commit: {commit_sha}"
        bot = self.config.bot_username.lower()
        for comment in comments:
            author = ((comment.get("user") or {}).get("login") or "").lower()
            if author == bot and marker in (comment.get("body") or ""):
                logger.info(f"PR {owner}/{repo}#{pr_number} already reviewed at {commit_sha}")
                return True
        return False

    async def create_repository_labels(self, owner: str, repo: str, labels: list[dict]) -> list[dict]:
        """
        Create labels (dicts with name, color and description) on a repository.

        Labels that already exist (422) are skipped; any other per-label
        failure is logged and the remaining labels are still attempted.
        """
        owner, repo, _ = validate_github_params(owner, repo)
        logger.info(f"Creating {len(labels)} repository labels in {owner}/{repo}")

        if not self.has_client:
            logger.info(f"TEST MODE: Would create labels {[label['name'] for label in labels]} in {owner}/{repo}")
            return [dict(label, id=index) for index, label in enumerate(labels)]

        created = []
        for label in labels:
            try:
                response = await self._request("POST", f"/repos/{owner}/{repo}/labels", json=label)
            except GitHubApiError as e:
                if e.status_code == 422:
                    logger.debug(f"Label {label['name']} already exists in {owner}/{repo}")
                else:
                    logger.warning(f"Failed to create label {label['name']} in {owner}/{repo}: {e}")
                continue
            created.append(response.json())
        return created

    async def manage_pr_labels(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        labels_to_add: Optional[list[str]] = None,
        labels_to_remove: Optional[list[str]] = None
    ) -> None:
        """Remove then add labels on a pull request. Removing a label that is not present is not an error."""
        owner, repo, number = validate_github_params(owner, repo, pr_number)
        labels_to_add = labels_to_add or []
        labels_to_remove = labels_to_remove or []

        if not self.has_client:
            logger.info(
                f"TEST MODE: Would manage labels on {owner}/{repo}#{number}",
                extra={"labels_to_add": labels_to_add, "labels_to_remove": labels_to_remove}
            )
            return

        for label in labels_to_remove:
            try:
                await self._request("DELETE", f"/repos/{owner}/{repo}/issues/{number}/labels/{quote(label, safe='')}")
                logger.info(f"Removed label {label} from {owner}/{repo}#{number}")
            except GitHubApiError as e:
                if e.status_code != 404:
                    logger.error(f"Failed to remove label {label} from {owner}/{repo}#{number}: {e}")

        if labels_to_add:
            await self._request(
                "POST",
                f"/repos/{owner}/{repo}/issues/{number}/labels",
                json={"labels": labels_to_add}
            )
            logger.info(f"Added labels {labels_to_add} to {owner}/{repo}#{number}")

    async def get_combined_status(self, owner: str, repo: str, ref: str) -> dict:
        """Combined commit status for a ref. Without a token a passing status is reported."""
        owner, repo, _ = validate_github_params(owner, repo)
        ref = validate_ref(ref)

        if not self.has_client:
            logger.info(f"TEST MODE: Returning successful combined status for {owner}/{repo}@{ref}")
            return {"state": "success", "total_count": 0, "statuses": []}

        response = await self._request("GET", f"/repos/{owner}/{repo}/commits/{ref}/status")
        data = response.json()
        logger.info(
            f"Combined status for {owner}/{repo}@{ref}: {data.get('state')}",
            extra={"total_count": data.get("total_count")}
        )
        return data

    async def get_check_suites_for_ref(self, owner: str, repo: str, ref: str) -> list[dict]:
        """Check suites reported for a ref. Without a token there are none."""
        owner, repo, _ = validate_github_params(owner, repo)
        ref = validate_ref(ref)

        if not self.has_client:
            return []

        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/commits/{ref}/check-suites",
            params={"per_page": 100}
        )
        return response.json().get("check_suites") or []

    async def have_checks_passed(self, owner: str, repo: str, ref: str) -> bool:
        """
        True when every check suite and commit status for ref finished successfully.

        Suites without any check runs never complete and are ignored; a ref with
        no commit statuses at all reports state "pending" and is not a blocker.
        """
        suites = await self.get_check_suites_for_ref(owner, repo, ref)
        for suite in suites:
            if not suite.get("latest_check_runs_count"):
                continue
            if suite.get("status") != "completed" or suite.get("conclusion") not in PASSING_CONCLUSIONS:
                app = (suite.get("app") or {}).get("slug", "unknown")
                logger.info(
                    f"Check suite {suite.get('id')} ({app}) on {owner}/{repo}@{ref} is "
                    f"{suite.get('status')}/{suite.get('conclusion')}"
                )
                return False

        status = await self.get_combined_status(owner, repo, ref)
        if status.get("total_count", 0) and status.get("state") != "success":
            logger.info(f"Commit statuses on {owner}/{repo}@{ref} are {status.get('state')}")
            return False
        return True
