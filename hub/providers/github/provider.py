"""GitHub webhook provider: signature check and payload normalization."""

import json
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from hub.models.envelope import CommandEnvelope, Provider
from hub.models.github_event import GitHubEventData, LinkedPullRequest
from hub.services.webhook_verifier import get_header, verify_github_signature
from hub.utils.errors import PayloadValidationError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"


def _login(obj: Any) -> Optional[str]:
    if isinstance(obj, dict):
        return obj.get("login")
    return None


def extract_event_data(event_name: str, body: dict) -> GitHubEventData:
    """Pull the fields handlers route and act on out of a raw GitHub payload."""
    repository = body.get("repository") or {}
    fields: dict[str, Any] = {
        "event_name": event_name,
        "action": body.get("action"),
        "repo_full_name": repository.get("full_name"),
        "sender": _login(body.get("sender")),
    }

    issue = body.get("issue")
    if isinstance(issue, dict):
        fields.update(
            number=issue.get("number"),
            is_pull_request=bool(issue.get("pull_request")),
            title=issue.get("title"),
            body=issue.get("body"),
            html_url=issue.get("html_url"),
        )

    pull_request = body.get("pull_request")
    if isinstance(pull_request, dict):
        head = pull_request.get("head") or {}
        fields.update(
            number=pull_request.get("number"),
            is_pull_request=True,
            title=pull_request.get("title"),
            body=pull_request.get("body"),
            html_url=pull_request.get("html_url"),
            branch_name=head.get("ref"),
            head_sha=head.get("sha"),
        )

    comment = body.get("comment")
    if isinstance(comment, dict):
        fields.update(
            comment_id=comment.get("id"),
            comment_body=comment.get("body"),
            comment_author=_login(comment.get("user")),
        )

    check_suite = body.get("check_suite")
    if isinstance(check_suite, dict):
        linked = []
        for pr in check_suite.get("pull_requests") or []:
            if not isinstance(pr, dict) or pr.get("number") is None:
                continue
            head = pr.get("head") or {}
            linked.append(LinkedPullRequest(
                number=pr["number"],
                head_ref=head.get("ref"),
                head_sha=head.get("sha"),
            ))
        fields.update(
            conclusion=check_suite.get("conclusion"),
            branch_name=check_suite.get("head_branch"),
            head_sha=check_suite.get("head_sha"),
            pull_requests=linked,
        )

    return GitHubEventData(**fields)


class GitHubWebhookProvider:
    """GitHub webhook provider implementation."""
    name = Provider.GITHUB
    defer_dispatch = False

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str], secret: str) -> bool:
        signature = get_header(headers, SIGNATURE_HEADER)
        if not signature:
            logger.warning("Missing GitHub signature header")
            return False
        return verify_github_signature(secret, raw_body, signature)

    def delivery_id(self, headers: Mapping[str, str]) -> Optional[str]:
        return get_header(headers, DELIVERY_HEADER) or None

    def parse_payload(self, raw_body: bytes, headers: Mapping[str, str]) -> CommandEnvelope:
        """Parse a JSON GitHub webhook into a command envelope."""
        try:
            body = json.loads(raw_body.decode("utf-8")) if raw_body else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PayloadValidationError(f"Invalid GitHub payload: {e}") from e

        if not isinstance(body, dict):
            raise PayloadValidationError("GitHub payload must be a JSON object")

        event_name = get_header(headers, EVENT_HEADER) or "unknown"
        delivery = self.delivery_id(headers)

        try:
            data = extract_event_data(event_name, body)
        except ValidationError as e:
            raise PayloadValidationError(f"Invalid GitHub payload fields: {e.error_count()} error(s)") from e

        return CommandEnvelope(
            id=f"github-{delivery or int(time.time() * 1000)}",
            timestamp=datetime.now(timezone.utc).isoformat(),
            provider=Provider.GITHUB,
            source="github",
            event=event_name,
            data=data,
        )

    def get_event_type(self, envelope: CommandEnvelope) -> str:
        return envelope.data.event_name

    def get_event_description(self, envelope: CommandEnvelope) -> str:
        data: GitHubEventData = envelope.data
        event = data.event_name if not data.action else f"{data.event_name}.{data.action}"
        target = data.repo_full_name or "unknown repository"
        if data.number is not None:
            target = f"{target}#{data.number}"
        return f"{data.sender or 'Unknown user'} triggered {event} on {target}"

    def validate_payload(self, envelope: CommandEnvelope) -> bool:
        """Structural sanity: required identifiers present for the event family."""
        data: GitHubEventData = envelope.data
        if not data.repo_full_name or "/" not in data.repo_full_name:
            return False
        if data.event_name in ("issue_comment", "issues", "pull_request"):
            return data.number is not None
        if data.event_name == "check_suite":
            return bool(data.head_sha)
        return True

    def acknowledgment(self, envelope: CommandEnvelope) -> dict:
        return {"ok": True}


github_webhook_provider = GitHubWebhookProvider()
