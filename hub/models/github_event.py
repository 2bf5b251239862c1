"""GitHub webhook models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class LinkedPullRequest(BaseModel):
    """Pull request referenced by a check suite."""
    model_config = ConfigDict(frozen=True)

    number: int
    head_ref: Optional[str] = None
    head_sha: Optional[str] = None


class GitHubEventData(BaseModel):
    """Fields extracted from a GitHub webhook payload."""
    model_config = ConfigDict(frozen=True)

    event_name: str = Field(..., description="X-GitHub-Event header value")
    action: Optional[str] = None
    repo_full_name: Optional[str] = Field(None, description="owner/repo")
    sender: Optional[str] = Field(None, description="Login of the actor")

    # Issue or pull request thread
    number: Optional[int] = Field(None, description="Issue or pull request number")
    is_pull_request: bool = False
    title: Optional[str] = None
    body: Optional[str] = None
    html_url: Optional[str] = None

    # Comment
    comment_id: Optional[int] = None
    comment_body: Optional[str] = None
    comment_author: Optional[str] = None

    # Branch info
    branch_name: Optional[str] = None
    head_sha: Optional[str] = None

    # Check suite
    conclusion: Optional[str] = None
    pull_requests: list[LinkedPullRequest] = Field(default_factory=list)

    @property
    def owner(self) -> Optional[str]:
        if not self.repo_full_name or "/" not in self.repo_full_name:
            return None
        return self.repo_full_name.split("/", 1)[0]

    @property
    def repo(self) -> Optional[str]:
        if not self.repo_full_name or "/" not in self.repo_full_name:
            return None
        return self.repo_full_name.split("/", 1)[1]
