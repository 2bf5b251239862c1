"""Task context and result models for sandboxed executions."""

import time
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

RESPONSE_PREVIEW_LIMIT = 500


def now_ms() -> int:
    return int(time.time() * 1000)


class TaskType(str, Enum):
    """Operation types; each maps to a sandbox permission profile."""
    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST_COMMENT = "pull_request_comment"
    PR_REVIEW = "pr_review"
    MANUAL_PR_REVIEW = "manual_pr_review"
    AUTO_TAG = "auto_tag"
    CHECK_SUITE = "check_suite"
    SLASH_COMMAND = "slash_command"


class TaskContext(BaseModel):
    """Operational description of one sandbox execution. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    repo_full_name: str = Field(..., description="owner/repo")
    issue_number: Optional[int] = Field(None, description="Issue number (exclusive with pull_request_number)")
    pull_request_number: Optional[int] = Field(None, description="PR number (exclusive with issue_number)")
    type: TaskType
    user: str = Field(..., description="Triggering user")
    command: str = Field(..., description="Instruction for the sandbox")
    start_time: int = Field(default_factory=now_ms, description="Acceptance time, epoch ms")
    branch_name: Optional[str] = None

    def model_post_init(self, __context: object) -> None:
        """Validate that at most one of issue_number and pull_request_number is set."""
        if self.issue_number is not None and self.pull_request_number is not None:
            raise ValueError("issue_number and pull_request_number are mutually exclusive")

    @property
    def number(self) -> Optional[int]:
        if self.pull_request_number is not None:
            return self.pull_request_number
        return self.issue_number

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request_number is not None

    @property
    def thread_label(self) -> str:
        if self.pull_request_number is not None:
            return f"PR #{self.pull_request_number}"
        if self.issue_number is not None:
            return f"Issue #{self.issue_number}"
        return "N/A"

    @property
    def github_url(self) -> str:
        base = f"https://github.com/{self.repo_full_name}"
        if self.pull_request_number is not None:
            return f"{base}/pull/{self.pull_request_number}"
        if self.issue_number is not None:
            return f"{base}/issues/{self.issue_number}"
        return base

    def elapsed_ms(self) -> int:
        return max(0, now_ms() - self.start_time)


class TaskResult(BaseModel):
    """Outcome of one execution; error is present iff success is False."""
    success: bool
    response_preview: Optional[str] = Field(None, description="Truncated extracted answer")
    github_url: str = Field(..., description="Deep link to the origin thread or created artifact")
    duration: int = Field(..., ge=0, description="Milliseconds since task acceptance")
    error: Optional[str] = None
    error_id: Optional[str] = Field(None, description="Stable id shown to users and logged")

    def model_post_init(self, __context: object) -> None:
        """Validate that exactly one of response_preview and error is meaningful."""
        if self.success and self.error is not None:
            raise ValueError("error must be null for a successful result")
        if not self.success and not self.error:
            raise ValueError("error is required for a failed result")

    @classmethod
    def succeeded(
        cls,
        context: TaskContext,
        response: str,
        github_url: Optional[str] = None
    ) -> "TaskResult":
        preview = response
        if len(preview) > RESPONSE_PREVIEW_LIMIT:
            preview = preview[:RESPONSE_PREVIEW_LIMIT] + "..."
        return cls(
            success=True,
            response_preview=preview,
            github_url=github_url or context.github_url,
            duration=context.elapsed_ms(),
        )

    @classmethod
    def failed(
        cls,
        context: TaskContext,
        error: str,
        error_id: Optional[str] = None,
        github_url: Optional[str] = None
    ) -> "TaskResult":
        return cls(
            success=False,
            github_url=github_url or context.github_url,
            duration=context.elapsed_ms(),
            error=error,
            error_id=error_id,
        )


class SandboxRun(BaseModel):
    """A finished sandbox run: the full answer (when any), the raw output and the result."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    response: Optional[str] = None
    output: str = ""
    result: TaskResult
    exception: Optional[BaseException] = None
