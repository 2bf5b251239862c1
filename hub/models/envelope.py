"""Command envelope and dispatch models."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """Supported webhook source protocols."""
    GITHUB = "github"
    SLACK = "slack"


class HandlerKind(str, Enum):
    """Handler families, one per slash command or GitHub event family."""
    PLAN = "plan"
    BUG = "bug"
    TEST = "test"
    AUTO_TAG = "auto_tag"
    PR_REVIEW = "pr_review"
    DEFAULT_MENTION = "default_mention"


class CommandEnvelope(BaseModel):
    """Provider-agnostic representation of one inbound webhook event."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-derived or time-derived id, used for dedup and logging")
    timestamp: str = Field(..., description="ISO-8601 receive time")
    provider: Provider
    source: str = Field(..., description="Raw protocol name")
    event: str = Field(..., description="Routing key, e.g. slash_command:/plan or issue_comment")
    data: Any = Field(..., description="SlackCommandData or GitHubEventData")


class WebhookContext(BaseModel):
    """Request-scoped metadata passed alongside the envelope to handlers."""
    model_config = ConfigDict(frozen=True)

    provider: Provider
    authenticated: bool = True
    delivery_id: Optional[str] = None
    correlation_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class HandlerResponse(BaseModel):
    """Outcome of routing one envelope."""
    success: bool
    handled: bool = Field(True, description="False when no registered handler matched")
    message: Optional[str] = None
    error: Optional[str] = None
    error_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
