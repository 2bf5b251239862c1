"""Slack slash command models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SlackCommandData(BaseModel):
    """Form fields Slack posts for a slash command."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    token: Optional[str] = None
    team_id: Optional[str] = Field(None, description="Slack workspace ID")
    team_domain: Optional[str] = None
    channel_id: Optional[str] = Field(None, description="Slack channel ID")
    channel_name: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Slack user ID")
    user_name: Optional[str] = None
    command: Optional[str] = Field(None, description="Literal slash command, e.g. /plan")
    text: Optional[str] = Field(None, description="Free text after the command")
    response_url: Optional[str] = Field(None, description="Delayed response callback URL")
    trigger_id: Optional[str] = None
    api_app_id: Optional[str] = None
