"""Hub configuration, resolved once from the environment and injected everywhere else."""

import os
from typing import Literal, Mapping, Optional
from pydantic import BaseModel, Field


def _env_flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    """Parse a boolean toggle; default-true toggles are only disabled by an explicit "false"."""
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if default:
        return value != "false"
    return value == "true"


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_str(env: Mapping[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    # Strip to remove trailing newlines from secrets mounted as env vars
    raw = env.get(key)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


class HubConfig(BaseModel):
    """Every option recognized by the hub."""
    # Inbound verification
    github_webhook_secret: str = Field("", description="Shared secret for X-Hub-Signature-256")
    slack_signing_secret: str = Field("", description="Slack app signing secret")

    # GitHub collaborator
    github_token: str = Field("", description="Token used for REST calls and inside the sandbox")
    github_api_url: str = Field("https://api.github.com", description="GitHub REST base URL")
    bot_username: str = Field("ClaudeBot", description="Login the bot comments as and is mentioned by")
    bot_email: str = Field("claude@example.com", description="Commit email inside the sandbox")
    default_github_owner: Optional[str] = Field(None, description="Owner used when text omits owner/repo")
    default_github_repo: Optional[str] = Field(
        None,
        description="Repository used when text omits owner/repo; may itself be owner/repo"
    )

    # Sandbox
    anthropic_api_key: str = Field("", description="Passed through to the sandbox")
    container_image: str = Field("claudecode:latest", description="Sandbox image")
    container_runtime: str = Field("docker", description="Container runtime executable")
    sandbox_timeout_seconds: int = Field(1800, gt=0, description="Hard wall-clock timeout per run")
    auth_dir: Optional[str] = Field(None, description="Host directory with assistant credentials")
    auth_mount_mode: Literal["readonly", "copy"] = Field(
        "readonly",
        description="Mount credentials read-only, or copy them into the per-run workspace"
    )
    workspace_root: str = Field("/tmp/claude-workspaces", description="Parent of per-run workspaces")
    session_log_dir: str = Field("logs/claude-sessions", description="Durable per-run session logs")

    # Lifecycle notifications
    slack_notification_enabled: bool = False
    slack_bot_token: str = ""
    slack_channel_id: str = "claude-bot-actions"
    notify_on_success: bool = True
    notify_on_error: bool = True
    notify_on_start: bool = False
    notify_min_duration_ms: int = Field(5000, ge=0)

    # Delivery dedup
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    dedup_enabled: bool = False

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3002
    webhook_rate_limit: int = Field(50, ge=0, description="Webhook requests per client per window; 0 disables")
    webhook_rate_limit_window_seconds: int = Field(300, gt=0)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "HubConfig":
        """Build configuration from process environment (or an explicit mapping)."""
        if env is None:
            env = os.environ

        supabase_url = _env_str(env, "SUPABASE_URL")
        supabase_key = _env_str(env, "SUPABASE_SERVICE_ROLE_KEY")

        return cls(
            github_webhook_secret=_env_str(env, "GITHUB_WEBHOOK_SECRET", ""),
            slack_signing_secret=_env_str(env, "SLACK_SIGNING_SECRET", ""),
            github_token=_env_str(env, "GITHUB_TOKEN", ""),
            github_api_url=_env_str(env, "GITHUB_API_URL", "https://api.github.com"),
            bot_username=_env_str(env, "BOT_USERNAME", "ClaudeBot"),
            bot_email=_env_str(env, "BOT_EMAIL", "claude@example.com"),
            default_github_owner=_env_str(env, "DEFAULT_GITHUB_OWNER"),
            default_github_repo=_env_str(env, "DEFAULT_GITHUB_REPO"),
            anthropic_api_key=_env_str(env, "ANTHROPIC_API_KEY", ""),
            container_image=_env_str(env, "CLAUDE_CONTAINER_IMAGE", "claudecode:latest"),
            container_runtime=_env_str(env, "CONTAINER_RUNTIME", "docker"),
            sandbox_timeout_seconds=_env_int(env, "CLAUDE_SANDBOX_TIMEOUT_SECONDS", 1800),
            auth_dir=_env_str(env, "CLAUDE_AUTH_DIR"),
            auth_mount_mode=_env_str(env, "CLAUDE_AUTH_MOUNT_MODE", "readonly").lower(),
            workspace_root=_env_str(env, "CLAUDE_WORKSPACE_ROOT", "/tmp/claude-workspaces"),
            session_log_dir=_env_str(env, "CLAUDE_SESSION_LOG_DIR", "logs/claude-sessions"),
            slack_notification_enabled=_env_flag(env, "SLACK_NOTIFICATION_ENABLED", False),
            slack_bot_token=_env_str(env, "SLACK_BOT_TOKEN", ""),
            slack_channel_id=_env_str(env, "SLACK_CHANNEL_ID", "claude-bot-actions"),
            notify_on_success=_env_flag(env, "SLACK_NOTIFY_ON_SUCCESS", True),
            notify_on_error=_env_flag(env, "SLACK_NOTIFY_ON_ERROR", True),
            notify_on_start=_env_flag(env, "SLACK_NOTIFY_ON_START", False),
            notify_min_duration_ms=_env_int(env, "SLACK_NOTIFY_MIN_DURATION_MS", 5000),
            supabase_url=supabase_url,
            supabase_service_role_key=supabase_key,
            dedup_enabled=_env_flag(env, "WEBHOOK_DEDUP_ENABLED", bool(supabase_url and supabase_key)),
            host=_env_str(env, "HUB_HOST", "0.0.0.0"),
            port=_env_int(env, "PORT", 3002),
            webhook_rate_limit=_env_int(env, "WEBHOOK_RATE_LIMIT", 50),
            webhook_rate_limit_window_seconds=_env_int(env, "WEBHOOK_RATE_LIMIT_WINDOW_SECONDS", 300),
        )
