"""
Execution sandbox adapter.

Each task runs the assistant CLI inside a throwaway container. The adapter
scopes the container's tool allow-list from the task type, passes the task
through environment variables, bounds the run with a hard timeout and hands
the combined output to the response extractor.
"""

import asyncio
import os
import re
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple, Optional, Union

from ulid import ULID

from hub.config import HubConfig
from hub.models.task import SandboxRun, TaskContext, TaskResult, TaskType
from hub.services.response_extractor import extract_response
from hub.utils.errors import HubError, SandboxExecutionError, SandboxTimeoutError
from hub.utils.logging import get_structured_logger, log_timing, mask_sensitive_data

logger = get_structured_logger(__name__)

CONTAINER_WORKSPACE = "/workspace"
CONTAINER_AUTH_DIR = "/home/node/.claude"
READ_CHUNK_BYTES = 64 * 1024

# Credentials are forwarded by name only so they never appear in the process list
SECRET_ENV_KEYS = ("GITHUB_TOKEN", "ANTHROPIC_API_KEY")


class PermissionProfile(NamedTuple):
    """Allow-list of assistant tools granted to one sandbox run."""
    name: str
    allowed_tools: tuple[str, ...]

    @property
    def allowed_tools_arg(self) -> str:
        return ",".join(self.allowed_tools)


READ_ONLY = PermissionProfile("read_only", ("Read",))

AUTO_TAG = PermissionProfile(
    "auto_tag",
    (
        "Read",
        "Bash(gh issue edit:*)",
        "Bash(gh issue view:*)",
        "Bash(gh label list:*)",
    ),
)

# Review comments are posted by the hub; the sandbox only inspects
PR_REVIEW = PermissionProfile(
    "pr_review",
    (
        "Read",
        "Bash(gh pr view:*)",
        "Bash(gh pr diff:*)",
        "Bash(git log:*)",
        "Bash(git show:*)",
        "Bash(git diff:*)",
        "Bash(git blame:*)",
    ),
)

FULL_ACCESS = PermissionProfile(
    "full_access",
    (
        "Bash",
        "Create",
        "Edit",
        "Read",
        "Write",
        "GitHub",
        "Bash(gh pr:*)",
        "Bash(gh issue:*)",
    ),
)

_PROFILES: dict[TaskType, PermissionProfile] = {
    TaskType.AUTO_TAG: AUTO_TAG,
    TaskType.PR_REVIEW: PR_REVIEW,
    TaskType.MANUAL_PR_REVIEW: PR_REVIEW,
    TaskType.ISSUE_COMMENT: FULL_ACCESS,
    TaskType.PULL_REQUEST_COMMENT: FULL_ACCESS,
    TaskType.CHECK_SUITE: FULL_ACCESS,
    TaskType.SLASH_COMMAND: FULL_ACCESS,
}


def permissions_for(task_type: Union[TaskType, str]) -> PermissionProfile:
    """
    Resolve the permission profile for a task type.

    Unknown types get the read-only profile, never full access.
    """
    try:
        key = TaskType(task_type)
    except ValueError:
        logger.warning("Unrecognized task type; using read-only profile", task_type=str(task_type))
        return READ_ONLY
    return _PROFILES.get(key, READ_ONLY)


def _run_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def _run_key(context: TaskContext) -> str:
    number = context.number if context.number is not None else "none"
    return f"{context.repo_full_name.replace('/', '_')}_{number}"


def build_environment(context: TaskContext, config: HubConfig, profile: PermissionProfile) -> dict[str, str]:
    """Environment variables describing the task to the sandbox entrypoint."""
    return {
        "REPO_FULL_NAME": context.repo_full_name,
        "ISSUE_NUMBER": str(context.number) if context.number is not None else "",
        "IS_PULL_REQUEST": "true" if context.is_pull_request else "false",
        "BRANCH_NAME": context.branch_name or "",
        "OPERATION_TYPE": context.type.value,
        "COMMAND": context.command,
        "ALLOWED_TOOLS": profile.allowed_tools_arg,
        "GITHUB_TOKEN": config.github_token,
        "ANTHROPIC_API_KEY": config.anthropic_api_key,
        "BOT_USERNAME": config.bot_username,
        "BOT_EMAIL": config.bot_email,
    }


def build_command(
    config: HubConfig,
    container_name: str,
    environment: dict[str, str],
    workspace: Path
) -> list[str]:
    """Container runtime argv. Secret values stay out of argv and come from the process env."""
    command = [config.container_runtime, "run", "--rm", "--name", container_name]

    for key, value in environment.items():
        if key in SECRET_ENV_KEYS:
            command.extend(["-e", key])
        else:
            command.extend(["-e", f"{key}={value}"])

    command.extend(["-v", f"{workspace}:{CONTAINER_WORKSPACE}"])

    if config.auth_dir and config.auth_mount_mode == "readonly":
        command.extend(["-v", f"{config.auth_dir}:{CONTAINER_AUTH_DIR}:ro"])

    command.append(config.container_image)
    return command


class SandboxExecutor:
    """Runs one task per container and turns the outcome into a TaskResult."""

    def __init__(self, config: HubConfig):
        self.config = config

    def _prepare_workspace(self, context: TaskContext) -> Path:
        """Create an isolated per-run workspace, copying credentials in when configured."""
        root = Path(self.config.workspace_root)
        root.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=f"{_run_key(context)}_{_run_stamp()}_", dir=root))

        auth_dir = self.config.auth_dir
        if auth_dir and self.config.auth_mount_mode == "copy":
            if os.path.isdir(auth_dir):
                shutil.copytree(auth_dir, workspace / ".claude")
            else:
                logger.warning("Sandbox auth directory not found; skipping credential copy", auth_dir=auth_dir)

        return workspace

    def _write_session_log(self, context: TaskContext, output: str, status: str) -> Optional[Path]:
        log_dir = Path(self.config.session_log_dir)
        path = log_dir / f"{_run_key(context)}_{_run_stamp()}.log"
        header = (
            f"Repository: {context.repo_full_name}\n"
            f"Thread: {context.thread_label}\n"
            f"Type: {context.type.value}\n"
            f"User: {context.user}\n"
            f"Status: {status}\n"
            f"Command: {mask_sensitive_data(context.command)}\n"
            f"{'=' * 60}\n"
        )
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(header + mask_sensitive_data(output), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write sandbox session log", path=str(path), error=str(e))
            return None
        return path

    async def _kill_container(self, container_name: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.container_runtime, "kill", container_name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await process.wait()
        except OSError as e:
            logger.warning("Failed to kill sandbox container", container_name=container_name, error=str(e))

    async def _run_process(self, command: list[str], env: dict[str, str], container_name: str) -> tuple[int, str]:
        """Run the container, collecting output incrementally so a timeout keeps what was printed."""
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
            )
        except FileNotFoundError as e:
            raise SandboxExecutionError(f"Container runtime not found: {self.config.container_runtime}") from e

        chunks: list[bytes] = []

        async def _collect() -> int:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                chunks.append(chunk)
            return await process.wait()

        timeout = self.config.sandbox_timeout_seconds
        try:
            returncode = await asyncio.wait_for(_collect(), timeout=timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await self._kill_container(container_name)
            output = b"".join(chunks).decode("utf-8", errors="replace")
            raise SandboxTimeoutError(f"Sandbox timed out after {timeout}s", output=output)

        return returncode, b"".join(chunks).decode("utf-8", errors="replace")

    async def execute(self, context: TaskContext) -> str:
        """
        Run the sandbox for a task and return its combined output.

        Raises SandboxTimeoutError or SandboxExecutionError; every run,
        successful or not, leaves a session log behind.
        """
        profile = permissions_for(context.type)
        environment = build_environment(context, self.config, profile)
        workspace = self._prepare_workspace(context)
        container_name = f"claude-{re.sub(r'[^a-zA-Z0-9_.-]', '-', _run_key(context))}-{str(ULID()).lower()}"
        command = build_command(self.config, container_name, environment, workspace)

        process_env = dict(os.environ)
        process_env.update({key: environment[key] for key in SECRET_ENV_KEYS})

        logger.info(
            "Starting sandbox",
            repo=context.repo_full_name,
            thread_label=context.thread_label,
            task_type=context.type.value,
            permission_profile=profile.name,
            container_name=container_name
        )

        try:
            with log_timing("sandbox_run", logger=logger, container_name=container_name):
                returncode, output = await self._run_process(command, process_env, container_name)
        except SandboxTimeoutError as e:
            path = self._write_session_log(context, e.output or "", "timeout")
            logger.error("Sandbox timed out", container_name=container_name, session_log=str(path))
            raise
        finally:
            shutil.rmtree(workspace, ignore_errors=True)

        status = "success" if returncode == 0 else f"exit {returncode}"
        path = self._write_session_log(context, output, status)

        if returncode != 0:
            logger.error(
                "Sandbox exited with an error",
                container_name=container_name,
                returncode=returncode,
                session_log=str(path)
            )
            raise SandboxExecutionError(f"Sandbox exited with status {returncode}", output=output)

        logger.info("Sandbox finished", container_name=container_name, output_length=len(output))
        return output

    async def run_task(self, context: TaskContext) -> SandboxRun:
        """
        Execute a task and extract its answer. Never raises: failures come
        back as a failed TaskResult carrying an error id.
        """
        output = ""
        try:
            output = await self.execute(context)
            extracted = extract_response(output)
            return SandboxRun(
                response=extracted.text,
                output=output,
                result=TaskResult.succeeded(context, extracted.text),
            )
        except HubError as e:
            error_id = f"err-{ULID()}"
            logger.error(
                "Sandbox task failed",
                repo=context.repo_full_name,
                thread_label=context.thread_label,
                error=str(e),
                error_type=type(e).__name__,
                error_id=error_id
            )
            return SandboxRun(
                output=getattr(e, "output", None) or output,
                result=TaskResult.failed(context, str(e), error_id=error_id),
                exception=e,
            )
        except Exception as e:
            error_id = f"err-{ULID()}"
            logger.error(
                "Unexpected sandbox failure",
                exc_info=True,
                repo=context.repo_full_name,
                thread_label=context.thread_label,
                error_id=error_id
            )
            return SandboxRun(
                output=output,
                result=TaskResult.failed(context, f"Unexpected sandbox failure: {e}", error_id=error_id),
                exception=e,
            )
