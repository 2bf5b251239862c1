"""Test data factories using Faker."""

from faker import Faker
from typing import Optional

from hub.models.task import TaskContext, TaskType

fake = Faker()


def _login() -> str:
    return fake.user_name().replace("_", "-").replace(".", "-")


def create_task_context(task_type: TaskType = TaskType.ISSUE_COMMENT, **overrides) -> TaskContext:
    """Create a TaskContext on a random repository."""
    fields = {
        "repo_full_name": f"{_login()}/{fake.slug()}",
        "issue_number": fake.random_int(min=1, max=5000),
        "type": task_type,
        "user": _login(),
        "command": fake.sentence(nb_words=8),
    }
    fields.update(overrides)
    return TaskContext(**fields)


def create_issue_comment_payload(
    comment_body: str,
    author: Optional[str] = None,
    number: Optional[int] = None,
    is_pull_request: bool = False,
    repo_full_name: str = "test-owner/test-repo",
    action: str = "created"
) -> dict:
    """issue_comment webhook payload."""
    number = number or fake.random_int(min=1, max=5000)
    author = author or _login()
    issue = {
        "number": number,
        "title": fake.sentence(nb_words=5),
        "body": fake.paragraph(),
        "html_url": f"https://github.com/{repo_full_name}/issues/{number}",
    }
    if is_pull_request:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/{repo_full_name}/pulls/{number}"}
    return {
        "action": action,
        "issue": issue,
        "comment": {
            "id": fake.random_int(min=1000, max=999999),
            "body": comment_body,
            "user": {"login": author},
        },
        "repository": {"full_name": repo_full_name},
        "sender": {"login": author},
    }


def create_issue_opened_payload(
    title: str,
    body: Optional[str] = None,
    number: Optional[int] = None,
    repo_full_name: str = "test-owner/test-repo"
) -> dict:
    """issues.opened webhook payload."""
    number = number or fake.random_int(min=1, max=5000)
    return {
        "action": "opened",
        "issue": {
            "number": number,
            "title": title,
            "body": body,
            "html_url": f"https://github.com/{repo_full_name}/issues/{number}",
        },
        "repository": {"full_name": repo_full_name},
        "sender": {"login": _login()},
    }


def create_check_suite_payload(
    pr_numbers: tuple = (7,),
    conclusion: str = "success",
    head_sha: str = "0d1a26e67d8f5eaf1f6ba5c57fc3c7d91ac0fd1c",
    repo_full_name: str = "test-owner/test-repo",
    action: str = "completed"
) -> dict:
    """check_suite webhook payload with linked pull requests."""
    return {
        "action": action,
        "check_suite": {
            "head_branch": "feature-branch",
            "head_sha": head_sha,
            "conclusion": conclusion,
            "pull_requests": [
                {"number": number, "head": {"ref": "feature-branch", "sha": head_sha}}
                for number in pr_numbers
            ],
        },
        "repository": {"full_name": repo_full_name},
        "sender": {"login": "github-actions"},
    }
