"""
Registry wiring.

Order matters: within one (provider, event) bucket the first handler whose
can_handle accepts the envelope wins.
"""

from typing import Optional

from hub.config import HubConfig
from hub.models.envelope import Provider
from hub.providers.github.handlers.auto_tag import AutoTagHandler
from hub.providers.github.handlers.mention import DefaultMentionHandler
from hub.providers.github.handlers.pr_review import PullRequestReviewHandler
from hub.providers.github.provider import github_webhook_provider
from hub.providers.slack.handlers.bug import BugHandler
from hub.providers.slack.handlers.plan import PlanHandler
from hub.providers.slack.handlers.test import TestHandler
from hub.providers.slack.provider import slack_webhook_provider
from hub.services.github_service import GitHubService
from hub.services.notification_service import NotificationService, get_notification_service
from hub.services.sandbox import SandboxExecutor
from hub.services.webhook_registry import WebhookRegistry

SLACK_HANDLERS = (PlanHandler, BugHandler, TestHandler)
GITHUB_HANDLERS = (AutoTagHandler, PullRequestReviewHandler, DefaultMentionHandler)


def build_registry(
    config: HubConfig,
    sandbox: Optional[SandboxExecutor] = None,
    github: Optional[GitHubService] = None,
    notifier: Optional[NotificationService] = None
) -> WebhookRegistry:
    """Create a registry with both providers and every handler registered."""
    sandbox = sandbox or SandboxExecutor(config)
    github = github or GitHubService(config)
    notifier = notifier or get_notification_service(config)

    registry = WebhookRegistry(config, notifier=notifier)
    registry.register_provider(github_webhook_provider)
    registry.register_provider(slack_webhook_provider)

    for handler_class in SLACK_HANDLERS:
        registry.register_handler(Provider.SLACK, handler_class(config, sandbox, github, notifier))

    for handler_class in GITHUB_HANDLERS:
        registry.register_handler(Provider.GITHUB, handler_class(config, sandbox, github, notifier))

    return registry


_registry: Optional[WebhookRegistry] = None


def get_registry() -> WebhookRegistry:
    """Get or create the process-wide registry from environment configuration."""
    global _registry
    if _registry is None:
        _registry = build_registry(HubConfig.from_env())
    return _registry
