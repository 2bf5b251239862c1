"""Error handling utilities."""

from typing import Optional


class HubError(Exception):
    """Base exception for the webhook hub."""
    pass


class SignatureVerificationError(HubError):
    """Webhook signature verification failed."""
    pass


class PayloadValidationError(HubError):
    """Inbound payload is malformed or missing required identifiers."""
    pass


class SandboxError(HubError):
    """Sandboxed execution failed."""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.output = output


class SandboxTimeoutError(SandboxError):
    """Sandbox exceeded its wall-clock timeout and was killed."""
    pass


class SandboxExecutionError(SandboxError):
    """Sandbox process exited with a non-zero status."""
    pass


class ResponseExtractionError(HubError):
    """No answer could be extracted from the sandbox output."""
    pass


class GitHubApiError(HubError):
    """GitHub REST operation error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotificationError(HubError):
    """Operational notification delivery error."""
    pass


class SupabaseError(HubError):
    """Supabase operation error."""
    pass
