"""Provider and handler registry: verifies, normalizes and routes inbound webhooks."""

from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from hub.config import HubConfig
from hub.models.envelope import CommandEnvelope, HandlerKind, HandlerResponse, Provider, WebhookContext
from hub.services.notification_service import NotificationService
from hub.services.webhook_dedup import generate_event_id, is_duplicate_event
from hub.utils.errors import PayloadValidationError, SignatureVerificationError
from hub.utils.logging import get_correlation_id, get_structured_logger, log_timing

logger = get_structured_logger(__name__)


class WebhookProvider(Protocol):
    name: Provider
    defer_dispatch: bool

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str], secret: str) -> bool: ...

    def delivery_id(self, headers: Mapping[str, str]) -> Optional[str]: ...

    def parse_payload(self, raw_body: bytes, headers: Mapping[str, str]) -> CommandEnvelope: ...

    def get_event_type(self, envelope: CommandEnvelope) -> str: ...

    def get_event_description(self, envelope: CommandEnvelope) -> str: ...

    def validate_payload(self, envelope: CommandEnvelope) -> bool: ...

    def acknowledgment(self, envelope: CommandEnvelope) -> dict: ...


class WebhookHandler(Protocol):
    kind: HandlerKind
    event: str

    def can_handle(self, envelope: CommandEnvelope) -> bool: ...

    async def handle(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse: ...


class HandlerRegistration(BaseModel):
    """One entry in a (provider, event) bucket."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: HandlerKind
    event: str
    can_handle: Callable[[CommandEnvelope], bool]
    handle: Callable[[CommandEnvelope, WebhookContext], Awaitable[HandlerResponse]]

    @classmethod
    def from_handler(cls, handler: WebhookHandler) -> "HandlerRegistration":
        return cls(
            kind=handler.kind,
            event=handler.event,
            can_handle=handler.can_handle,
            handle=handler.handle,
        )


class WebhookOutcome(BaseModel):
    """HTTP-level result of receiving one webhook."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int
    body: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    envelope: Optional[CommandEnvelope] = None
    context: Optional[WebhookContext] = None
    response: Optional[HandlerResponse] = None
    deferred: bool = Field(False, description="Dispatch still pending; caller runs it in the background")


class WebhookRegistry:
    """
    Holds the supported providers and routes envelopes to handlers.

    Handlers are bucketed by (provider, event). Within a bucket the first
    handler whose can_handle accepts the envelope wins, in registration order.
    The registry never deduplicates redeliveries at dispatch time; that is
    handled before dispatch (delivery ids) or by handlers (e.g. reviewed SHAs).
    """

    def __init__(self, config: HubConfig, notifier: Optional[NotificationService] = None):
        self.config = config
        self.notifier = notifier
        self._providers: dict[Provider, WebhookProvider] = {}
        self._handlers: dict[tuple[Provider, str], list[HandlerRegistration]] = {}

    def register_provider(self, provider: WebhookProvider) -> None:
        self._providers[Provider(provider.name)] = provider
        logger.info("Webhook provider registered", provider=Provider(provider.name).value)

    def get_provider(self, name: Union[Provider, str]) -> Optional[WebhookProvider]:
        try:
            return self._providers.get(Provider(name))
        except ValueError:
            return None

    def register_handler(
        self,
        provider_name: Union[Provider, str],
        registration: Union[HandlerRegistration, WebhookHandler]
    ) -> None:
        if not isinstance(registration, HandlerRegistration):
            registration = HandlerRegistration.from_handler(registration)
        key = (Provider(provider_name), registration.event)
        self._handlers.setdefault(key, []).append(registration)
        logger.info(
            "Webhook handler registered",
            provider=key[0].value,
            event=registration.event,
            handler_kind=registration.kind.value,
            position=len(self._handlers[key])
        )

    def get_handlers(self, provider_name: Union[Provider, str], event: str) -> list[HandlerRegistration]:
        return list(self._handlers.get((Provider(provider_name), event), []))

    def secret_for(self, provider: Provider) -> str:
        """Signing secret for a provider; raises SignatureVerificationError when unset."""
        secrets = {
            Provider.GITHUB: self.config.github_webhook_secret,
            Provider.SLACK: self.config.slack_signing_secret,
        }
        secret = secrets.get(Provider(provider))
        if not secret:
            raise SignatureVerificationError(f"No signing secret configured for {Provider(provider).value}")
        return secret

    async def dispatch(self, envelope: CommandEnvelope, context: WebhookContext) -> HandlerResponse:
        """Route an envelope to the first matching handler."""
        provider = self.get_provider(envelope.provider)
        event = provider.get_event_type(envelope) if provider else envelope.event

        for registration in self._handlers.get((envelope.provider, event), []):
            if not registration.can_handle(envelope):
                continue

            logger.info(
                "Dispatching webhook to handler",
                provider=envelope.provider.value,
                event=event,
                handler_kind=registration.kind.value,
                envelope_id=envelope.id
            )
            try:
                with log_timing(
                    "handle_webhook",
                    logger=logger,
                    handler_kind=registration.kind.value,
                    envelope_id=envelope.id
                ):
                    return await registration.handle(envelope, context)
            except Exception as e:
                error_id = f"err-{ULID()}"
                logger.error(
                    "Handler raised unexpectedly",
                    exc_info=True,
                    handler_kind=registration.kind.value,
                    envelope_id=envelope.id,
                    error=str(e),
                    error_id=error_id
                )
                return HandlerResponse(success=False, error="Internal handler error", error_id=error_id)

        logger.debug(
            "No handler matched webhook",
            provider=envelope.provider.value,
            event=event,
            envelope_id=envelope.id
        )
        return HandlerResponse(success=True, handled=False, message=f"No handler for {event}")

    async def drain(self) -> None:
        """Let fire-and-forget work scheduled on this loop finish before it closes."""
        if self.notifier is not None:
            await self.notifier.drain()

    async def receive(
        self,
        provider_name: Union[Provider, str],
        raw_body: bytes,
        headers: Mapping[str, str]
    ) -> WebhookOutcome:
        """
        Run the inbound pipeline for one request.

        Signature verification runs on the untouched raw body before any
        parsing. Only a verified, structurally valid, non-duplicate event is
        dispatched; deferred providers get an immediate acknowledgment and the
        caller runs dispatch afterwards.
        """
        provider = self.get_provider(provider_name)
        if provider is None:
            logger.warning("Webhook for unknown provider", provider=str(provider_name))
            return WebhookOutcome(status_code=404, body={"error": "unknown provider"})

        try:
            secret = self.secret_for(provider.name)
        except SignatureVerificationError as e:
            logger.error("Webhook rejected", provider=provider.name.value, error=str(e))
            return WebhookOutcome(status_code=401, body={"error": "invalid signature"})

        if not provider.verify_signature(raw_body, headers, secret):
            logger.warning(
                "Webhook signature verification failed",
                provider=provider.name.value,
                body_length=len(raw_body)
            )
            return WebhookOutcome(status_code=401, body={"error": "invalid signature"})

        try:
            envelope = provider.parse_payload(raw_body, headers)
        except PayloadValidationError as e:
            logger.warning("Webhook payload rejected", provider=provider.name.value, error=str(e))
            return WebhookOutcome(status_code=400, body={"error": "invalid payload"})

        if not provider.validate_payload(envelope):
            logger.warning(
                "Webhook payload failed validation",
                provider=provider.name.value,
                event=envelope.event,
                envelope_id=envelope.id
            )
            return WebhookOutcome(status_code=400, body={"error": "invalid payload"}, envelope=envelope)

        logger.info(
            "Webhook received",
            provider=provider.name.value,
            event=envelope.event,
            envelope_id=envelope.id,
            description=provider.get_event_description(envelope)
        )

        if self.config.dedup_enabled:
            event_id = generate_event_id(envelope, raw_body)
            if await is_duplicate_event(event_id, self.config):
                return WebhookOutcome(
                    status_code=200,
                    body={"ok": True, "duplicate": True},
                    headers={"X-Hub-Ignored-Retry": "true"},
                    envelope=envelope
                )

        context = WebhookContext(
            provider=provider.name,
            delivery_id=provider.delivery_id(headers),
            correlation_id=get_correlation_id(),
        )

        if provider.defer_dispatch:
            return WebhookOutcome(
                status_code=200,
                body=provider.acknowledgment(envelope),
                envelope=envelope,
                context=context,
                deferred=True
            )

        response = await self.dispatch(envelope, context)
        body = {"ok": response.success, "handled": response.handled}
        if response.message:
            body["message"] = response.message
        if response.error_id:
            body["error_id"] = response.error_id
        return WebhookOutcome(status_code=200, body=body, envelope=envelope, context=context, response=response)
