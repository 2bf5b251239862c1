"""Long-running HTTP server mounting the webhook endpoints."""

import logging
from http import HTTPStatus
from http.server import ThreadingHTTPServer
from typing import Optional
from urllib.parse import urlsplit

from api.webhooks import github, slack
from api.webhooks.common import ProcessRequest, WebhookRequestHandler
from hub.config import HubConfig
from hub.services.rate_limiter import SlidingWindowRateLimiter
from hub.utils.logging import setup_logging

_logger = logging.getLogger(__name__)

ROUTES: dict[str, ProcessRequest] = {
    "/webhooks/github": github.process_request,
    "/webhooks/slack": slack.process_request,
    "/api/webhooks/github": github.process_request,
    "/api/webhooks/slack": slack.process_request,
}


def resolve_route(path: str) -> Optional[ProcessRequest]:
    route = urlsplit(path).path.rstrip("/")
    return ROUTES.get(route)


class HubRequestHandler(WebhookRequestHandler):
    """Routes POSTs by path; anything else is a 404. Webhook routes are rate limited per client IP."""

    def do_POST(self):
        process_request = resolve_route(self.path)
        if process_request is None:
            self.send_json(HTTPStatus.NOT_FOUND, {"error": "not found"})
            return

        limiter: SlidingWindowRateLimiter = self.server.rate_limiter
        decision = limiter.check(self.client_address[0])
        if not decision.allowed:
            self.read_raw_body()
            self.send_json(
                HTTPStatus.TOO_MANY_REQUESTS,
                {
                    "error": "Too many webhook requests",
                    "message": "Too many webhook requests from this IP, please try again later.",
                },
                {"Retry-After": str(decision.retry_after)}
            )
            return

        self.handle_webhook(process_request)

    def do_GET(self):
        self.send_json(HTTPStatus.NOT_FOUND, {"error": "not found"})


def create_server(config: HubConfig) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((config.host, config.port), HubRequestHandler)
    server.daemon_threads = True
    server.rate_limiter = SlidingWindowRateLimiter(config.webhook_rate_limit, config.webhook_rate_limit_window_seconds)
    return server


def main() -> None:
    setup_logging()
    config = HubConfig.from_env()
    server = create_server(config)
    _logger.info(f"Webhook hub listening on http://{config.host}:{config.port}")
    for route in ROUTES:
        _logger.info(f"  POST {route}")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        _logger.info("Shutting down webhook hub")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
