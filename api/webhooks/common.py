"""HTTP plumbing shared by the webhook endpoints."""

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from typing import Any, Callable

_logger = logging.getLogger(__name__)

ProcessRequest = Callable[[bytes, dict[str, str]], tuple[int, dict[str, str], dict[str, Any]]]


class WebhookRequestHandler(BaseHTTPRequestHandler):
    """
    Reads the raw body untouched and hands it to a process_request function.

    Subclasses set process_request; the body is never decoded here so the
    signature check sees exactly the bytes that were signed.
    """
    process_request: ProcessRequest

    def log_message(self, format: str, *args: Any) -> None:
        _logger.info(f"http {self.address_string()} - {format % args}")

    def read_raw_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", 0) or 0)
        return self.rfile.read(content_length) if content_length > 0 else b""

    def send_json(self, status: int, body: dict[str, Any], headers: dict[str, str] | None = None) -> None:
        data = json.dumps(body).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(data)

    def handle_webhook(self, process_request: ProcessRequest) -> None:
        try:
            raw_body = self.read_raw_body()
            status, headers, body = process_request(raw_body, dict(self.headers.items()))
        except Exception as e:
            _logger.error(f"Error processing webhook: {e}", exc_info=True)
            self.send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "internal server error"})
            return
        self.send_json(status, body, headers)

    def do_POST(self):
        self.handle_webhook(type(self).process_request)

    def do_GET(self):
        self.send_json(HTTPStatus.METHOD_NOT_ALLOWED, {"error": "method not allowed"})
