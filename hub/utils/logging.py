"""
Structured logging for the hub.

Every record carries the correlation id of the webhook that caused it. The
id lives in a ContextVar, so it follows asyncio tasks and is re-established
explicitly on the background threads that run deferred Slack commands.
"""

import asyncio
import hashlib
import logging
import re
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Iterator, Optional

from ulid import ULID

from hub.utils.logging_config import LoggingConfig, get_logger

_correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# (pattern, replacement) pairs applied in order
_SECRET_PATTERNS = (
    (re.compile(r"(?i)(api[_-]?key|token|secret|password|auth)[\s:=]+([A-Za-z0-9_-]{20,})"), r"\1=[REDACTED]"),
    (re.compile(r"(ghp_|gho_|ghs_|ghu_|github_pat_)[A-Za-z0-9_]+"), "[REDACTED_GITHUB_TOKEN]"),
    (re.compile(r"sk-ant-[A-Za-z0-9_-]+"), "[REDACTED_ANTHROPIC_KEY]"),
    (re.compile(r"xox[baprs]-[A-Za-z0-9-]+", re.IGNORECASE), "[REDACTED_SLACK_TOKEN]"),
    (re.compile(r"(sha256=|v0=)[0-9a-f]{64}"), r"\1[REDACTED_SIGNATURE]"),
)


def generate_correlation_id() -> str:
    return f"req_{str(ULID()).lower()}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


@contextmanager
def correlation_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id (generated when not given) for the duration of the block."""
    if correlation_id is None:
        correlation_id = generate_correlation_id()

    token = _correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Stamp records from plain stdlib loggers with the active correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id() or "-"
        return True


def mask_sensitive_data(text: str) -> str:
    """Redact tokens, API keys and webhook signatures from text bound for logs or chat."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text

    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_user_id(user_id: str) -> str:
    if not LoggingConfig.LOG_MASK_SENSITIVE or not user_id:
        return user_id

    if len(user_id) > 12:
        hashed = hashlib.sha256(user_id.encode()).hexdigest()[:8]
        return f"{user_id[:4]}...{hashed}"
    return user_id


def sanitize_message_text(text: str, max_length: int = 500) -> Optional[str]:
    """Truncated, masked copy of user-supplied text, or None when content logging is off."""
    if not LoggingConfig.LOG_MESSAGE_CONTENT or not text:
        return None

    if len(text) > max_length:
        text = text[:max_length] + "..."
    return mask_sensitive_data(text)


class StructuredLogger:
    """Logger wrapper that takes structured fields as keyword arguments."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _get_extra(self, **kwargs: Any) -> Dict[str, Any]:
        extra: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}

        correlation_id = get_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        extra.update(kwargs)
        return extra

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._get_extra(**kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._get_extra(**kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._get_extra(**kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, extra=self._get_extra(**kwargs), exc_info=exc_info)


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(get_logger(name))


@contextmanager
def log_timing(operation_name: str, logger: Optional[StructuredLogger] = None, **context: Any) -> Iterator[None]:
    """Log the duration of a block, with a warning when it crosses the slow-operation threshold."""
    if logger is None:
        logger = get_structured_logger(__name__)

    started = time.monotonic()
    logger.debug(f"Starting {operation_name}", operation=operation_name, **context)

    try:
        yield
    finally:
        elapsed_ms = round((time.monotonic() - started) * 1000, 2)
        logger.info(f"Completed {operation_name}", operation=operation_name, processing_time_ms=elapsed_ms, **context)

        threshold = LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS
        if elapsed_ms > threshold:
            logger.warning(
                f"Slow operation detected: {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                threshold_ms=threshold,
                **context
            )


def timed(operation_name: Optional[str] = None, logger: Optional[StructuredLogger] = None):
    """Decorator form of log_timing for sync and async callables."""
    def decorator(func: Callable) -> Callable:
        op_name = operation_name or f"{func.__module__}.{func.__name__}"
        log = logger or get_structured_logger(func.__module__)

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_timing(op_name, logger=log):
                    return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with log_timing(op_name, logger=log):
                return func(*args, **kwargs)
        return sync_wrapper

    return decorator


def setup_logging() -> logging.Logger:
    """Configure process-wide logging and return the hub's root logger."""
    LoggingConfig.setup_logging(CorrelationIdFilter())
    return get_logger("hub")
