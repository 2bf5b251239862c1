"""Logging configuration read from the environment."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "slack_sdk", "aiohttp", "supabase", "postgrest")


class LoggingConfig:
    """Logging options; evaluated once at import."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_MESSAGE_CONTENT = os.environ.get("LOG_MESSAGE_CONTENT", "true").lower() == "true"
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    # Sandbox runs routinely take minutes
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "600000"))

    @classmethod
    def level(cls) -> int:
        return getattr(logging, cls.LOG_LEVEL, logging.INFO)

    @classmethod
    def build_formatter(cls) -> logging.Formatter:
        if cls.LOG_FORMAT == "json":
            return jsonlogger.JsonFormatter(
                "%(timestamp)s %(levelname)s %(name)s %(correlation_id)s %(message)s",
                timestamp=True
            )
        return logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"
        )

    @classmethod
    def setup_logging(cls, *filters: logging.Filter) -> None:
        """
        Route all records to stdout in the configured format.

        The formatters reference correlation_id, so callers pass a filter that
        guarantees the attribute on every record.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(cls.level())
        root_logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(cls.level())
        handler.setFormatter(cls.build_formatter())
        for record_filter in filters:
            handler.addFilter(record_filter)
        root_logger.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
