"""
Logging helpers for the API Key Service.

Provides:
1. ContextAwareLogger, which renders ``extra`` fields into the message as
   pipe-delimited ``key=value`` pairs so they survive any formatter
2. TenantContextFilter, which tags records with the current tenant
3. configure_logging / get_logger for process-wide setup
"""

import logging
import sys
from typing import Optional, Union

from ..config import get_config

_service_logger = None


class ContextAwareLogger:
    """
    Logger wrapper that formats extra attributes in message while preserving them.
    """

    def __init__(self, logger):
        """Initialize with an existing logger."""
        self.logger = logger

    def _log_with_formatted_extra(self, level, msg, **kwargs):
        """
        Log with extra data formatted into the message.

        Args:
            level: Logging level method to use
            msg: Log message
            **kwargs: Additional arguments including 'extra' and 'exc_info'
        """
        extra = kwargs.pop("extra", {}) or {}

        if extra:
            extra_str = " | ".join([f"{k}={v}" for k, v in extra.items()])
            full_msg = f"{msg} | {extra_str}"
        else:
            full_msg = msg

        log_method = getattr(self.logger, level)
        log_method(full_msg, extra=extra, **kwargs)

    def set_level(self, level):
        """Set the logging level of the underlying logger."""
        self.logger.setLevel(level)

    def info(self, msg, **kwargs):
        """Log at INFO level with formatted extra."""
        self._log_with_formatted_extra("info", msg, **kwargs)

    def error(self, msg, **kwargs):
        """Log at ERROR level with formatted extra."""
        self._log_with_formatted_extra("error", msg, **kwargs)

    def warning(self, msg, **kwargs):
        """Log at WARNING level with formatted extra."""
        self._log_with_formatted_extra("warning", msg, **kwargs)

    def debug(self, msg, **kwargs):
        """Log at DEBUG level with formatted extra."""
        self._log_with_formatted_extra("debug", msg, **kwargs)

    def exception(self, msg, **kwargs):
        """Log exception with formatted extra."""
        self._log_with_formatted_extra("exception", msg, **kwargs)


class TenantContextFilter(logging.Filter):
    """
    Logging filter that adds tenant context information to log records.
    """

    def filter(self, record):
        """
        Add tenant_id to the log record if available in the current context.

        Returns:
            True to include the record in the log output
        """
        # Lazy import to avoid circular dependency
        from ..context.tenant_context import TenantContext

        tenant_id = TenantContext.get_current_tenant_id()
        if tenant_id:
            record.tenant_id = tenant_id

        return True


def _resolve_level(log_level: Optional[Union[int, str]]) -> int:
    if log_level is None:
        log_level = get_config().logging.level
    if isinstance(log_level, str):
        return getattr(logging, log_level.upper(), logging.INFO)
    return log_level


def configure_logging(
    service_name: str,
    log_level: Optional[Union[int, str]] = None,
    stream=None,
    log_format: Optional[str] = None,
) -> ContextAwareLogger:
    """
    Configure the service logger with a console handler.

    Args:
        service_name: Name used for the underlying logger ("service.<name>")
        log_level: Logging level (default: from config)
        stream: Output stream (default: stdout)
        log_format: Formatter pattern (default: ``logging.format`` from config)

    Returns:
        The configured logger wrapped with ContextAwareLogger
    """
    global _service_logger

    level = _resolve_level(log_level)

    logger = logging.getLogger(f"service.{service_name}")
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format or get_config().logging.format))
    console_handler.addFilter(TenantContextFilter())
    logger.addHandler(console_handler)

    wrapped_logger = ContextAwareLogger(logger)
    wrapped_logger.info("Service logger configured", extra={"service_name": service_name})

    _service_logger = wrapped_logger
    return wrapped_logger


def get_logger(log_level: Optional[Union[int, str]] = None) -> ContextAwareLogger:
    """
    Get the service logger, falling back to a wrapped root logger.

    Args:
        log_level: Optional log level to set on the fallback logger
    """
    if _service_logger is not None:
        return _service_logger

    logger = logging.getLogger()
    logger.setLevel(_resolve_level(log_level))
    return ContextAwareLogger(logger)


def reset_logging() -> None:
    """Drop the configured service logger (used by tests)."""
    global _service_logger
    _service_logger = None
