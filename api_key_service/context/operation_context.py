"""
Operation context for handling cross-cutting concerns.

This module provides context management for operations: ENTER/EXIT logging
with operation and correlation ids, duration, and error enrichment. Call
arguments are never logged, since several operations receive plaintext
secrets.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, Union, cast

from ..exceptions import BaseError, clear_correlation_id, get_correlation_id, set_correlation_id
from ..utils.logger import ContextAwareLogger, get_logger
from .tenant_context import TenantContext


class OperationContext:
    """Context for a specific operation."""

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.operation_id = str(uuid.uuid4())

        inherited = get_correlation_id()
        # Only the outermost operation owns (and later clears) the correlation id
        self.owns_correlation_id = correlation_id is None and inherited is None
        self.correlation_id = correlation_id or inherited or str(uuid.uuid4())
        set_correlation_id(self.correlation_id)

        self.context = context
        self.context["operation_id"] = self.operation_id
        self.context["correlation_id"] = self.correlation_id

        self.start_time = time.time()

    @property
    def duration_ms(self) -> float:
        """Get the operation duration in milliseconds."""
        return (time.time() - self.start_time) * 1000

    def add_context(self, **kwargs) -> None:
        """Add additional context information."""
        self.context.update(kwargs)

    def close(self) -> None:
        if self.owns_correlation_id:
            clear_correlation_id()


class OperationHandler:
    """Handles operation logging and error enrichment."""

    def __init__(self, logger: Optional[Union[logging.Logger, ContextAwareLogger]] = None):
        self.logger = logger if logger is not None else get_logger()

    @contextmanager
    def operation(self, name: str, **context):
        """Context manager for operations."""
        tenant_id = TenantContext.get_current_tenant_id()
        if tenant_id and "tenant_id" not in context:
            context["tenant_id"] = tenant_id

        op_ctx = OperationContext(name, **context)

        self.logger.info(
            f"ENTER: {name}",
            extra={
                **context,
                "operation_id": op_ctx.operation_id,
                "correlation_id": op_ctx.correlation_id,
            },
        )

        try:
            yield op_ctx

            self.logger.info(
                f"EXIT: {name}",
                extra={
                    **context,
                    "operation_id": op_ctx.operation_id,
                    "correlation_id": op_ctx.correlation_id,
                    "duration_ms": op_ctx.duration_ms,
                    "status": "success",
                },
            )

        except BaseError as e:
            e.add_context(
                operation_name=name,
                operation_id=op_ctx.operation_id,
                operation_duration_ms=op_ctx.duration_ms,
            )

            log_context = {
                **context,
                "operation_id": op_ctx.operation_id,
                "correlation_id": op_ctx.correlation_id,
                "duration_ms": op_ctx.duration_ms,
                "error_id": e.error_id,
                "error_code": e.error_code.value,
                "status": "error",
            }
            message = f"ERROR: {name} -> {e.error_code.value}: {e.message}"
            # Client-caused failures (denials, conflicts) are expected traffic
            if e.status_code >= 500:
                self.logger.error(message, extra=log_context)
            else:
                self.logger.warning(message, extra=log_context)
            raise

        except Exception as e:
            self.logger.exception(
                f"ERROR: {name} -> {type(e).__name__}: {str(e)}",
                extra={
                    **context,
                    "operation_id": op_ctx.operation_id,
                    "correlation_id": op_ctx.correlation_id,
                    "duration_ms": op_ctx.duration_ms,
                    "error_type": type(e).__name__,
                    "status": "error",
                },
            )
            raise

        finally:
            op_ctx.close()


# Function decorator
F = TypeVar("F", bound=Callable[..., Any])


def operation(name: Union[Optional[str], Callable] = None):
    """
    Decorator for operations.

    Args:
        name: Optional operation name. If not provided, a name will be generated
             from class and function information.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            if name is not None:
                op_name = name
            else:
                op_name = func.__name__

                # Add class name if it's a method (first arg is self)
                if args and hasattr(args[0], func.__name__):
                    op_name = f"{args[0].__class__.__name__}.{op_name}"

                module_name = func.__module__.split(".")[-1]
                op_name = f"{module_name}.{op_name}"

            context = {"source_module": func.__module__}
            if args and hasattr(args[0], func.__name__):
                context["class"] = args[0].__class__.__name__

            handler = OperationHandler()
            with handler.operation(op_name, **context):
                return func(*args, **kwargs)

        return cast(F, wrapper)

    # Handle case where decorator is used without parentheses
    if callable(name):
        func, name = name, None
        return decorator(func)

    return decorator
