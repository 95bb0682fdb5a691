"""
Base service implementation with common functionality for all services.
"""

from typing import NoReturn, Optional

from ..exceptions import BaseError, ErrorCode, RepositoryError, ServiceError
from ..repositories.credential_store import CredentialStore
from ..utils.logger import get_logger


class BaseService:
    """Base service holding the credential store and the shared logger."""

    def __init__(self, store: CredentialStore):
        """
        Args:
            store: Document store used for every read and write
        """
        self.store = store
        self.logger = get_logger()

    def _handle_service_exception(
        self, operation: str, exception: Exception, entity_id: Optional[str] = None
    ) -> NoReturn:
        """
        Translate store failures into ServiceError, leaving our own errors untouched.

        Raises:
            ServiceError: NOT_FOUND/DUPLICATE keep their status, everything else is a 500
        """
        if isinstance(exception, RepositoryError) and exception.error_code in (
            ErrorCode.NOT_FOUND,
            ErrorCode.DUPLICATE,
        ):
            raise ServiceError(
                exception.message,
                error_code=exception.error_code,
                operation=operation,
                status_code=exception.status_code,
                cause=exception,
                entity_id=entity_id,
            ) from exception

        if isinstance(exception, BaseError):
            raise exception

        self.logger.error(
            f"Error in {operation}: {str(exception)}",
            extra={
                "operation": operation,
                "entity_id": entity_id,
                "error_type": type(exception).__name__,
            },
            exc_info=True,
        )
        raise ServiceError(
            f"Error in {operation}: {str(exception)}",
            error_code=ErrorCode.INTERNAL_ERROR,
            operation=operation,
            cause=exception,
            entity_id=entity_id,
        ) from exception
