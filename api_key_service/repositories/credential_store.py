"""
Storage adapter interface for credential records and user profiles.

Documents are addressed by collection name and id. Field names may be dotted
paths (``usage.total_requests``) into nested documents; every implementation
resolves them to its own storage layout. Each operation is atomic at the
single-document level.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel


class CredentialStore(ABC):
    """Abstract document store used by the services and the authorization pipeline."""

    @abstractmethod
    def find_one_by_field(self, collection: str, field: str, value: Any) -> Optional[BaseModel]:
        """
        Find the single document whose ``field`` equals ``value``.

        Returns:
            The document, or None when nothing matches

        Raises:
            RepositoryError: DUPLICATE when more than one document matches,
                DATABASE_ERROR on any storage failure
        """

    @abstractmethod
    def get_by_id(self, collection: str, document_id: str) -> Optional[BaseModel]:
        """Return the document with ``document_id``, or None."""

    @abstractmethod
    def create_with_id(
        self, collection: str, document_id: str, document: Mapping[str, Any]
    ) -> BaseModel:
        """
        Insert ``document`` under ``document_id``.

        Raises:
            RepositoryError: DUPLICATE (409) when the id or a unique field already exists
        """

    @abstractmethod
    def update_fields(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        preconditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set ``fields`` on one document.

        ``preconditions`` maps paths to the values they must currently hold
        (None meaning unset). The check and the write happen in one atomic
        statement.

        Returns:
            True if a document was changed, False if it is missing or a
            precondition did not hold
        """

    @abstractmethod
    def increment_counter(
        self, collection: str, document_id: str, path: str, amount: int = 1
    ) -> bool:
        """
        Atomically add ``amount`` to the numeric field at ``path``.

        Returns:
            True if the document exists and was updated
        """
