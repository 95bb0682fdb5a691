"""
User profile lookup backing issuance, assignment and tenant scoping.

The identity provider answers one question for the rest of the system: who is
``user_id``, which project do they belong to, and which tenants may they act in.
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from ..constants import CollectionName
from ..context.operation_context import operation
from ..exceptions import ErrorCode, ServiceError, not_found
from ..repositories.credential_store import CredentialStore
from ..schemas.identity_schemas import UserProfileCreate, UserProfileRead
from .base_service import BaseService


class IdentityProvider(ABC):
    """Read-only view of user records."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserProfileRead]:
        """
        Fetch the profile for ``user_id``.

        Returns:
            The profile, or None when the user is unknown

        Raises:
            RepositoryError: When the backing store fails
        """


class IdentityService(BaseService, IdentityProvider):
    """Identity provider backed by the ``user_profiles`` collection."""

    collection = CollectionName.USER_PROFILES.value

    def __init__(self, store: CredentialStore):
        super().__init__(store)

    @operation()
    def create_user_profile(self, profile_data: UserProfileCreate) -> UserProfileRead:
        """
        Register a user.

        Raises:
            ServiceError: DUPLICATE (409) if the user_id is already registered
        """
        profile_id = str(uuid.uuid4())
        try:
            profile = self.store.create_with_id(
                self.collection, profile_id, profile_data.model_dump()
            )
        except Exception as e:
            self._handle_service_exception("create_user_profile", e, profile_data.user_id)

        self.logger.info(
            "User profile created",
            extra={"user_id": profile_data.user_id, "profile_id": profile_id},
        )
        return profile

    def get_user(self, user_id: str) -> Optional[UserProfileRead]:
        if not user_id:
            return None
        return self.store.find_one_by_field(self.collection, "user_id", user_id)

    def require_user(self, user_id: str, operation_name: str = "require_user") -> UserProfileRead:
        """
        Like get_user, but a missing user is an error.

        Raises:
            ServiceError: NOT_FOUND (404) if the user does not exist
        """
        try:
            user = self.get_user(user_id)
            if user is None:
                raise not_found("UserProfile", user_id=user_id)
        except Exception as e:
            self._handle_service_exception(operation_name, e, user_id)
        return user

    @operation()
    def set_authorized_subdomains(self, user_id: str, subdomains: List[str]) -> UserProfileRead:
        """Replace the list of tenants ``user_id`` may act within."""
        user = self.require_user(user_id, "set_authorized_subdomains")
        cleaned = [s.strip() for s in subdomains if s and s.strip()]

        try:
            changed = self.store.update_fields(
                self.collection, user.id, {"authorized_subdomains": cleaned}
            )
        except Exception as e:
            self._handle_service_exception("set_authorized_subdomains", e, user_id)

        if not changed:
            raise ServiceError(
                f"User profile disappeared while updating: {user_id}",
                error_code=ErrorCode.NOT_FOUND,
                operation="set_authorized_subdomains",
                status_code=404,
                user_id=user_id,
            )
        return user.model_copy(update={"authorized_subdomains": cleaned})
