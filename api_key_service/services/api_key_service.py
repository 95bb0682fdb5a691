"""
API key lifecycle: issuance, assignment to a user, status changes and reads.

Issuance is the only place a plaintext secret exists. It is generated, hashed
and returned once; the store only ever sees the bcrypt hash.
"""

import uuid
from typing import Optional

from ..config import AppConfig, get_config
from ..constants import CollectionName
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..enums import KeyStatus
from ..exceptions import (
    AssignmentConflictError,
    ErrorCode,
    IssuanceError,
    ServiceError,
    ValidationError,
    not_found,
    permission_denied,
)
from ..repositories.credential_store import CredentialStore
from ..schemas.api_key_schemas import (
    APIKeyCreate,
    CredentialRecord,
    IssuedAPIKey,
    KeyAssignmentResult,
)
from ..utils.hash_utils import SecretHasher
from ..utils.key_utils import RandomSource, generate_api_key, generate_key
from .base_service import BaseService
from .identity_service import IdentityProvider


class APIKeyService(BaseService):
    """Issues API keys and manages their ownership and status."""

    collection = CollectionName.API_KEYS.value

    def __init__(
        self,
        store: CredentialStore,
        identity_provider: IdentityProvider,
        hasher: Optional[SecretHasher] = None,
        config: Optional[AppConfig] = None,
        random_source: Optional[RandomSource] = None,
    ):
        """
        Args:
            store: Document store holding the ``api_keys`` collection
            identity_provider: Source of user profiles
            hasher: Secret hasher (default: bcrypt at the configured cost)
            config: Application config (default: the global config)
            random_source: Byte source for key material (default: ``secrets.token_bytes``)
        """
        super().__init__(store)
        self.identity_provider = identity_provider
        self.config = config or get_config()
        self.hasher = hasher or SecretHasher(self.config.security.bcrypt_rounds)
        self.random_source = random_source

    def _require_user(self, user_id: str, operation_name: str):
        try:
            user = self.identity_provider.get_user(user_id)
            if user is None:
                raise not_found("UserProfile", user_id=user_id)
        except Exception as e:
            self._handle_service_exception(operation_name, e, user_id)
        return user

    @operation()
    def issue_key(self, key_data: APIKeyCreate) -> IssuedAPIKey:
        """
        Issue a new key/secret pair.

        When ``user_id`` is given, the user must exist; their email and
        project are copied onto the record.

        Returns:
            IssuedAPIKey with the ``as_``-prefixed plaintext secret

        Raises:
            ServiceError: NOT_FOUND if the user does not exist, PERMISSION_DENIED if
                the user is disabled
            IssuanceError: If generation or hashing fails; nothing is persisted
        """
        security = self.config.security

        user_email = None
        project_id = None
        if key_data.user_id:
            user = self._require_user(key_data.user_id, "issue_key")
            if not user.is_active:
                raise permission_denied("issue_key", "UserProfile", user_id=key_data.user_id)
            user_email = user.email
            project_id = user.project_id

        credential_id = str(uuid.uuid4())
        try:
            api_key = generate_api_key(
                security.api_key_prefix, security.api_key_bytes, self.random_source
            )
            secret = generate_key(security.api_secret_bytes, self.random_source)
        except ValidationError as e:
            raise IssuanceError("Invalid key material configuration", cause=e) from e
        hashed_secret = self.hasher.hash(secret)

        document = {
            "api_key": api_key,
            "hashed_secret": hashed_secret,
            "name": key_data.name,
            "description": key_data.description,
            "environment": key_data.environment,
            "user_id": key_data.user_id,
            "user_email": user_email,
            "project_id": project_id,
            "status": KeyStatus.ACTIVE,
            "permissions": key_data.permissions,
            "rate_limits": {
                "requests_per_minute": self.config.rate_limits.requests_per_minute,
                "requests_per_hour": self.config.rate_limits.requests_per_hour,
            },
            "usage": {"total_requests": 0},
        }

        try:
            record = self.store.create_with_id(self.collection, credential_id, document)
        except Exception as e:
            self._handle_service_exception("issue_key", e, credential_id)

        self.logger.info(
            "API key issued",
            extra={
                "credential_id": credential_id,
                "api_key": api_key,
                "user_id": key_data.user_id,
                "permission_count": len(key_data.permissions),
            },
        )

        return IssuedAPIKey(data=record, api_secret=f"{security.api_secret_prefix}{secret}")

    @operation()
    def assign_key(self, user_id: str, api_key: str) -> KeyAssignmentResult:
        """
        Bind an unassigned key to ``user_id``.

        The key's ``client_id`` becomes the user's project and its status
        becomes ``assigned``. A key can be assigned exactly once.

        Raises:
            ServiceError: NOT_FOUND for an unknown user or key, VALIDATION_FAILED (400)
                if the user has no project
            AssignmentConflictError: If the key is already bound to a user
        """
        if not api_key or not api_key.strip():
            raise ValidationError("api_key is required", field="api_key")
        api_key = api_key.strip()

        user = self._require_user(user_id, "assign_key")
        if not user.project_id:
            raise ServiceError(
                "User profile does not have a valid project_id",
                error_code=ErrorCode.VALIDATION_FAILED,
                operation="assign_key",
                status_code=400,
                user_id=user_id,
            )

        try:
            record = self.store.find_one_by_field(self.collection, "api_key", api_key)
            if record is None:
                raise not_found("APIKey", api_key=api_key)
        except Exception as e:
            self._handle_service_exception("assign_key", e)

        if record.is_assigned:
            raise AssignmentConflictError(credential_id=record.id, api_key=api_key)

        try:
            # Conditional on the key still being unbound; a concurrent assignment loses here
            changed = self.store.update_fields(
                self.collection,
                record.id,
                {
                    "user_id": user_id,
                    "client_id": user.project_id,
                    "status": KeyStatus.ASSIGNED,
                    "assigned_at": utc_now(),
                },
                preconditions={"user_id": None},
            )
        except Exception as e:
            self._handle_service_exception("assign_key", e, record.id)

        if not changed:
            raise AssignmentConflictError(credential_id=record.id, api_key=api_key)

        self.logger.info(
            "API key assigned",
            extra={"credential_id": record.id, "user_id": user_id, "client_id": user.project_id},
        )

        return KeyAssignmentResult(
            credential_id=record.id,
            api_key=api_key,
            user_id=user_id,
            client_id=user.project_id,
        )

    @operation()
    def set_status(self, credential_id: str, status: KeyStatus) -> CredentialRecord:
        """
        Move a key to ``status``. Only ``active`` keys validate.

        Raises:
            ValidationError: For an unknown status value
            ServiceError: NOT_FOUND if the key does not exist
        """
        try:
            status = KeyStatus(status)
        except ValueError as e:
            raise ValidationError(
                f"Invalid key status: {status}", field="status", cause=e, value=str(status)
            ) from e

        try:
            changed = self.store.update_fields(self.collection, credential_id, {"status": status})
            if not changed:
                raise not_found("APIKey", credential_id=credential_id)
        except Exception as e:
            self._handle_service_exception("set_status", e, credential_id)

        self.logger.info(
            "API key status changed",
            extra={"credential_id": credential_id, "status": status.value},
        )
        return self.get_key(credential_id)

    def get_key(self, credential_id: str) -> CredentialRecord:
        """
        Fetch a key record. The secret hash never leaves through serialization.

        Raises:
            ServiceError: NOT_FOUND if the key does not exist
        """
        try:
            record = self.store.get_by_id(self.collection, credential_id)
            if record is None:
                raise not_found("APIKey", credential_id=credential_id)
        except Exception as e:
            self._handle_service_exception("get_key", e, credential_id)
        return record
