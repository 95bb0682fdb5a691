"""
Credential validation: turns a presented (key, secret) pair into an identity
binding or a denial.
"""

import secrets
from typing import Optional

from ..config import AppConfig, get_config
from ..constants import CollectionName
from ..enums import KeyStatus
from ..exceptions import (
    ErrorCode,
    InvalidCredentialsError,
    InvalidKeyError,
    RepositoryError,
    TransientStoreFailureError,
)
from ..repositories.credential_store import CredentialStore
from ..schemas.identity_schemas import IdentityBinding
from ..utils.hash_utils import SecretHasher
from ..utils.key_utils import strip_prefix
from ..utils.logger import get_logger


class CredentialValidator:
    """Looks a key up, verifies its secret and checks that it is active."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: Optional[SecretHasher] = None,
        config: Optional[AppConfig] = None,
    ):
        self.store = store
        self.config = config or get_config()
        self.hasher = hasher or SecretHasher(self.config.security.bcrypt_rounds)
        self.logger = get_logger()
        self._unmatched_hash: Optional[str] = None

    def _dummy_hash(self) -> str:
        if self._unmatched_hash is None:
            self._unmatched_hash = self.hasher.hash(secrets.token_urlsafe(16))
        return self._unmatched_hash

    def validate(self, presented_key: str, presented_secret: str) -> IdentityBinding:
        """
        Validate a credential pair.

        Args:
            presented_key: Public key exactly as received
            presented_secret: Secret as received, with or without its ``as_`` prefix

        Returns:
            IdentityBinding for the matching, active credential

        Raises:
            InvalidKeyError: No record, or more than one record, has this key
            InvalidCredentialsError: Wrong secret or key not active
            TransientStoreFailureError: The store failed; retrying may succeed
        """
        try:
            record = self.store.find_one_by_field(
                CollectionName.API_KEYS.value, "api_key", presented_key
            )
        except RepositoryError as e:
            if e.error_code == ErrorCode.DUPLICATE:
                # Never pick one of several matches
                raise InvalidKeyError(cause=e, api_key=presented_key, ambiguous=True) from e
            raise TransientStoreFailureError(cause=e) from e
        except Exception as e:
            raise TransientStoreFailureError(cause=e) from e

        secret = strip_prefix(presented_secret or "", self.config.security.api_secret_prefix)

        if record is None:
            # Pay the same hashing cost as a known key
            self.hasher.verify(secret or "-", self._dummy_hash())
            raise InvalidKeyError(api_key=presented_key)

        secret_ok = self.hasher.verify(secret, record.hashed_secret)
        if not secret_ok or record.status != KeyStatus.ACTIVE:
            # Wrong secret and inactive key share one denial
            raise InvalidCredentialsError(
                credential_id=record.id,
                secret_verified=secret_ok,
                key_status=record.status.value,
            )

        self.logger.debug(
            "Credential validated",
            extra={"credential_id": record.id, "user_id": record.user_id},
        )
        return IdentityBinding(
            credential_id=record.id,
            api_key=record.api_key,
            user_id=record.user_id,
            permissions=frozenset(record.permissions),
        )
