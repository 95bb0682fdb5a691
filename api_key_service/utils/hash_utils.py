"""
Secret hashing for API credentials.

Secrets are hashed with bcrypt at a fixed, configurable cost. Hashing failures
are fatal to issuance; verification never raises.
"""

from typing import Optional

import bcrypt

from ..config import get_config
from ..constants import Limits
from ..exceptions import ErrorCode, IssuanceError
from .logger import get_logger

logger = get_logger()


class SecretHasher:
    """bcrypt hash and verify for credential secrets."""

    def __init__(self, rounds: Optional[int] = None):
        """
        Args:
            rounds: bcrypt cost factor (default: ``security.bcrypt_rounds`` from config)
        """
        self.rounds = rounds if rounds is not None else get_config().security.bcrypt_rounds

    def hash(self, secret: str) -> str:
        """
        Hash a plaintext secret.

        Args:
            secret: Plaintext secret without any transport prefix

        Returns:
            bcrypt hash string

        Raises:
            IssuanceError: If the secret is unusable or bcrypt fails
        """
        if not isinstance(secret, str) or not secret:
            raise IssuanceError(
                "Secret to hash must be a non-empty string",
                error_code=ErrorCode.VALIDATION_FAILED,
            )
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")
        except (ValueError, TypeError) as e:
            raise IssuanceError("Failed to hash API secret", cause=e, rounds=self.rounds) from e

    def verify(self, secret: Optional[str], hashed_secret: Optional[str]) -> bool:
        """
        Check a presented secret against a stored hash in constant time.

        Returns False for any malformed input instead of raising.
        """
        if not secret or not hashed_secret:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), hashed_secret.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            logger.debug("Secret verification failed on malformed input")
            return False


def hash_secret(secret: str, rounds: Optional[int] = None) -> str:
    """Hash ``secret`` with a one-off SecretHasher."""
    return SecretHasher(rounds).hash(secret)


def verify_secret(secret: Optional[str], hashed_secret: Optional[str]) -> bool:
    """Verify ``secret`` against ``hashed_secret``; never raises."""
    # The cost is read from the hash itself, so the hasher rounds do not matter here
    return SecretHasher(rounds=Limits.MIN_BCRYPT_ROUNDS).verify(secret, hashed_secret)
