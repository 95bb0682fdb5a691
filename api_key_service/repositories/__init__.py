"""Storage adapters for credential records and user profiles."""

from .credential_store import CredentialStore
from .sqlalchemy_store import DEFAULT_COLLECTIONS, SqlAlchemyCredentialStore

__all__ = [
    "CredentialStore",
    "DEFAULT_COLLECTIONS",
    "SqlAlchemyCredentialStore",
]
