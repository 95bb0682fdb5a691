"""Service layer: key lifecycle and identity lookups."""

from .api_key_service import APIKeyService
from .base_service import BaseService
from .identity_service import IdentityProvider, IdentityService

__all__ = [
    "APIKeyService",
    "BaseService",
    "IdentityProvider",
    "IdentityService",
]
