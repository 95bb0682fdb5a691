"""Pydantic schemas for the API Key Service."""

from .api_key_schemas import (
    APIKeyCreate,
    CredentialRecord,
    IssuedAPIKey,
    KeyAssignmentResult,
    RateLimits,
    UsageStats,
)
from .authorization_schemas import AuthorizationDecision, AuthRequest, RoutePolicy
from .identity_schemas import IdentityBinding, UserProfileCreate, UserProfileRead

__all__ = [
    "APIKeyCreate",
    "CredentialRecord",
    "IssuedAPIKey",
    "KeyAssignmentResult",
    "RateLimits",
    "UsageStats",
    "AuthorizationDecision",
    "AuthRequest",
    "RoutePolicy",
    "IdentityBinding",
    "UserProfileRead",
    "UserProfileCreate",
]
