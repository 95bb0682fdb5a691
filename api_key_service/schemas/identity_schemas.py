"""
Pydantic schemas for user profiles and request-scoped identity bindings.
"""

from datetime import datetime
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserProfileCreate(BaseModel):
    """Data needed to register a user with the identity provider."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    project_id: Optional[str] = None
    authorized_subdomains: List[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("authorized_subdomains")
    @classmethod
    def strip_subdomains(cls, v: List[str]) -> List[str]:
        """Drop blank labels."""
        return [s.strip() for s in v if s and s.strip()]


class UserProfileRead(BaseModel):
    """A user record as returned by the identity provider."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    email: Optional[str] = None
    project_id: Optional[str] = None
    authorized_subdomains: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("authorized_subdomains", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return v or []

    def allows_tenant(self, tenant: str) -> bool:
        """Case-insensitive membership test against the authorized list."""
        wanted = tenant.casefold()
        return any(s.casefold() == wanted for s in self.authorized_subdomains)


class IdentityBinding(BaseModel):
    """
    Result of a successful validation, scoped to one request.

    ``tenant`` is filled in only after tenant scoping has run.
    """

    model_config = ConfigDict(frozen=True)

    credential_id: str
    api_key: str
    user_id: Optional[str] = None
    permissions: FrozenSet[str] = Field(default_factory=frozenset)
    tenant: Optional[str] = None

    def with_tenant(self, tenant: str) -> "IdentityBinding":
        return self.model_copy(update={"tenant": tenant})
