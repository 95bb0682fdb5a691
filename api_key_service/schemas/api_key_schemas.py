"""
Pydantic schemas for API key credential records.

The read schema never serializes the secret hash; it is carried only so the
validator can verify presented secrets.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import KeyStatus


def _dedupe_permissions(permissions: Optional[List[str]]) -> List[str]:
    seen = []
    for permission in permissions or []:
        if not isinstance(permission, str) or not permission.strip():
            raise ValueError("permissions must be non-empty strings")
        permission = permission.strip()
        if permission not in seen:
            seen.append(permission)
    return seen


class RateLimits(BaseModel):
    """Declared limits for a key. Stored, never enforced."""

    requests_per_minute: int = Field(default=60, ge=0)
    requests_per_hour: int = Field(default=0, ge=0)


class UsageStats(BaseModel):
    """Usage counters, mutated only by the usage recorder."""

    total_requests: int = Field(default=0, ge=0)
    # Internal only, not part of any serialized view
    last_used_at: Optional[datetime] = Field(default=None, exclude=True)


class CredentialRecord(BaseModel):
    """Persisted representation of one API key."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    api_key: str
    hashed_secret: str = Field(exclude=True, repr=False)
    name: str = ""
    description: str = ""
    project_id: Optional[str] = None
    client_id: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    status: KeyStatus = KeyStatus.ACTIVE
    environment: str = ""
    permissions: List[str] = Field(default_factory=list)
    rate_limits: RateLimits = Field(default_factory=RateLimits)
    usage: UsageStats = Field(default_factory=UsageStats)
    assigned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("permissions", mode="before")
    @classmethod
    def normalize_permissions(cls, v):
        """Treat permissions as a set: drop duplicates, keep first-seen order."""
        return _dedupe_permissions(v)

    @property
    def is_assigned(self) -> bool:
        return bool(self.user_id)


class APIKeyCreate(BaseModel):
    """Request to issue a new key."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Human-readable key name")
    description: str = Field(default="", description="What the key is for")
    user_id: Optional[str] = Field(default=None, description="Owning user, if known at issuance")
    environment: str = Field(default="", description="Deployment environment label")
    permissions: List[str] = Field(default_factory=list, description="Granted capabilities")

    @field_validator("permissions", mode="before")
    @classmethod
    def normalize_permissions(cls, v):
        return _dedupe_permissions(v)

    @field_validator("user_id")
    @classmethod
    def empty_user_id_is_none(cls, v):
        return v or None


class IssuedAPIKey(BaseModel):
    """
    Issuance response. The only place the plaintext secret ever appears.
    """

    success: bool = True
    message: str = "API Key created successfully"
    warning: str = "Save the API Secret securely. It will not be shown again!"
    data: CredentialRecord
    api_secret: str = Field(repr=False)

    def to_response(self) -> Dict[str, Any]:
        """JSON-ready body; ``data`` is the hash-free record."""
        return self.model_dump(mode="json")


class KeyAssignmentResult(BaseModel):
    """Outcome of binding a key to a user."""

    success: bool = True
    message: str = "API Key assigned successfully"
    credential_id: str
    api_key: str
    user_id: str
    client_id: str
