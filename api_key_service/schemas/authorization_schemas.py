"""
Schemas exchanged with the authorization pipeline: the inbound request view,
the per-route policy and the resulting decision.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import HeaderName
from ..enums import DenialReason
from ..exceptions import AuthorizationError
from .identity_schemas import IdentityBinding


class AuthRequest(BaseModel):
    """Transport-independent view of the parts of a request the pipeline reads."""

    model_config = ConfigDict(frozen=True)

    headers: Dict[str, str] = Field(default_factory=dict)
    host: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], host: Optional[str] = None) -> "AuthRequest":
        """
        Build a request from any header mapping.

        When ``host`` is not given, the ``Host`` header is used.
        """
        normalized = {str(k): str(v) for k, v in headers.items() if v is not None}
        request = cls(headers=normalized, host=host)
        if host is None:
            request = request.model_copy(update={"host": request.header(HeaderName.HOST.value)})
        return request

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup; blank values count as absent."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                value = value.strip()
                return value or None
        return None


class RoutePolicy(BaseModel):
    """What a protected route demands of the caller."""

    model_config = ConfigDict(frozen=True)

    required_permission: str = Field(..., min_length=1)
    enforce_tenant_scope: bool = Field(
        default=True, description="Check the requested tenant against the user's list"
    )


class AuthorizationDecision(BaseModel):
    """Accept or deny, plus the bound identity or the denial details."""

    allowed: bool
    identity: Optional[IdentityBinding] = None

    reason: Optional[DenialReason] = None
    status_code: int = 200
    error_code: Optional[str] = None
    message: Optional[str] = None
    public_code: Optional[str] = None
    public_message: Optional[str] = None
    retryable: bool = False
    error_id: Optional[str] = None

    decided_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def allow(cls, identity: IdentityBinding) -> "AuthorizationDecision":
        """Create an accepting decision bound to ``identity``."""
        return cls(allowed=True, identity=identity)

    @classmethod
    def deny(cls, error: AuthorizationError) -> "AuthorizationDecision":
        """Create a refusing decision from the denial raised by a pipeline stage."""
        return cls(
            allowed=False,
            reason=error.reason,
            status_code=error.status_code,
            error_code=error.error_code.value,
            message=error.message,
            public_code=error.public_code,
            public_message=error.public_message,
            retryable=error.retryable,
            error_id=error.error_id,
        )

    def to_response(self) -> Dict[str, Any]:
        """
        Body to send back to the caller.

        Denials expose only the public code and message, so an unknown key and
        a wrong secret produce identical bodies apart from the error id.
        """
        if self.allowed and self.identity is not None:
            return {
                "user_id": self.identity.user_id,
                "subdomain": self.identity.tenant,
                "permissions": sorted(self.identity.permissions),
            }
        return {
            "error": {
                "code": self.public_code,
                "message": self.public_message,
                "id": self.error_id,
            }
        }
