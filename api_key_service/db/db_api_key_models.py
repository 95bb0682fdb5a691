"""
API key credential model.

Just the data structure - no business logic. Nested document paths used by
the store (``usage.total_requests`` and friends) are mapped onto flat columns
through ``__field_paths__``.
"""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String

from ..enums import KeyStatus
from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class APIKey(Base, UUIDMixin, TimestampMixin):
    """One issued API key. The secret is stored only as a bcrypt hash."""

    __tablename__ = "api_keys"

    # Credential material
    api_key = Column(String(128), nullable=False)
    hashed_secret = Column(String(255), nullable=False)

    # Descriptive metadata
    name = Column(String(200), nullable=False, default="")
    description = Column(String(500), nullable=False, default="")
    environment = Column(String(50), nullable=False, default="")

    # Ownership, set at issuance or exactly once by assignment
    user_id = Column(String(128), nullable=True, index=True)
    user_email = Column(String(320), nullable=True)
    project_id = Column(String(100), nullable=True)
    client_id = Column(String(100), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)

    # Lifecycle and capabilities
    status = Column(String(20), nullable=False, default=KeyStatus.ACTIVE.value)
    permissions = Column(JSON, nullable=True)

    # Declared rate limits (not enforced here)
    requests_per_minute = Column(Integer, nullable=False, default=60)
    requests_per_hour = Column(Integer, nullable=False, default=0)

    # Usage, written only by the usage recorder
    total_requests = Column(BigInteger, nullable=False, default=0)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_api_keys_api_key", "api_key", unique=True),)

    __field_paths__ = {
        "rate_limits.requests_per_minute": "requests_per_minute",
        "rate_limits.requests_per_hour": "requests_per_hour",
        "usage.total_requests": "total_requests",
        "usage.last_used_at": "last_used_at",
    }
