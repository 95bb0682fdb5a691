"""
User profile model backing the identity provider.

Just the data structure - no business logic.
"""

from sqlalchemy import Boolean, Column, String

from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class UserProfile(Base, UUIDMixin, TimestampMixin):
    """A user that API keys can be bound to."""

    __tablename__ = "user_profiles"

    user_id = Column(String(128), nullable=False, unique=True, index=True)
    email = Column(String(320), nullable=True)
    project_id = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Tenants (subdomains) the user may act within
    authorized_subdomains = Column(JSON, nullable=True)
