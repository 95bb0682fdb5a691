"""
SQLAlchemy models and database configuration.
"""

from .db_api_key_models import APIKey
from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_user_models import UserProfile

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "APIKey",
    "UserProfile",
]
