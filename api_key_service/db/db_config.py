import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..constants import EnvironmentVariable
from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()


class DatabaseConfig(BaseModel):
    db_type: str = "postgres"
    database: str
    host: Optional[str] = None
    port: str = "5432"
    username: Optional[str] = None
    password: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    development_mode: bool = False

    def get_connection_string(self) -> str:
        if self.db_type.lower() == "postgres":
            if not all([self.host, self.database, self.username, self.password]):
                raise ValidationError(
                    "Missing required Postgres configuration parameters",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    field="database_config",
                    value={"host": self.host, "database": self.database, "username": self.username},
                )
            return (
                f"postgresql://{self.username}:{self.password}@"
                f"{self.host}:{self.port}/{self.database}"
            )
        elif self.db_type.lower() == "sqlite":
            return f"sqlite:///{self.database}"
        raise ValidationError(
            f"Unsupported database type: {self.db_type}",
            error_code=ErrorCode.INVALID_FORMAT,
            field="db_type",
            value=self.db_type,
        )

    @property
    def is_in_memory(self) -> bool:
        return self.db_type.lower() == "sqlite" and self.database in ("", ":memory:")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        """String representation with masked password."""
        return (
            f"DatabaseConfig("
            f"db_type='{self.db_type}', "
            f"host='{self.host}', "
            f"port='{self.port}', "
            f"database='{self.database}', "
            f"username='{self.username}', "
            f"password='***')"
        )


class DatabaseManager:
    """
    Owns the engine and hands out sessions.

    Each store operation asks for its own session, so sessions are never shared
    between request threads and the usage recorder's workers.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def _create_engine(self):
        connection_string = self.config.get_connection_string()
        if self.config.db_type.lower() == "sqlite":
            connect_args = {"check_same_thread": False}
            if self.config.is_in_memory:
                # One shared connection, otherwise every thread sees its own empty database
                return create_engine(
                    connection_string,
                    echo=self.config.echo,
                    connect_args=connect_args,
                    poolclass=StaticPool,
                )
            return create_engine(
                connection_string, echo=self.config.echo, connect_args=connect_args
            )
        return create_engine(
            connection_string,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if self.config.development_mode:
            Base.metadata.drop_all(self.engine)
        else:
            raise ServiceError(
                "Cannot drop tables: not in development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
                development_mode=self.config.development_mode,
            )

    def get_session(self) -> Session:
        return self.session_factory()

    def close(self) -> None:
        self.engine.dispose()


def get_development_config() -> DatabaseConfig:
    """
    Get SQLite configuration for development.
    """
    return DatabaseConfig(
        db_type="sqlite",
        database=os.environ.get(EnvironmentVariable.DEV_DB_PATH.value, ":memory:"),
        echo=os.environ.get(EnvironmentVariable.DB_ECHO.value, "False").lower() == "true",
        development_mode=True,
    )


def get_production_config() -> DatabaseConfig:
    """
    Get Postgres configuration for production from environment variables.
    """
    return DatabaseConfig(
        db_type="postgres",
        host=os.environ.get(EnvironmentVariable.DB_HOST.value, "localhost"),
        port=os.environ.get(EnvironmentVariable.DB_PORT.value, "5432"),
        database=os.environ.get(EnvironmentVariable.DB_NAME.value, "api_keys"),
        username=os.environ.get(EnvironmentVariable.DB_USER.value, "postgres"),
        password=os.environ.get(EnvironmentVariable.DB_PASSWORD.value, ""),
        pool_size=int(os.environ.get(EnvironmentVariable.DB_POOL_SIZE.value, "5")),
        max_overflow=int(os.environ.get(EnvironmentVariable.DB_MAX_OVERFLOW.value, "10")),
        pool_timeout=int(os.environ.get(EnvironmentVariable.DB_POOL_TIMEOUT.value, "30")),
        echo=os.environ.get(EnvironmentVariable.DB_ECHO.value, "False").lower() == "true",
        development_mode=False,
    )


def import_all_models():
    """Import all models to ensure they're registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_api_key_models import APIKey  # noqa
    from .db_user_models import UserProfile  # noqa

    configure_mappers()


# Global database manager instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Get the global database manager instance.

    Raises:
        ServiceError: If no database manager has been initialized
    """
    global _db_manager
    if _db_manager is None:
        raise ServiceError(
            "Database manager not initialized. Call initialize_db() first.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Set the global database manager instance (used by tests)."""
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Initialize the global database manager and create the tables.

    Args:
        config: Optional DatabaseConfig. If None, uses production config from environment.
    """
    global _db_manager

    if config is None:
        config = get_production_config()

    get_logger().info("Initializing database", extra={"db_type": config.db_type})
    _db_manager = DatabaseManager(config)

    import_all_models()
    _db_manager.create_tables()

    return _db_manager


def close_db() -> None:
    """Dispose of the engine of the global database manager."""
    global _db_manager
    if _db_manager:
        _db_manager.close()
        _db_manager = None
