"""
Test fixtures for the API Key Service.

This module provides shared fixtures: a file-backed SQLite database (usage
workers write from other threads), per-test table setup, the store, services
wired with a cheap bcrypt cost, and factory-built user profiles.
"""

import pytest

from api_key_service.config import AppConfig, SecurityConfig, UsageConfig, reset_config, set_config
from api_key_service.context.identity_context import IdentityContext
from api_key_service.context.tenant_context import TenantContext
from api_key_service.db import DatabaseConfig, DatabaseManager, import_all_models
from api_key_service.db.db_config import Base, set_db_manager
from api_key_service.exceptions import clear_correlation_id
from api_key_service.repositories import SqlAlchemyCredentialStore
from api_key_service.services import APIKeyService, IdentityService
from api_key_service.utils.hash_utils import SecretHasher
from tests.fixtures.factories import ProjectlessUserProfileFactory, UserProfileFactory

TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(scope="session")
def db_config(tmp_path_factory) -> DatabaseConfig:
    """SQLite file database; an in-memory one is not shared across worker threads."""
    db_path = tmp_path_factory.mktemp("db") / "api_keys.sqlite"
    return DatabaseConfig(
        db_type="sqlite",
        database=str(db_path),
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create the database manager with all models registered."""
    import_all_models()
    manager = DatabaseManager(db_config)
    set_db_manager(manager)
    yield manager
    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def tables(db_manager: DatabaseManager):
    """Fresh tables for every test."""
    Base.metadata.create_all(db_manager.engine)
    yield
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(scope="function")
def app_config() -> AppConfig:
    """Global config with a low bcrypt cost so tests stay fast."""
    config = AppConfig(
        security=SecurityConfig(bcrypt_rounds=TEST_BCRYPT_ROUNDS),
        usage=UsageConfig(queue_size=100, workers=2),
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture(autouse=True)
def clean_thread_context():
    """No tenant, identity or correlation id leaks between tests."""
    yield
    TenantContext.clear_current_tenant()
    IdentityContext.clear_current_identity()
    clear_correlation_id()


@pytest.fixture(scope="function")
def store(db_manager, tables) -> SqlAlchemyCredentialStore:
    return SqlAlchemyCredentialStore(db_manager)


@pytest.fixture(scope="function")
def hasher(app_config) -> SecretHasher:
    return SecretHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture(scope="function")
def identity_service(store) -> IdentityService:
    return IdentityService(store)


@pytest.fixture(scope="function")
def api_key_service(store, identity_service, hasher, app_config) -> APIKeyService:
    return APIKeyService(store, identity_service, hasher=hasher, config=app_config)


@pytest.fixture(scope="function")
def user_factory(db_manager, tables):
    """UserProfileFactory bound to a session for the current test."""
    session = db_manager.get_session()
    for factory_class in (UserProfileFactory, ProjectlessUserProfileFactory):
        factory_class._meta.sqlalchemy_session = session
    yield UserProfileFactory
    session.close()


@pytest.fixture(scope="function")
def projectless_user_factory(user_factory):
    return ProjectlessUserProfileFactory


@pytest.fixture
def sample_user_id() -> str:
    """Standard user ID for testing."""
    return "user-123"


@pytest.fixture
def sample_tenant() -> str:
    """Standard tenant (subdomain) for testing."""
    return "acme"
