"""
Constants for the API Key Service.

This module centralizes the magic strings used across the service: header
names, key prefixes, collection names and environment variables.
"""

from enum import Enum


class CollectionName(str, Enum):
    """Logical collections understood by the credential store."""

    API_KEYS = "api_keys"
    USER_PROFILES = "user_profiles"


class HeaderName(str, Enum):
    """Wire-level header names read by the authorization pipeline."""

    API_KEY = "X-API-Key"
    API_SECRET = "X-API-Secret"
    CLIENT_SUBDOMAIN = "X-Client-Subdomain"
    HOST = "Host"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Environment variable names read by the configuration layer."""

    LOG_LEVEL = "LOG_LEVEL"
    BCRYPT_ROUNDS = "BCRYPT_ROUNDS"
    USAGE_QUEUE_SIZE = "USAGE_QUEUE_SIZE"
    USAGE_WORKERS = "USAGE_WORKERS"
    DEV_DB_PATH = "DEV_DB_PATH"
    DB_HOST = "DB_HOST"
    DB_PORT = "DB_PORT"
    DB_NAME = "DB_NAME"
    DB_USER = "DB_USER"
    DB_PASSWORD = "DB_PASSWORD"
    DB_POOL_SIZE = "DB_POOL_SIZE"
    DB_MAX_OVERFLOW = "DB_MAX_OVERFLOW"
    DB_POOL_TIMEOUT = "DB_POOL_TIMEOUT"
    DB_ECHO = "DB_ECHO"


# Credential material
SUPER_ADMIN_PERMISSION = "super:admin"
API_KEY_PREFIX = "ak_"
API_SECRET_PREFIX = "as_"


class Limits:
    """System limits and defaults."""

    API_KEY_BYTES = 24
    API_SECRET_BYTES = 32
    DEFAULT_BCRYPT_ROUNDS = 12
    MIN_BCRYPT_ROUNDS = 4
    MAX_BCRYPT_ROUNDS = 31
    DEFAULT_REQUESTS_PER_MINUTE = 60
    DEFAULT_REQUESTS_PER_HOUR = 0
    DEFAULT_USAGE_QUEUE_SIZE = 1000
    DEFAULT_USAGE_WORKERS = 2
