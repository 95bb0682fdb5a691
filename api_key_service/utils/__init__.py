"""Utility modules for the API Key Service."""

# Secret hashing
from .hash_utils import SecretHasher, hash_secret, verify_secret

# Key generation
from .key_utils import generate_api_key, generate_key, strip_prefix

# Logging utilities
from .logger import ContextAwareLogger, TenantContextFilter, configure_logging, get_logger

__all__ = [
    # Secret hashing
    "SecretHasher",
    "hash_secret",
    "verify_secret",
    # Key generation
    "generate_key",
    "generate_api_key",
    "strip_prefix",
    # Logging utilities
    "ContextAwareLogger",
    "TenantContextFilter",
    "configure_logging",
    "get_logger",
]
