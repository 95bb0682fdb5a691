"""
Random identifier generation for API keys and secrets.

Every value is an independent draw from the operating system's CSPRNG via
``secrets``. There is no fallback to a weaker source.
"""

import secrets
from typing import Callable, Optional

from ..exceptions import ErrorCode, IssuanceError, ValidationError

# Source of random bytes; replaceable in tests to simulate entropy failure
RandomSource = Callable[[int], bytes]


def generate_key(byte_length: int, random_source: Optional[RandomSource] = None) -> str:
    """
    Generate a hex-encoded random identifier.

    Args:
        byte_length: Number of random bytes; the result has twice as many hex characters
        random_source: Byte source (default: ``secrets.token_bytes``)

    Returns:
        Lowercase hex string of length ``2 * byte_length``

    Raises:
        ValidationError: If byte_length is not a positive integer
        IssuanceError: If the random source fails
    """
    if isinstance(byte_length, bool) or not isinstance(byte_length, int) or byte_length <= 0:
        raise ValidationError(
            "byte_length must be a positive integer",
            field="byte_length",
            error_code=ErrorCode.INVALID_FORMAT,
            value=byte_length,
        )

    source = random_source or secrets.token_bytes
    try:
        raw = source(byte_length)
    except (OSError, NotImplementedError) as e:
        raise IssuanceError(
            "Secure random source unavailable",
            error_code=ErrorCode.ENTROPY_ERROR,
            cause=e,
            byte_length=byte_length,
        ) from e

    if len(raw) != byte_length:
        raise IssuanceError(
            "Secure random source returned a short read",
            error_code=ErrorCode.ENTROPY_ERROR,
            byte_length=byte_length,
            received=len(raw),
        )
    return raw.hex()


def generate_api_key(
    prefix: str, byte_length: int, random_source: Optional[RandomSource] = None
) -> str:
    """Generate a public key: ``prefix`` followed by hex."""
    return f"{prefix}{generate_key(byte_length, random_source)}"


def strip_prefix(value: str, prefix: str) -> str:
    """Remove ``prefix`` from ``value`` if, and only if, it is present."""
    if prefix and value.startswith(prefix):
        return value[len(prefix):]
    return value
