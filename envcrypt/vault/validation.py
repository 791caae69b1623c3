"""
Vault input guards.

Every public entry point of the vault validates its arguments with these
helpers before touching key material, so a bad call never consumes entropy
or starts a key derivation.
"""
from typing import Any

from ..exceptions import InvalidArgumentError

VALID_KEY_SIZES = (16, 24, 32)


def validate_input(value: Any, name: str) -> None:
    """Reject ``None`` and empty str/bytes values.

    Raises:
        InvalidArgumentError: If value is None or empty.
    """
    if value is None:
        raise InvalidArgumentError(f"{name} cannot be null or empty")
    if isinstance(value, (str, bytes, bytearray, memoryview)) and len(value) == 0:
        raise InvalidArgumentError(f"{name} cannot be null or empty")


def validate_string_input(value: Any, name: str) -> None:
    """Require a non-empty ``str``."""
    validate_input(value, name)
    if not isinstance(value, str):
        raise InvalidArgumentError(
            f"{name} must be a string, got {type(value).__name__}"
        )


def validate_bytes_input(value: Any, name: str) -> None:
    """Require non-empty bytes-like key material."""
    validate_input(value, name)
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise InvalidArgumentError(
            f"{name} must be bytes, got {type(value).__name__}"
        )


def validate_size(size: Any, name: str) -> None:
    """Sizes must be positive integers.

    Raises:
        InvalidArgumentError: If size is not an int or is <= 0.
    """
    if isinstance(size, bool) or not isinstance(size, int):
        raise InvalidArgumentError(f"{name} size must be an integer")
    if size <= 0:
        raise InvalidArgumentError(f"{name} size must be positive")


def validate_key_size(size: Any) -> None:
    """AES accepts 128, 192 and 256 bit keys only."""
    if isinstance(size, bool) or size not in VALID_KEY_SIZES:
        raise InvalidArgumentError("AES key size must be 16, 24, or 32 bytes")


def validate_parameters(**params: Any) -> None:
    """Check that every named parameter is a non-blank string.

    Example:
        validate_parameters(config_name=config_name, env_name=env_name)

    Raises:
        InvalidArgumentError: Naming the first offending parameter.
    """
    for name, value in params.items():
        if value is None or not isinstance(value, str) or not value.strip():
            raise InvalidArgumentError(f"Parameter '{name}' cannot be null or empty")
