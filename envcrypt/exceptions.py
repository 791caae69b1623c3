"""
Envcrypt exceptions.

InvalidArgumentError is raised before any cryptographic work starts.
TagMismatchError is kept apart from CryptoError so callers can tell a
wrong key or corrupted ciphertext from a configuration problem.
"""
from pathlib import Path
from typing import Optional, Union


class EnvcryptError(Exception):
    """Base class for every envcrypt error."""


class InvalidArgumentError(EnvcryptError, ValueError):
    """A parameter was missing, empty or out of range."""


class PropertyNotFoundError(InvalidArgumentError):
    """A configuration key is absent or has an empty value."""

    def __init__(self, key: str, source: str):
        super().__init__(
            f"Environment variable '{key}' not found or empty in configuration '{source}'"
        )
        self.key = key
        self.source = source


class CryptoError(EnvcryptError):
    """Encryption or decryption failed."""


class TagMismatchError(CryptoError):
    """AEAD authentication failed: wrong key, wrong IV or corrupted ciphertext."""


class EnvFileError(EnvcryptError, OSError):
    """Reading, creating or rewriting an environment file failed."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{message}: {self.path}"
        return message
