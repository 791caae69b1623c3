"""Envcrypt.

Encrypted secrets for plain-text environment files.
"""
from .version import __version__
from .conf import Environment, VaultSettings
from .context import VaultContext
from .environments import ConfigCache, EnvFileConfig
from .exceptions import (
    CryptoError,
    EnvcryptError,
    EnvFileError,
    InvalidArgumentError,
    PropertyNotFoundError,
    TagMismatchError,
)
from .manager import EnvironmentCryptoManager

__all__ = [
    "__version__",
    "Environment",
    "VaultSettings",
    "VaultContext",
    "ConfigCache",
    "EnvFileConfig",
    "EnvironmentCryptoManager",
    "EnvcryptError",
    "InvalidArgumentError",
    "PropertyNotFoundError",
    "CryptoError",
    "TagMismatchError",
    "EnvFileError",
]
