"""
Envcrypt Configuration — Tier constants and validated settings.

Settings are read from the process environment:
    ENVCRYPT_ENV_DIRECTORY = <directory holding .env files>   (default: envs)
    ENCRYPTED_LENGTH_THRESHOLD = <int>                          (default: 90)
    ENVCRYPT_PREFER_OS_ENVIRON = <bool>                         (default: true)

ENCRYPTED_LENGTH_THRESHOLD may also come from a global ``KEY=VALUE`` file.
"""
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("envcrypt")

ENV_DIRECTORY = "envs"
DEFAULT_ENCRYPTED_LENGTH_THRESHOLD = 90
ENCRYPTED_LENGTH_THRESHOLD = "ENCRYPTED_LENGTH_THRESHOLD"

_TRUE_VALUES = ("1", "true", "yes", "on")


class Environment(Enum):
    """Configuration tiers: display name, env filename, master key variable."""

    BASE = ("BASE", ".env", None)
    DEV = ("DEV", ".env.dev", "DEV_SECRET_KEY")
    UAT = ("UAT", ".env.uat", "UAT_SECRET_KEY")
    PROD = ("PROD", ".env.prod", "PROD_SECRET_KEY")

    def __init__(self, display_name: str, filename: str, secret_key_name: Optional[str]):
        self.display_name = display_name
        self.filename = filename
        self.secret_key_name = secret_key_name

    @property
    def full_path(self) -> str:
        return f"{ENV_DIRECTORY}/{self.filename}"


def _read_threshold(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.error(
            "Invalid %s value, using default value of %d",
            ENCRYPTED_LENGTH_THRESHOLD, DEFAULT_ENCRYPTED_LENGTH_THRESHOLD,
        )
        return None


class VaultSettings(BaseModel):
    """Validated envcrypt settings."""

    env_directory: Path = Field(default=Path(ENV_DIRECTORY))
    base_filename: str = Field(default=Environment.BASE.filename)
    encrypted_length_threshold: int = Field(
        default=DEFAULT_ENCRYPTED_LENGTH_THRESHOLD, ge=1
    )
    prefer_os_environ: bool = Field(default=True)

    @field_validator("base_filename")
    @classmethod
    def validate_base_filename(cls, v: str) -> str:
        """Base filename must be a bare, non-empty filename."""
        if not v or not v.strip():
            raise ValueError("base_filename cannot be empty")
        if Path(v).name != v:
            raise ValueError(f"base_filename must not contain directories: {v}")
        return v

    @property
    def base_file_path(self) -> Path:
        return self.env_directory / self.base_filename

    @classmethod
    def from_env(
        cls, global_config: Optional[Union[str, Path]] = None
    ) -> "VaultSettings":
        """Create VaultSettings from the process environment.

        Args:
            global_config: Optional ``KEY=VALUE`` file consulted for
                ENCRYPTED_LENGTH_THRESHOLD when the environment lacks it.

        Returns:
            Populated VaultSettings instance.
        """
        values: dict = {}
        directory = os.environ.get("ENVCRYPT_ENV_DIRECTORY")
        if directory:
            values["env_directory"] = Path(directory)
        prefer = os.environ.get("ENVCRYPT_PREFER_OS_ENVIRON")
        if prefer is not None:
            values["prefer_os_environ"] = prefer.strip().lower() in _TRUE_VALUES

        threshold = _read_threshold(os.environ.get(ENCRYPTED_LENGTH_THRESHOLD))
        if threshold is None and global_config is not None:
            path = Path(global_config)
            if path.is_file():
                file_values = dotenv_values(path, interpolate=False)
                threshold = _read_threshold(file_values.get(ENCRYPTED_LENGTH_THRESHOLD))
            else:
                logger.warning("Global configuration file not found: %s", path)
        if threshold is not None:
            if threshold < 1:
                logger.error(
                    "%s must be positive, using default value of %d",
                    ENCRYPTED_LENGTH_THRESHOLD, DEFAULT_ENCRYPTED_LENGTH_THRESHOLD,
                )
            else:
                values["encrypted_length_threshold"] = threshold

        settings = cls(**values)
        logger.debug(
            "Loaded settings: env_directory=%s threshold=%d",
            settings.env_directory, settings.encrypted_length_threshold,
        )
        return settings
