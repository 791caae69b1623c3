"""
EnvironmentCryptoManager — encrypted variables inside environment files.

Provides the public API consumed by test harnesses:
- ``encrypt_variable(s)`` — one-time, in-place encryption of plaintext values
- ``decrypt_variable(s)`` — plaintext credentials on demand (also async and
  future-based)
- ``save_master_key_once`` / ``provision_master_key`` — master key setup

Master keys live in the BASE tier file (``envs/.env`` by default), one line
per tier key variable (``UAT_SECRET_KEY=<base64>``).

Security Note:
    Never log plaintext or ciphertext values. Only log variable names,
    file paths and operation names.
"""
import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, Union

from .context import VaultContext
from .exceptions import (
    CryptoError,
    EnvcryptError,
    InvalidArgumentError,
    PropertyNotFoundError,
)
from .vault import crypto
from .vault.encoding import encode_secret_key
from .vault.keygen import SECRET_KEY_SIZE
from .vault.validation import validate_parameters

logger = logging.getLogger("envcrypt")


class EnvironmentCryptoManager:
    """Encrypt and decrypt variables of tier environment files.

    Args:
        context: Shared VaultContext; a new one is built from the process
            environment when omitted.
    """

    def __init__(self, context: Optional[VaultContext] = None):
        self.context = context or VaultContext()

    @property
    def threshold(self) -> int:
        return self.context.settings.encrypted_length_threshold

    def is_already_encrypted(self, value: Optional[str]) -> bool:
        """Length heuristic: values longer than the threshold count as encrypted."""
        return value is not None and len(value) > self.threshold

    # ------------------------------------------------------------------
    # Master key
    # ------------------------------------------------------------------

    def get_secret_key(self, key_type: str) -> bytes:
        """Return the master key stored under ``key_type`` in the BASE tier.

        Raises:
            PropertyNotFoundError: If the key variable is missing or empty.
            InvalidArgumentError: If the stored value is not a valid key.
            EnvFileError: If the base file cannot be read.
        """
        validate_parameters(key_type=key_type)
        return self.context.get_base_configuration().get_secret_key(key_type)

    def save_master_key_once(
        self,
        base_file_path: Union[str, Path],
        key_variable: str,
        encoded_key: str,
    ) -> bool:
        """Persist a master key unless one is already stored.

        An existing non-empty value is never replaced: every variable
        encrypted under it would become unreadable.

        Returns:
            True if the key was written, False if one already existed.

        Raises:
            InvalidArgumentError: If any argument is blank.
            EnvFileError: If the file cannot be created, read or written.
        """
        if base_file_path is None or not str(base_file_path).strip():
            raise InvalidArgumentError("Base environment file path cannot be null or empty")
        validate_parameters(key_variable=key_variable, encoded_key=encoded_key)
        writer = self.context.writer
        path = writer.ensure_file(self.context.resolve_path(base_file_path))
        with writer.lock_for(path):
            if writer.is_variable_set(path, key_variable):
                logger.info(
                    "The environment secret key '%s' already exists. "
                    "Please remove it before updating.",
                    key_variable,
                )
                return False
            writer.update_variable(path, key_variable, encoded_key)
            self.context.invalidate(path)
        logger.info("Secret key saved for variable '%s'", key_variable)
        return True

    def provision_master_key(
        self,
        key_type: str,
        size: int = SECRET_KEY_SIZE,
        base_file_path: Optional[Union[str, Path]] = None,
    ) -> bool:
        """Generate a master key for ``key_type`` and store it once.

        Returns:
            True if a new key was written.
        """
        validate_parameters(key_type=key_type)
        key = self.context.keygen.generate_secret_key(size)
        return self.save_master_key_once(
            base_file_path or self.context.base_file_path,
            key_type,
            encode_secret_key(key),
        )

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt_variable(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        variable: str,
    ) -> bool:
        """Encrypt one plaintext variable in place.

        Args:
            config_name: Display name of the tier (e.g. "UAT").
            env_name: Tier file, e.g. ".env.uat".
            key_type: Master key variable in the BASE tier (e.g. "UAT_SECRET_KEY").
            variable: Variable to encrypt.

        Returns:
            True if the file was rewritten, False if the value already
            looked encrypted.

        Raises:
            InvalidArgumentError: If a parameter is blank or the variable is absent.
            CryptoError: If encryption fails.
            EnvFileError: If the file cannot be rewritten.
        """
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        if variable is None or not variable.strip():
            raise InvalidArgumentError("Environment variable name cannot be null or empty")
        path = self.context.resolve_path(env_name)
        try:
            with self.context.writer.lock_for(path):
                current = self._read_value(config_name, env_name, variable)
                if self.is_already_encrypted(current):
                    logger.info(
                        "Skipping encryption: Environment variable '%s' is already encrypted. "
                        "Provide a plain-text value if re-encryption is required.",
                        variable,
                    )
                    return False
                master_key = self.get_secret_key(key_type)
                blob = crypto.encrypt(master_key, current, keygen=self.context.keygen)
                self.context.writer.update_variable(path, variable, blob)
                self.context.invalidate(path)
        except EnvcryptError:
            logger.error("Failed to encrypt variable: %s", variable)
            raise
        except Exception as err:
            logger.exception("Unexpected error encrypting variable: %s", variable)
            raise CryptoError("Encryption failed due to unexpected error") from err
        logger.info("Variable '%s' encrypted successfully.", variable)
        return True

    def encrypt_variables(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        *variables: Optional[str],
    ) -> list[str]:
        """Encrypt several variables; blank names are skipped with a warning.

        The first failure aborts the remaining batch.

        Returns:
            Names that were actually encrypted.

        Raises:
            InvalidArgumentError: If a tier parameter is blank or no names are given.
            CryptoError: If any variable fails; the underlying error is chained.
        """
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        if not variables:
            raise InvalidArgumentError("Environment variables cannot be null or empty")
        encrypted = []
        for variable in variables:
            if variable is None or not variable.strip():
                logger.warning("Skipping null or empty environment variable name")
                continue
            try:
                if self.encrypt_variable(config_name, env_name, key_type, variable):
                    encrypted.append(variable)
            except CryptoError:
                raise
            except EnvcryptError as err:
                raise CryptoError(f"Failed to encrypt variable: {variable}") from err
        return encrypted

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def _read_value(self, config_name: str, env_name: str, variable: str) -> str:
        config = self.context.get_configuration(config_name, env_name)
        try:
            return config.get_property(variable)
        except PropertyNotFoundError as err:
            raise InvalidArgumentError(
                f"Environment variable '{variable}' has null value"
            ) from err

    def _decrypt_single(
        self, config_name: str, env_name: str, master_key: bytes, variable: str
    ) -> str:
        try:
            return crypto.decrypt(master_key, self._read_value(config_name, env_name, variable))
        except CryptoError:
            logger.error("Failed to decrypt key: %s", variable)
            raise

    def decrypt_variable(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        variable: str,
    ) -> str:
        """Return the plaintext of an encrypted variable.

        Raises:
            InvalidArgumentError: If a parameter is blank or the variable is absent.
            TagMismatchError: If the stored blob fails authentication.
            CryptoError: If the stored value is not a valid blob.
        """
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        if variable is None or not variable.strip():
            raise InvalidArgumentError("Required key cannot be null or empty")
        master_key = self.get_secret_key(key_type)
        return self._decrypt_single(config_name, env_name, master_key, variable)

    def decrypt_variables(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        *variables: Optional[str],
    ) -> list[str]:
        """Decrypt several variables, preserving input order.

        Blank names are skipped; the master key is fetched once.
        """
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        names = [name for name in variables if name is not None and name.strip()]
        if not names:
            return []
        master_key = self.get_secret_key(key_type)
        return [
            self._decrypt_single(config_name, env_name, master_key, name)
            for name in names
        ]

    async def decrypt_variable_async(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        variable: str,
    ) -> str:
        """Awaitable :meth:`decrypt_variable`; key derivation runs off the loop."""
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        if variable is None or not variable.strip():
            raise InvalidArgumentError("Required key cannot be null or empty")
        master_key = self.get_secret_key(key_type)
        blob = self._read_value(config_name, env_name, variable)
        return await crypto.decrypt_async(master_key, blob)

    def decrypt_variable_future(
        self,
        config_name: str,
        env_name: str,
        key_type: str,
        variable: str,
    ) -> "Future[str]":
        """Decrypt on the context worker pool and return a future.

        The master key and stored value are read before submission, so
        argument and lookup errors raise here; crypto errors surface from
        ``future.result()``.
        """
        validate_parameters(config_name=config_name, env_name=env_name, key_type=key_type)
        if variable is None or not variable.strip():
            raise InvalidArgumentError("Required key cannot be null or empty")
        master_key = self.get_secret_key(key_type)
        blob = self._read_value(config_name, env_name, variable)
        return crypto.decrypt_future(master_key, blob, self.context.executor)
