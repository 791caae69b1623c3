"""
Vault Crypto Core — Key derivation, authenticated encryption and blob packing.

Each call derives a fresh AES-256 key from the master key and a random salt:
- Key derivation: Argon2id(master_key, salt) → 32-byte key
- Encryption: AES-GCM(derived_key, iv) → ciphertext + 128-bit tag
- Transport: base64([salt 32B][iv 16B][ciphertext + tag])

Security Note:
    Never log plaintext, ciphertext or key material. Only log operation names.
    Derived keys live in a bytearray that is zero-filled on every exit path.
"""
import asyncio
import base64
import binascii
import logging
from collections.abc import Iterator
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Union

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import CryptoError, TagMismatchError
from .keygen import IV_SIZE, SALT_SIZE, SecureKeyGenerator, default_generator
from .validation import validate_bytes_input, validate_string_input

logger = logging.getLogger("envcrypt.vault")

KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16  # 128-bit GCM tag

# Argon2id parameters. Fixed so a given salt always yields the same key.
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # KiB, 64 MiB
ARGON2_PARALLELISM = 4

KeyMaterial = Union[bytes, bytearray, memoryview]


def _zero(buffer: Optional[bytearray]) -> None:
    """Overwrite a mutable buffer with zero bytes."""
    if buffer is None:
        return
    for i in range(len(buffer)):
        buffer[i] = 0


# ---------------------------------------------------------------------------
# Blob layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EncryptionComponents:
    """Salt, IV and ciphertext-with-tag of a single encryption."""

    salt: bytes
    iv: bytes
    ciphertext: bytes

    def combine(self) -> bytes:
        """Concatenate as ``salt || iv || ciphertext``."""
        return self.salt + self.iv + self.ciphertext

    def to_blob(self) -> str:
        return base64.b64encode(self.combine()).decode("ascii")

    @classmethod
    def extract(cls, combined: bytes) -> "EncryptionComponents":
        """Split combined bytes on the fixed salt/IV offsets.

        Raises:
            CryptoError: If combined is shorter than salt + IV.
        """
        if len(combined) < SALT_SIZE + IV_SIZE:
            logger.error("Combined byte array is too short.")
            raise CryptoError(
                f"Encrypted data too short: {len(combined)} bytes "
                f"(minimum {SALT_SIZE + IV_SIZE})"
            )
        return cls(
            salt=combined[:SALT_SIZE],
            iv=combined[SALT_SIZE:SALT_SIZE + IV_SIZE],
            ciphertext=combined[SALT_SIZE + IV_SIZE:],
        )

    @classmethod
    def from_blob(cls, blob: str) -> "EncryptionComponents":
        """Decode a base64 blob and split it.

        Raises:
            CryptoError: If the blob is not base64 or is too short.
        """
        try:
            combined = base64.b64decode(blob.strip(), validate=True)
        except (binascii.Error, ValueError) as err:
            logger.error("Encrypted data is not valid base64.")
            raise CryptoError("Encrypted data is not valid base64") from err
        return cls.extract(combined)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

@contextmanager
def derived_key(master_key: KeyMaterial, salt: bytes) -> Iterator[bytearray]:
    """Derive a 32-byte key with Argon2id and scrub it on exit.

    Args:
        master_key: Raw master key bytes.
        salt: Per-encryption random salt.

    Yields:
        Mutable buffer holding the derived key.

    Raises:
        CryptoError: If Argon2 fails (e.g. memory cannot be allocated).
    """
    key: Optional[bytearray] = None
    secret = bytearray(master_key)
    try:
        try:
            key = bytearray(
                hash_secret_raw(
                    secret=bytes(secret),
                    salt=salt,
                    time_cost=ARGON2_TIME_COST,
                    memory_cost=ARGON2_MEMORY_COST,
                    parallelism=ARGON2_PARALLELISM,
                    hash_len=KEY_LENGTH,
                    type=Type.ID,
                )
            )
        except HashingError as err:
            logger.error("derive_key: Argon2id derivation failed")
            raise CryptoError("Failed to derive key") from err
        yield key
    finally:
        _zero(key)
        _zero(secret)


# ---------------------------------------------------------------------------
# Encrypt / decrypt
# ---------------------------------------------------------------------------

def encrypt(
    master_key: KeyMaterial,
    plaintext: str,
    keygen: Optional[SecureKeyGenerator] = None,
) -> str:
    """Encrypt a string into a self-contained base64 blob.

    A new salt and IV are drawn on every call, so encrypting the same value
    twice never yields the same blob.

    Args:
        master_key: Raw master key bytes.
        plaintext: Value to protect.
        keygen: Random source; defaults to the module generator.

    Returns:
        base64(salt || iv || ciphertext_with_tag).

    Raises:
        InvalidArgumentError: If master_key or plaintext is missing/empty.
        CryptoError: If derivation or encryption fails.
    """
    validate_bytes_input(master_key, "Secret Key")
    validate_string_input(plaintext, "Data")
    keygen = keygen or default_generator
    try:
        salt = keygen.generate_salt()
        iv = keygen.generate_iv()
        with derived_key(master_key, salt) as key:
            ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptionComponents(salt, iv, ciphertext).to_blob()
    except CryptoError:
        raise
    except Exception as err:
        logger.error("encrypt: failed to encrypt data (%s)", type(err).__name__)
        raise CryptoError("Encryption failed") from err


def decrypt(master_key: KeyMaterial, blob: str) -> str:
    """Decrypt a blob produced by :func:`encrypt`.

    Args:
        master_key: Raw master key bytes used at encryption time.
        blob: base64(salt || iv || ciphertext_with_tag).

    Returns:
        The original plaintext.

    Raises:
        InvalidArgumentError: If master_key or blob is missing/empty.
        TagMismatchError: If authentication fails (wrong key, IV or data).
        CryptoError: If the blob is malformed or decryption fails otherwise.
    """
    validate_bytes_input(master_key, "Secret Key")
    validate_string_input(blob, "Encrypted Data")
    try:
        components = EncryptionComponents.from_blob(blob)
        with derived_key(master_key, components.salt) as key:
            plaintext = AESGCM(key).decrypt(components.iv, components.ciphertext, None)
        return plaintext.decode("utf-8")
    except InvalidTag as err:
        logger.error(
            "decrypt: tag mismatch, incorrect key, IV or ciphertext corruption"
        )
        raise TagMismatchError(
            "Decryption failed: Tag mismatch. Ensure correct key and IV are used."
        ) from err
    except CryptoError:
        raise
    except Exception as err:
        logger.error("decrypt: failed to decrypt data (%s)", type(err).__name__)
        raise CryptoError("Decryption failed") from err


# ---------------------------------------------------------------------------
# Non-blocking variants
# ---------------------------------------------------------------------------

async def decrypt_async(master_key: KeyMaterial, blob: str) -> str:
    """Run :func:`decrypt` on a worker thread and await the result.

    Raises the same exceptions as :func:`decrypt`.
    """
    return await asyncio.to_thread(decrypt, master_key, blob)


def decrypt_future(
    master_key: KeyMaterial,
    blob: str,
    executor: Executor,
) -> "Future[str]":
    """Submit :func:`decrypt` to an executor.

    Arguments are validated before submission, so bad input raises here
    instead of inside the future. Must not be waited on from inside another
    encrypt/decrypt call.
    """
    validate_bytes_input(master_key, "Secret Key")
    validate_string_input(blob, "Encrypted Data")
    return executor.submit(decrypt, master_key, blob)
