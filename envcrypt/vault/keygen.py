"""
Vault Key Generation — IVs, salts and master keys.

Random bytes come from one ``secrets.SystemRandom`` per thread, created the
first time a thread asks for entropy. Generators are never shared across
threads and are never seeded by hand.
"""
import logging
import secrets
import threading

from .validation import validate_key_size, validate_size

logger = logging.getLogger("envcrypt.vault")

IV_SIZE = 16
SALT_SIZE = 32
SECRET_KEY_SIZE = 32  # AES-256


class SecureKeyGenerator:
    """Cryptographically strong byte source with per-thread state."""

    def __init__(self):
        self._local = threading.local()

    @property
    def _random(self) -> secrets.SystemRandom:
        rng = getattr(self._local, "rng", None)
        if rng is None:
            rng = secrets.SystemRandom()
            self._local.rng = rng
        return rng

    def generate_random_bytes(self, size: int) -> bytes:
        """Return ``size`` random bytes."""
        validate_size(size, "Random bytes")
        return self._random.randbytes(size)

    def generate_iv(self, size: int = IV_SIZE) -> bytes:
        """Generate an initialization vector.

        Raises:
            InvalidArgumentError: If size <= 0.
        """
        validate_size(size, "IV")
        return self.generate_random_bytes(size)

    def generate_salt(self, size: int = SALT_SIZE) -> bytes:
        """Generate a KDF salt.

        Raises:
            InvalidArgumentError: If size <= 0.
        """
        validate_size(size, "Salt")
        return self.generate_random_bytes(size)

    def generate_secret_key(self, size: int = SECRET_KEY_SIZE) -> bytes:
        """Generate an AES key of 16, 24 or 32 bytes.

        Raises:
            InvalidArgumentError: If size is not a valid AES key length.
        """
        validate_key_size(size)
        key = self.generate_random_bytes(size)
        logger.debug("Generated %d-byte secret key", size)
        return key


default_generator = SecureKeyGenerator()


def generate_iv(size: int = IV_SIZE) -> bytes:
    return default_generator.generate_iv(size)


def generate_salt(size: int = SALT_SIZE) -> bytes:
    return default_generator.generate_salt(size)


def generate_secret_key(size: int = SECRET_KEY_SIZE) -> bytes:
    return default_generator.generate_secret_key(size)
