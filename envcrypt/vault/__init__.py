"""Vault — Key generation and authenticated encryption for secrets at rest.

Security Note (Threat Model):
    Master keys are stored base64-encoded in the BASE environment file and
    are loaded into process memory for every encrypt/decrypt call. Anyone
    able to read that file can decrypt every tier value encrypted under it.
    Derived keys are scrubbed after use on a best-effort basis; Python may
    still hold copies of immutable bytes objects until garbage collection.
"""

from .crypto import (
    EncryptionComponents,
    decrypt,
    decrypt_async,
    decrypt_future,
    encrypt,
)
from .keygen import (
    SecureKeyGenerator,
    generate_iv,
    generate_salt,
    generate_secret_key,
)

__all__ = [
    "EncryptionComponents",
    "encrypt",
    "decrypt",
    "decrypt_async",
    "decrypt_future",
    "SecureKeyGenerator",
    "generate_iv",
    "generate_salt",
    "generate_secret_key",
]
