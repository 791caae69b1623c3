"""
Base64 codecs for bytes, text and key material.

Standard alphabet with padding; decoding is strict so that stray characters
are reported instead of silently dropped.
"""
import base64
import binascii
import logging
from typing import Union

from ..exceptions import InvalidArgumentError
from .validation import validate_input, validate_key_size

logger = logging.getLogger("envcrypt.vault")

BytesLike = Union[bytes, bytearray, memoryview]


def encode_bytes(data: BytesLike) -> str:
    """Encode bytes to a base64 ASCII string."""
    validate_input(data, "Byte array")
    return base64.b64encode(bytes(data)).decode("ascii")


def decode_to_bytes(text: str) -> bytes:
    """Decode a base64 string to bytes.

    Raises:
        InvalidArgumentError: If text is empty or not valid base64.
    """
    validate_input(text, "String")
    try:
        return base64.b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError) as err:
        logger.error("decode_to_bytes: input is not valid base64")
        raise InvalidArgumentError("Input is not valid base64") from err


def encode_string(text: str) -> str:
    """UTF-8 encode text, then base64 it."""
    validate_input(text, "String")
    return encode_bytes(text.encode("utf-8"))


def decode_to_string(text: str) -> str:
    """Reverse of :func:`encode_string`."""
    data = decode_to_bytes(text)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise InvalidArgumentError("Decoded data is not valid UTF-8") from err


def encode_secret_key(key: BytesLike) -> str:
    """Encode raw key material for storage in an environment file."""
    validate_input(key, "Secret Key")
    validate_key_size(len(key))
    return encode_bytes(key)


def decode_secret_key(encoded_key: str) -> bytes:
    """Decode a stored master key.

    Raises:
        InvalidArgumentError: If the value is not base64 or the decoded key
            is not 16, 24 or 32 bytes long.
    """
    validate_input(encoded_key, "Encoded key")
    key = decode_to_bytes(encoded_key)
    validate_key_size(len(key))
    return key
