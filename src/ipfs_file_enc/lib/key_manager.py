"""
Key Management for ipfs-file-enc

A share is protected by a single 256-bit symmetric key. The key travels
out-of-band as multibase text (base58btc, prefix ``z``), the same form the
original ``--key`` flag accepted, so keys printed by older releases keep
working.
"""

import base64
import binascii
import os

import based58

from ipfs_file_enc.config import KEY_SIZE
from ipfs_file_enc.lib.errors import InvalidKeyLength, KeyDecodeError, MissingKeyError
from ipfs_file_enc.lib.log import get_logger, log

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE16_LOWER = "0123456789abcdef"
BASE16_UPPER = BASE16_LOWER.upper()
BASE32_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
BASE32_LOWER = BASE32_UPPER.lower()
BASE64_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
)
BASE64URL_ALPHABET = BASE64_ALPHABET[:-2] + "-_"
_URLSAFE = str.maketrans("-_", "+/")
BASE58BTC_PREFIX = "z"


def _pad(text: str, block: int) -> str:
    return text + "=" * (-len(text) % block)


def _check_alphabet(body: str, alphabet: str, name: str) -> str:
    # bytes.fromhex and the base64 module tolerate stray characters.
    bad = [c for c in body if c not in alphabet]
    if bad:
        raise ValueError(f"invalid {name} character {bad[0]!r}")
    return body


def _decode_base58btc(body: str) -> bytes:
    _check_alphabet(body, BASE58_ALPHABET, "base58")
    return based58.b58decode(body.encode("ascii"))


def _decode_base16(body: str, alphabet: str) -> bytes:
    return bytes.fromhex(_check_alphabet(body, alphabet, "base16"))


def _decode_base32(body: str, alphabet: str) -> bytes:
    _check_alphabet(body, alphabet, "base32")
    return base64.b32decode(_pad(body.upper(), 8))


def _decode_base64(body: str, alphabet: str) -> bytes:
    _check_alphabet(body, alphabet, "base64")
    return base64.b64decode(_pad(body.translate(_URLSAFE), 4), validate=True)


# multibase prefix -> decoder for the remaining text
_MULTIBASE_DECODERS = {
    "z": _decode_base58btc,
    "f": lambda body: _decode_base16(body, BASE16_LOWER),
    "F": lambda body: _decode_base16(body, BASE16_UPPER),
    "b": lambda body: _decode_base32(body, BASE32_LOWER),
    "B": lambda body: _decode_base32(body, BASE32_UPPER),
    "m": lambda body: _decode_base64(body, BASE64_ALPHABET),
    "u": lambda body: _decode_base64(body, BASE64URL_ALPHABET),
}


class KeyManager:
    """
    Encodes, decodes and resolves the symmetric key of a share.
    All methods are static; the class only groups the key operations.
    """

    _logger = get_logger("key_manager")

    @staticmethod
    def _log(level: str, message: str, **kwargs):
        log(KeyManager._logger, level, message, **kwargs)

    @staticmethod
    def validate_key(key: bytes) -> bytes:
        """Return ``key`` unchanged if it is exactly KEY_SIZE bytes."""
        if len(key) != KEY_SIZE:
            raise InvalidKeyLength(
                f"key must be exactly {KEY_SIZE * 8} bits. Was: {len(key) * 8}"
            )
        return key

    @staticmethod
    def encode_key(key: bytes) -> str:
        """
        Encode a key as multibase base58btc text.

        Args:
            key: 32 bytes of key material

        Returns:
            Text such as ``z4Wc...``, suitable for ``--key``
        """
        KeyManager.validate_key(key)
        return BASE58BTC_PREFIX + based58.b58encode(key).decode("ascii")

    @staticmethod
    def decode_key(text: str) -> bytes:
        """
        Decode multibase key text.

        Args:
            text: Multibase text (``z`` base58btc, ``f`` hex, ``b`` base32,
                ``m``/``u`` base64)

        Returns:
            The 32-byte key

        Raises:
            KeyDecodeError: If the text is not valid multibase
            InvalidKeyLength: If it decodes to anything but 32 bytes
        """
        text = text.strip()
        if len(text) < 2:
            raise KeyDecodeError("multibase decoding error: key text too short")

        decoder = _MULTIBASE_DECODERS.get(text[0])
        if decoder is None:
            raise KeyDecodeError(
                f"multibase decoding error: unsupported base prefix {text[0]!r}"
            )

        try:
            key = decoder(text[1:])
        except (ValueError, binascii.Error) as e:
            raise KeyDecodeError(f"multibase decoding error: {e}") from e

        return KeyManager.validate_key(key)

    @staticmethod
    def generate_key() -> bytes:
        """Generate a fresh random key from the OS CSPRNG."""
        return os.urandom(KEY_SIZE)

    @staticmethod
    def resolve_key(explicit_text: str, allow_random: bool) -> bytes:
        """
        Work out which key an operation should use.

        Args:
            explicit_text: Key text supplied by the user, possibly empty
            allow_random: Whether a random key may stand in for a missing one

        Returns:
            The 32-byte key
        """
        if explicit_text:
            KeyManager._log("debug", "Using explicit key")
            return KeyManager.decode_key(explicit_text)
        if allow_random:
            KeyManager._log("debug", "Generating random key")
            return KeyManager.generate_key()
        raise MissingKeyError("Please enter a key with --key")
