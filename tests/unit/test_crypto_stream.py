import io
import os

import pytest

from ipfs_file_enc.lib.crypto_stream import (
    HEADER_SIZE,
    MAGIC,
    decrypt_stream,
    encrypt_stream,
)
from ipfs_file_enc.lib.errors import DecryptError, InvalidKeyLength


def encrypt_bytes(data: bytes, key: bytes, **kwargs) -> bytes:
    return b"".join(encrypt_stream(io.BytesIO(data), key, **kwargs))


def decrypt_bytes(data: bytes, key: bytes) -> bytes:
    return b"".join(decrypt_stream(io.BytesIO(data), key))


class TrickleReader(io.RawIOBase):
    """Returns at most ``step`` bytes per read, like a slow socket."""

    def __init__(self, data: bytes, step: int = 7):
        self._buf = io.BytesIO(data)
        self._step = step

    def readable(self):
        return True

    def read(self, size=-1):
        if size is None or size < 0:
            size = self._step
        return self._buf.read(min(size, self._step))


@pytest.fixture
def key():
    return os.urandom(32)


@pytest.mark.parametrize("size", [0, 1, 4096, 64 * 1024, 64 * 1024 + 1, 1536 * 1024])
def test_round_trip(size, key):
    """Decrypt(Encrypt(p)) == p for empty, tiny, chunk-boundary and >1MB inputs"""
    plaintext = os.urandom(size)
    ciphertext = encrypt_bytes(plaintext, key)

    assert ciphertext.startswith(MAGIC)
    assert decrypt_bytes(ciphertext, key) == plaintext


def test_round_trip_with_short_reads(key):
    plaintext = os.urandom(10_000)
    ciphertext = b"".join(encrypt_stream(TrickleReader(plaintext, 13), key, chunk_size=1000))

    assert b"".join(decrypt_stream(TrickleReader(ciphertext, 11), key)) == plaintext


def test_encryption_is_incremental(key):
    """The header is produced before the source is read at all"""
    source = io.BytesIO(os.urandom(300_000))
    chunks = encrypt_stream(source, key, chunk_size=1024)

    assert next(chunks)[: len(MAGIC)] == MAGIC
    assert source.tell() == 0
    next(chunks)
    assert source.tell() <= 2 * 1024


def test_decryption_is_incremental(key):
    ciphertext = encrypt_bytes(os.urandom(5 * 1024), key, chunk_size=1024)
    source = io.BytesIO(ciphertext)
    plaintext = decrypt_stream(source, key)

    assert len(next(plaintext)) == 1024
    assert source.tell() < len(ciphertext)


def test_same_input_encrypts_differently(key):
    plaintext = b"hello world"
    first = encrypt_bytes(plaintext, key)
    second = encrypt_bytes(plaintext, key)

    assert first != second
    assert decrypt_bytes(first, key) == plaintext
    assert decrypt_bytes(second, key) == plaintext


@pytest.mark.parametrize("size", [0, 11, 200_000])
def test_wrong_key_fails(size, key):
    plaintext = os.urandom(size)
    ciphertext = encrypt_bytes(plaintext, key)
    other = os.urandom(32)

    with pytest.raises(DecryptError, match="wrong key"):
        decrypt_bytes(ciphertext, other)


def test_wrong_key_fails_on_first_record(key):
    ciphertext = encrypt_bytes(os.urandom(200_000), key)
    plaintext = decrypt_stream(io.BytesIO(ciphertext), os.urandom(32))

    with pytest.raises(DecryptError):
        next(plaintext)


def test_tampered_ciphertext_fails(key):
    ciphertext = bytearray(encrypt_bytes(b"attack at dawn", key))
    ciphertext[-1] ^= 0x01

    with pytest.raises(DecryptError):
        decrypt_bytes(bytes(ciphertext), key)


def test_truncated_stream_fails(key):
    ciphertext = encrypt_bytes(os.urandom(5000), key, chunk_size=1000)

    # Cut exactly after a complete non-final record
    record = 5 + 1000 + 16
    with pytest.raises(DecryptError, match="truncated"):
        decrypt_bytes(ciphertext[: HEADER_SIZE + 2 * record], key)

    with pytest.raises(DecryptError, match="truncated"):
        decrypt_bytes(ciphertext[:-3], key)


def test_trailing_data_fails(key):
    ciphertext = encrypt_bytes(b"payload", key)

    with pytest.raises(DecryptError, match="after final record"):
        decrypt_bytes(ciphertext + b"\x00", key)


@pytest.mark.parametrize("blob", [b"", b"IFE", b"NOPE" + bytes(8), b"PK\x03\x04" + bytes(100)])
def test_bad_header_fails_eagerly(blob, key):
    with pytest.raises(DecryptError, match="bad header"):
        decrypt_stream(io.BytesIO(blob), key)


@pytest.mark.parametrize("bad_key", [b"", bytes(16), bytes(33)])
def test_key_length_is_checked(bad_key):
    with pytest.raises(InvalidKeyLength):
        encrypt_stream(io.BytesIO(b"x"), bad_key)
    with pytest.raises(InvalidKeyLength):
        decrypt_stream(io.BytesIO(b"x"), bad_key)
