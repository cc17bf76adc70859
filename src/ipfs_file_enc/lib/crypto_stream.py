"""
Streaming authenticated encryption for shared files.

Ciphertext layout (AES-256-GCM over fixed-size plaintext chunks):

    header  = MAGIC || nonce_prefix(8)
    record  = final_flag(1) || ct_len(u32 BE) || ciphertext+tag

Record ``i`` uses nonce ``nonce_prefix || u32 BE i`` and associated data
``header || u32 BE i || final_flag``, so records cannot be reordered, moved
between streams, or dropped from the end without failing authentication.
The nonce prefix is fresh for every call, which makes each ciphertext unique
even for identical plaintext and key.
"""

import os
import struct
from typing import BinaryIO, Iterator

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ipfs_file_enc.config import CHUNK_SIZE
from ipfs_file_enc.lib.errors import DecryptError
from ipfs_file_enc.lib.key_manager import KeyManager

MAGIC = b"IFE\x01"
NONCE_PREFIX_SIZE = 8
HEADER_SIZE = len(MAGIC) + NONCE_PREFIX_SIZE
TAG_SIZE = 16
COUNTER_MAX = 0xFFFFFFFF

_RECORD_HEADER = struct.Struct(">BI")


def _read_exact(source: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    parts = []
    remaining = size
    while remaining > 0:
        data = source.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


def _nonce(prefix: bytes, index: int) -> bytes:
    return prefix + struct.pack(">I", index)


def _aad(header: bytes, index: int, final: bool) -> bytes:
    return header + struct.pack(">IB", index, int(final))


def encrypt_stream(
    source: BinaryIO, key: bytes, chunk_size: int = CHUNK_SIZE
) -> Iterator[bytes]:
    """
    Encrypt a readable binary stream incrementally.

    Args:
        source: Object with ``read(n)`` returning plaintext bytes
        key: 32-byte key
        chunk_size: Plaintext bytes per record

    Returns:
        Iterator over ciphertext pieces; the header comes first.
    """
    aead = AESGCM(KeyManager.validate_key(key))
    header = MAGIC + os.urandom(NONCE_PREFIX_SIZE)
    return _encrypt_records(source, aead, header, chunk_size)


def _encrypt_records(
    source: BinaryIO, aead: AESGCM, header: bytes, chunk_size: int
) -> Iterator[bytes]:
    prefix = header[len(MAGIC) :]
    yield header

    index = 0
    chunk = _read_exact(source, chunk_size)
    while True:
        # One chunk of lookahead tells us whether this record is the last.
        following = _read_exact(source, chunk_size) if len(chunk) == chunk_size else b""
        final = not following
        ct = aead.encrypt(_nonce(prefix, index), chunk, _aad(header, index, final))
        yield _RECORD_HEADER.pack(int(final), len(ct)) + ct
        if final:
            return
        index += 1
        if index > COUNTER_MAX:
            raise ValueError("Chunk counter overflow (input too large)")
        chunk = following


def decrypt_stream(
    source: BinaryIO, key: bytes, chunk_size: int = CHUNK_SIZE
) -> Iterator[bytes]:
    """
    Decrypt a stream produced by :func:`encrypt_stream`.

    The header is read and checked before returning; records are then
    authenticated one at a time as the iterator is consumed.

    Raises:
        DecryptError: On a bad header here, or while iterating on a wrong
            key, tampering, truncation or trailing data.
    """
    aead = AESGCM(KeyManager.validate_key(key))
    header = _read_exact(source, HEADER_SIZE)
    if len(header) != HEADER_SIZE or not header.startswith(MAGIC):
        raise DecryptError("Not an ipfs-file-enc ciphertext (bad header)")
    return _decrypt_records(source, aead, header, chunk_size)


def _decrypt_records(
    source: BinaryIO, aead: AESGCM, header: bytes, chunk_size: int
) -> Iterator[bytes]:
    prefix = header[len(MAGIC) :]
    index = 0
    while True:
        raw = _read_exact(source, _RECORD_HEADER.size)
        if len(raw) != _RECORD_HEADER.size:
            raise DecryptError("Ciphertext truncated: final record missing")
        final_flag, ct_len = _RECORD_HEADER.unpack(raw)
        if final_flag not in (0, 1) or not TAG_SIZE <= ct_len <= chunk_size + TAG_SIZE:
            raise DecryptError(f"Malformed ciphertext record {index}")

        ct = _read_exact(source, ct_len)
        if len(ct) != ct_len:
            raise DecryptError(f"Ciphertext truncated inside record {index}")

        final = bool(final_flag)
        try:
            plain = aead.decrypt(_nonce(prefix, index), ct, _aad(header, index, final))
        except InvalidTag as e:
            raise DecryptError(
                "Decryption failed: wrong key or corrupted ciphertext"
            ) from e

        if final:
            if source.read(1):
                raise DecryptError("Unexpected data after final record")
            yield plain
            return
        yield plain
        index += 1
