"""
Share and download pipelines.

encrypt_and_put: file -> encrypt_stream -> IPFS add -> link
get_decrypt:     link -> IPFS cat -> decrypt_stream -> file
"""

import itertools
import os
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from ipfs_file_enc.lib.api_client import IPFSClient
from ipfs_file_enc.lib.crypto_stream import decrypt_stream, encrypt_stream
from ipfs_file_enc.lib.errors import (
    NodeUnreachableError,
    SourceIsDirectoryError,
    SourceNotFoundError,
    SourceUnreadableError,
    WriteFailedError,
)
from ipfs_file_enc.lib.links import canonical_link
from ipfs_file_enc.lib.log import get_logger, log
from ipfs_file_enc.lib.node_resolver import NodeEndpoint, NodeResolver

logger = get_logger("pipeline")

ClientFactory = Callable[..., IPFSClient]
PathLike = Union[str, Path]


def _connect(
    resolver: NodeResolver, endpoint: NodeEndpoint, client_factory: ClientFactory
) -> IPFSClient:
    if not resolver.is_up(endpoint):
        raise NodeUnreachableError(f"ipfs node error: not online ({endpoint.url})")
    return client_factory(endpoint, resolver.config)


def encrypt_and_put(
    source_path: PathLike,
    key: bytes,
    node_url: str = "",
    resolver: Optional[NodeResolver] = None,
    client_factory: ClientFactory = IPFSClient,
) -> str:
    """
    Encrypt a local file and add the ciphertext to IPFS.

    Args:
        source_path: Regular file to share
        key: 32-byte key
        node_url: Explicit node API URL, or empty to resolve one
        resolver: NodeResolver to use; defaults to one with ``NodeConfig()``
        client_factory: Builds the content store client for an endpoint

    Returns:
        Canonical ``/ipfs/<cid>`` link of the ciphertext
    """
    source = Path(source_path)
    if not source.exists():
        raise SourceNotFoundError(f"Unable to open file - {source} does not exist")
    if source.is_dir():
        raise SourceIsDirectoryError(f"Unable to share directory - {source}")

    try:
        f = open(source, "rb")
    except OSError as e:
        raise SourceUnreadableError(f"Unable to open file - {source}: {e}") from e

    resolver = resolver or NodeResolver()
    with f:
        ciphertext = encrypt_stream(f, key)
        endpoint = resolver.resolve_writable(node_url)
        client = _connect(resolver, endpoint, client_factory)
        log(logger, "info", "Sharing file", path=source, url=endpoint.url)
        return client.put(ciphertext)


def _open_destination(path: Path, truncate: bool) -> int:
    # No O_TRUNC by default: a longer existing file keeps its trailing bytes.
    flags = os.O_CREAT | os.O_RDWR
    if truncate:
        flags |= os.O_TRUNC
    try:
        return os.open(path, flags, 0o644)
    except OSError as e:
        raise WriteFailedError(f"Unable to open {path} for writing: {e}") from e


def _write_all(path: Path, chunks: Iterator[bytes], truncate: bool) -> int:
    written = 0
    with os.fdopen(_open_destination(path, truncate), "wb") as out:
        for chunk in chunks:
            try:
                out.write(chunk)
            except OSError as e:
                raise WriteFailedError(f"Failed writing to {path}: {e}") from e
            written += len(chunk)
        try:
            out.flush()
        except OSError as e:
            raise WriteFailedError(f"Failed writing to {path}: {e}") from e
    return written


def get_decrypt(
    link: str,
    destination_path: PathLike,
    key: bytes,
    node_url: str = "",
    resolver: Optional[NodeResolver] = None,
    client_factory: ClientFactory = IPFSClient,
    truncate: bool = False,
) -> int:
    """
    Fetch ciphertext from IPFS and decrypt it into a local file.

    The destination is opened read-write and created if missing, but it is
    not truncated unless ``truncate`` is set, so a longer pre-existing file
    keeps its tail beyond the new plaintext.

    Returns:
        Number of plaintext bytes written
    """
    path = canonical_link(link)
    destination = Path(destination_path)

    resolver = resolver or NodeResolver()
    endpoint = resolver.resolve_readable(node_url)
    client = _connect(resolver, endpoint, client_factory)

    with client.get(path) as fetched:
        plaintext = decrypt_stream(fetched, key)
        # Authenticate the first record before the destination is touched.
        first = next(plaintext, b"")
        written = _write_all(destination, itertools.chain([first], plaintext), truncate)

    log(logger, "info", "Downloaded file", link=path, path=destination, size=written)
    return written
