"""
IPFS API Client - put/get of ciphertext against a resolved node
"""

import json
import secrets
from typing import Any, Iterable, Iterator, Optional

import requests
from urllib3.exceptions import HTTPError as TransportError

from ipfs_file_enc.config import NodeConfig
from ipfs_file_enc.lib.errors import GetFailedError, PutFailedError
from ipfs_file_enc.lib.links import canonical_link, format_link
from ipfs_file_enc.lib.log import get_logger, log
from ipfs_file_enc.lib.node_resolver import NodeEndpoint

logger = get_logger("api_client")

DRAIN_CHUNK_SIZE = 64 * 1024


def _multipart_body(
    chunks: Iterable[bytes], boundary: str, filename: str
) -> Iterator[bytes]:
    """Frame a byte iterator as a single-file multipart/form-data body."""
    yield (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="file"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode("utf-8")
    for chunk in chunks:
        if chunk:
            yield chunk
    yield f"\r\n--{boundary}--\r\n".encode("utf-8")


class FetchedStream:
    """
    Readable body of a fetched object.

    The IPFS API wants every response body consumed, so leaving the ``with``
    block drains whatever is left and closes the response, whether the caller
    finished reading or bailed out on an error.
    """

    def __init__(self, response: requests.Response):
        self._response = response
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        amt = None if size is None or size < 0 else size
        try:
            return self._response.raw.read(amt, decode_content=True)
        except (requests.exceptions.RequestException, TransportError, OSError) as e:
            raise GetFailedError(f"Failed to read fetched content: {e}") from e

    def drain(self) -> int:
        """Consume and discard the rest of the body; returns bytes discarded."""
        discarded = 0
        while True:
            data = self._response.raw.read(DRAIN_CHUNK_SIZE, decode_content=True)
            if not data:
                return discarded
            discarded += len(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.drain()
        except (requests.exceptions.RequestException, TransportError, OSError) as e:
            log(logger, "warning", "Failed to drain response body", error=e)
        finally:
            self._response.close()

    def __enter__(self) -> "FetchedStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class IPFSClient:
    """Content store operations against one NodeEndpoint"""

    def __init__(self, endpoint: NodeEndpoint, config: Optional[NodeConfig] = None):
        """
        Initialize the client.

        Args:
            endpoint: Node resolved by NodeResolver
            config: Supplies the transfer timeout; defaults to ``NodeConfig()``
        """
        self.endpoint = endpoint
        self.api_url = endpoint.url.rstrip("/")
        self.timeout = (config or NodeConfig()).transfer_timeout

    def _handle_response(self, response: requests.Response, error_cls) -> Any:
        """Map a non-200 reply to ``error_cls`` using the node's error message."""
        if response.status_code == 200:
            return response
        try:
            message = response.json().get("Message", response.text)
        except ValueError:
            message = response.text
        response.close()
        raise error_cls(f"IPFS node error {response.status_code}: {message}")

    def put(self, chunks: Iterable[bytes], filename: str = "ciphertext") -> str:
        """
        Add a stream of bytes to IPFS.

        The body is sent with chunked transfer encoding, so the stream is never
        buffered in full.

        Args:
            chunks: Ciphertext pieces, e.g. from ``encrypt_stream``
            filename: Name given to the multipart part

        Returns:
            Canonical ``/ipfs/<cid>`` link
        """
        if not self.endpoint.writable:
            raise PutFailedError(
                f"Cannot add content through read-only gateway {self.api_url}"
            )

        boundary = secrets.token_hex(16)
        try:
            response = requests.post(
                f"{self.api_url}/api/v0/add",
                params={"pin": "true", "progress": "false"},
                data=_multipart_body(chunks, boundary, filename),
                headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PutFailedError(f"Failed to add content: {e}") from e

        self._handle_response(response, PutFailedError)

        # The add endpoint streams one JSON object per line; the last names the root.
        lines = [line for line in response.text.splitlines() if line.strip()]
        try:
            cid = json.loads(lines[-1])["Hash"]
        except (IndexError, KeyError, ValueError) as e:
            raise PutFailedError(f"Invalid add response: {response.text!r}") from e

        link = format_link(cid)
        log(logger, "info", "Added content", link=link)
        return link

    def get(self, link: str) -> FetchedStream:
        """
        Open the content at ``link`` for streaming.

        The caller owns the returned FetchedStream and must use it as a
        context manager (or call ``close``) so the body is drained and closed.
        """
        path = canonical_link(link)
        try:
            if self.endpoint.writable:
                response = requests.post(
                    f"{self.api_url}/api/v0/cat",
                    params={"arg": path},
                    stream=True,
                    timeout=self.timeout,
                )
            else:
                response = requests.get(
                    f"{self.api_url}{path}", stream=True, timeout=self.timeout
                )
        except requests.exceptions.RequestException as e:
            raise GetFailedError(f"Failed to fetch {path}: {e}") from e

        self._handle_response(response, GetFailedError)
        log(logger, "info", "Fetching content", link=path, url=self.api_url)
        return FetchedStream(response)
