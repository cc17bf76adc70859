"""
IPFS node resolution.

Picks the node an operation talks to. Writable resolution walks an ordered
list of candidate strategies (explicit URL first, then the local repo's API,
then a fixed local API URL); readable resolution falls back to a public
read-only gateway when nothing writable is available.
"""

import enum
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from ipfs_file_enc.config import IPFS_API_FILE, NodeConfig
from ipfs_file_enc.lib.errors import NodeCandidateError, NoWritableNodeError
from ipfs_file_enc.lib.log import get_logger, log

logger = get_logger("node_resolver")


class Capability(enum.Enum):
    READ_ONLY = "read-only"
    READ_WRITE = "read-write"


@dataclass(frozen=True)
class NodeEndpoint:
    """A node URL tagged with what it can do.

    READ_WRITE endpoints speak the IPFS HTTP API (``/api/v0/...``);
    READ_ONLY endpoints are path gateways serving ``/ipfs/<cid>``.
    """

    url: str
    capability: Capability

    @property
    def writable(self) -> bool:
        return self.capability is Capability.READ_WRITE


Strategy = Callable[[], NodeEndpoint]


def multiaddr_to_url(multiaddr: str) -> str:
    """
    Convert an API multiaddr to an HTTP base URL.

    ``/ip4/127.0.0.1/tcp/5001`` -> ``http://127.0.0.1:5001``
    """
    parts = [p for p in multiaddr.strip().split("/") if p]
    if len(parts) < 4 or parts[2] != "tcp":
        raise NodeCandidateError(f"unsupported API multiaddr: {multiaddr!r}")

    proto, host, _, port = parts[:4]
    if proto == "ip6":
        host = f"[{host}]"
    elif proto not in ("ip4", "dns", "dns4", "dns6"):
        raise NodeCandidateError(f"unsupported API multiaddr: {multiaddr!r}")

    scheme = "https" if "https" in parts[4:] else "http"
    return f"{scheme}://{host}:{port}"


class NodeResolver:
    """Resolves writable and readable IPFS endpoints from a NodeConfig."""

    def __init__(
        self,
        config: Optional[NodeConfig] = None,
        strategies: Optional[List[Strategy]] = None,
    ):
        """
        Args:
            config: Node URLs and timeouts; defaults to ``NodeConfig()``
            strategies: Ordered writable candidates tried when no explicit URL
                is given. Defaults to local-repo discovery, then the fixed
                local node URL.
        """
        self.config = config or NodeConfig()
        if strategies is None:
            strategies = [self.local_node, self.local_gateway]
        self.strategies = list(strategies)

    # --- candidate strategies ---

    def local_node(self) -> NodeEndpoint:
        """Discover the API advertised by the local IPFS repo (``$IPFS_PATH/api``)."""
        repo = self.config.repo_path()
        api_file = repo / IPFS_API_FILE
        try:
            multiaddr = api_file.read_text().strip()
        except OSError as e:
            raise NodeCandidateError(f"no local node api file at {api_file}: {e}") from e
        return NodeEndpoint(multiaddr_to_url(multiaddr), Capability.READ_WRITE)

    def local_gateway(self) -> NodeEndpoint:
        """The fixed local node URL from the config."""
        if not self.config.local_node_url:
            raise NodeCandidateError("no local node URL configured")
        return NodeEndpoint(
            self.config.local_node_url.rstrip("/"), Capability.READ_WRITE
        )

    # --- resolution ---

    def resolve_writable(self, explicit_url: str = "") -> NodeEndpoint:
        """
        Resolve a read-write endpoint.

        An explicit URL is returned as-is, without probing and without
        consulting any strategy. Otherwise the first strategy whose endpoint
        is constructed and answers the liveness probe wins.

        Raises:
            NoWritableNodeError: If every strategy failed
        """
        if explicit_url:
            return NodeEndpoint(explicit_url.rstrip("/"), Capability.READ_WRITE)

        suppressed = []
        for strategy in self.strategies:
            name = getattr(strategy, "__name__", repr(strategy))
            try:
                endpoint = strategy()
            except NodeCandidateError as e:
                log(logger, "debug", "Node candidate unavailable", strategy=name, error=e)
                suppressed.append(f"{name}: {e}")
                continue

            if not self.is_up(endpoint):
                log(logger, "debug", "Node candidate not up", strategy=name, url=endpoint.url)
                suppressed.append(f"{name}: {endpoint.url} is not up")
                continue

            log(logger, "info", "Using writable node", strategy=name, url=endpoint.url)
            return endpoint

        raise NoWritableNodeError(
            "Failed to use local node ({})".format("; ".join(suppressed) or "no candidates")
        )

    def resolve_readable(self, explicit_url: str = "") -> NodeEndpoint:
        """Resolve an endpoint for downloads; falls back to the global gateway."""
        try:
            return self.resolve_writable(explicit_url)
        except NoWritableNodeError as e:
            log(logger, "info", "Falling back to global gateway", reason=e)
            return NodeEndpoint(
                self.config.global_gateway_url.rstrip("/"), Capability.READ_ONLY
            )

    def is_up(self, endpoint: NodeEndpoint) -> bool:
        """
        Liveness probe.

        READ_WRITE endpoints must answer ``/api/v0/id`` with 200; READ_ONLY
        gateways must answer a HEAD of their root with a non-5xx status.
        """
        try:
            if endpoint.writable:
                response = requests.post(
                    f"{endpoint.url}/api/v0/id", timeout=self.config.probe_timeout
                )
                return response.status_code == 200
            response = requests.head(endpoint.url, timeout=self.config.probe_timeout)
            return response.status_code < 500
        except requests.exceptions.RequestException as e:
            log(logger, "debug", "Liveness probe failed", url=endpoint.url, error=e)
            return False
