# Shared application constants

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ipfs_file_enc.lib.errors import ConfigError

# --- Key / Stream Configuration ---
KEY_SIZE = 32  # 256 bits
CHUNK_SIZE = 64 * 1024  # plaintext bytes per encrypted record

# --- Node Configuration ---
# Fallback IPFS HTTP API used when no local repo advertises one.
LOCAL_NODE_URL = "http://localhost:5001"
# Read-only path gateways. The global one is the last-resort download source,
# both are used to render display URLs after a share.
GLOBAL_GATEWAY_URL = "https://gateway.ipfs.io"
LOCAL_GATEWAY_URL = "http://localhost:8080"

# Where go-ipfs/kubo keeps its repo (and the `api` file naming the API address).
DEFAULT_IPFS_PATH = "~/.ipfs"
IPFS_API_FILE = "api"

# --- Network timeouts (seconds) ---
PROBE_TIMEOUT = 5.0
TRANSFER_CONNECT_TIMEOUT = 10.0
TRANSFER_READ_TIMEOUT = 300.0


@dataclass(frozen=True)
class NodeConfig:
    """
    Explicit node configuration handed to the resolver.

    Every field defaults to the module constant of the same purpose, so a bare
    ``NodeConfig()`` reproduces the standard behaviour and tests can inject
    their own URLs without touching process-wide state.
    """

    local_node_url: str = LOCAL_NODE_URL
    global_gateway_url: str = GLOBAL_GATEWAY_URL
    local_gateway_url: str = LOCAL_GATEWAY_URL
    ipfs_path: Optional[str] = None
    probe_timeout: float = PROBE_TIMEOUT
    transfer_timeout: tuple = (TRANSFER_CONNECT_TIMEOUT, TRANSFER_READ_TIMEOUT)

    @classmethod
    def from_env(cls) -> "NodeConfig":
        """Build a config from IPFS_FILE_ENC_* (and IPFS_PATH) overrides."""
        raw_timeout = os.environ.get("IPFS_FILE_ENC_PROBE_TIMEOUT", PROBE_TIMEOUT)
        try:
            probe_timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigError(
                f"IPFS_FILE_ENC_PROBE_TIMEOUT must be a number of seconds, got {raw_timeout!r}"
            ) from e

        return cls(
            local_node_url=os.environ.get(
                "IPFS_FILE_ENC_LOCAL_NODE_URL", LOCAL_NODE_URL
            ),
            global_gateway_url=os.environ.get(
                "IPFS_FILE_ENC_GLOBAL_GATEWAY", GLOBAL_GATEWAY_URL
            ),
            local_gateway_url=os.environ.get(
                "IPFS_FILE_ENC_LOCAL_GATEWAY", LOCAL_GATEWAY_URL
            ),
            ipfs_path=os.environ.get("IPFS_PATH"),
            probe_timeout=probe_timeout,
        )

    def repo_path(self) -> Path:
        """Directory of the local IPFS repo, with ``~`` expanded."""
        return Path(self.ipfs_path or DEFAULT_IPFS_PATH).expanduser()
