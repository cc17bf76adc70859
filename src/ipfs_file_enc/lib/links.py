"""Canonical ``/ipfs/<cid>`` content links."""

from typing import Tuple

from ipfs_file_enc.config import NodeConfig
from ipfs_file_enc.lib.errors import InvalidLinkError

LINK_PREFIX = "/ipfs/"

# Accepted spellings of the scheme marker, longest first.
_ACCEPTED_PREFIXES = ("ipfs://", LINK_PREFIX, "ipfs/")


def format_link(raw_id: str) -> str:
    """Prefix a raw content identifier with ``/ipfs/`` unless already there."""
    if raw_id.startswith(LINK_PREFIX):
        return raw_id
    return LINK_PREFIX + raw_id


def parse_link(text: str) -> str:
    """Strip the ``/ipfs/`` marker, returning the raw identifier."""
    if text.startswith(LINK_PREFIX):
        return text[len(LINK_PREFIX) :]
    return text


def canonical_link(text: str) -> str:
    """
    Normalize user-supplied link text to ``/ipfs/<cid>``.

    This is the single acceptance rule for every entry point: a bare CID,
    ``/ipfs/<cid>``, ``ipfs/<cid>`` and ``ipfs://<cid>`` are all accepted.

    Raises:
        InvalidLinkError: If no identifier remains after stripping the marker
    """
    text = (text or "").strip()
    for prefix in _ACCEPTED_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix) :]
            break
    raw_id = text.strip("/")
    if not raw_id:
        raise InvalidLinkError("invalid ipfs-link: no content identifier")
    return format_link(raw_id)


def gateway_urls(link: str, config: NodeConfig) -> Tuple[str, str]:
    """Display URLs of a link on the global and the local gateway."""
    path = canonical_link(link)
    return (
        config.global_gateway_url.rstrip("/") + path,
        config.local_gateway_url.rstrip("/") + path,
    )
